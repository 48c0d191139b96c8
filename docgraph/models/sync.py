"""
Repository synchronization models.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ChangeType(str, Enum):
    """Kind of change reported by source control."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class ChangedFile(BaseModel):
    """A file changed since the last synced commit."""

    path: str = Field(..., description="Repository-relative path with forward slashes")
    change_type: ChangeType


class SyncState(BaseModel):
    """Per-repository sync state stored in the graph."""

    repository: str
    commit_hash: str
    failed_paths: list[str] = Field(
        default_factory=list, description="Paths whose ingest failed and are retried next cycle"
    )
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SyncReport(BaseModel):
    """Outcome of one repository sync run."""

    repository: str
    exit_code: int = 0
    processed: int = Field(default=0, description="Files ingested or deleted successfully")
    failed: int = 0
    deleted: int = 0
    skipped: int = Field(default=0, description="Changed files filtered out")
    failed_paths: list[str] = Field(default_factory=list)
    head_commit: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and self.error is None


class CycleReport(BaseModel):
    """Outcome of one scheduling round across repositories."""

    started_at: datetime
    finished_at: datetime
    reports: list[SyncReport] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(not report.succeeded for report in self.reports)


class SyncStatus(BaseModel):
    """Health of the background sync loop."""

    last_successful_run: datetime | None = None
    last_run_failed: bool = False
    last_cycle: CycleReport | None = None
