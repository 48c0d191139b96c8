"""
Repository sync: change detection and scheduling.

SyncRunner brings one repository's documents in line with its HEAD commit.
SyncScheduler runs every configured repository per cycle, concurrently,
with failures isolated per repository.
"""

import asyncio
from datetime import datetime, timezone

from docgraph.config import Config, RepositoryConfig
from docgraph.core.graph_store.base import GraphStore
from docgraph.core.source_control.base import SourceControl
from docgraph.models.document import DocumentMetadata
from docgraph.models.sync import ChangedFile, ChangeType, CycleReport, SyncReport, SyncStatus
from docgraph.models.tenant import TenantContext
from docgraph.services.document_ingestion import DocumentIngestionService
from docgraph.utils.id_generator import generate_document_id, normalize_path
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_UNKNOWN_REPOSITORY = 1


def matches_monitored_paths(path: str, monitored_paths: list[str]) -> bool:
    """True when path sits under any monitored prefix, or none are configured."""
    if not monitored_paths:
        return True
    path = normalize_path(path)
    return any(path.startswith(normalize_path(prefix)) for prefix in monitored_paths)


def matches_extensions(path: str, extensions: list[str]) -> bool:
    """True when path ends with a configured extension, or none are configured."""
    if not extensions:
        return True
    lowered = path.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)


class SyncRunner:
    """
    Syncs a single repository from its last recorded commit to HEAD.

    Files whose ingestion fails are recorded in the sync state and retried
    on the next run even if they did not change again.
    """

    def __init__(
        self,
        config: Config,
        source_control: SourceControl,
        graph_store: GraphStore,
        ingestion: DocumentIngestionService,
    ):
        """
        Initialize sync runner.

        Args:
            config: Configuration holding repositories and git sync settings
            source_control: Source-control backend
            graph_store: Graph store holding sync state
            ingestion: Ingestion service for changed files
        """
        self.config = config
        self.source_control = source_control
        self.graph_store = graph_store
        self.ingestion = ingestion

    def _select_changes(
        self, repository: RepositoryConfig, changes: list[ChangedFile]
    ) -> tuple[list[ChangedFile], int]:
        """Apply monitored-path and extension filters, returning (kept, skipped)."""
        extensions = self.config.git_sync.file_extensions
        kept = [
            change
            for change in changes
            if matches_monitored_paths(change.path, repository.monitored_paths)
            and matches_extensions(change.path, extensions)
        ]
        return kept, len(changes) - len(kept)

    async def run(self, repository_name: str) -> SyncReport:
        """
        Sync one repository.

        Args:
            repository_name: Configured repository name (case-insensitive)

        Returns:
            SyncReport; exit_code 1 when the repository is not configured

        Raises:
            SourceControlError: If clone, diff or HEAD lookup fails
            GraphStoreError / VectorStoreError: If a deletion or the sync
                state write fails
        """
        repository = self.config.get_repository(repository_name)
        if repository is None:
            logger.bind(
                repository=repository_name
            ).warning(f"Unknown repository: {repository_name}")
            return SyncReport(
                repository=repository_name,
                exit_code=EXIT_UNKNOWN_REPOSITORY,
                error=f"Unknown repository: {repository_name}",
            )

        name = repository.name
        tenant = TenantContext(project=repository.project or name, branch=repository.branch)
        report = SyncReport(repository=name)

        repo_path = await self.source_control.clone_or_update(repository)
        state = await self.graph_store.get_sync_state(name)
        changes = await self.source_control.diff_since(
            repository, state.commit_hash if state else None
        )

        if state and state.failed_paths:
            covered = {normalize_path(change.path) for change in changes}
            for path in state.failed_paths:
                if normalize_path(path) not in covered:
                    changes.append(ChangedFile(path=path, change_type=ChangeType.MODIFIED))

        changes, report.skipped = self._select_changes(repository, changes)
        logger.bind(
            repository=name,
            changes=len(changes),
            skipped=report.skipped,
            since=state.commit_hash if state else None,
        ).info(f"Syncing {name}: {len(changes)} changed files")

        for change in changes:
            document_id = generate_document_id(name, change.path)

            if change.change_type == ChangeType.DELETED:
                await self.ingestion.delete_document(document_id)
                report.deleted += 1
                report.processed += 1
                continue

            try:
                content = await self.source_control.read_file(repo_path, change.path)
                await self.ingestion.ingest_document(
                    content,
                    DocumentMetadata(
                        document_id=document_id,
                        repository=name,
                        file_path=change.path,
                        tenant=tenant,
                    ),
                )
                report.processed += 1
            except Exception as e:
                logger.bind(
                    repository=name, path=change.path, error_type=type(e).__name__, error=str(e)
                ).error(f"Failed to ingest {change.path}: {e}")
                report.failed += 1
                report.failed_paths.append(change.path)

        report.head_commit = await self.source_control.head_commit_hash(repo_path)
        await self.graph_store.set_sync_state(name, report.head_commit, report.failed_paths)

        logger.bind(
            repository=name,
            processed=report.processed,
            failed=report.failed,
            deleted=report.deleted,
        ).info(f"Synced {name} to {report.head_commit[:8]}")
        return report


class SyncScheduler:
    """
    Runs sync cycles over every configured repository.

    Repositories sync concurrently up to max_concurrent_repositories; each
    repository's own run is sequential. A failing repository never stops the
    others and never advances its own sync state.
    """

    def __init__(self, config: Config, runner: SyncRunner):
        """
        Initialize scheduler.

        Args:
            config: Configuration holding repositories and git sync settings
            runner: Runner used for each repository
        """
        self.config = config
        self.runner = runner
        self.status = SyncStatus()

    async def _run_one(self, name: str, semaphore: asyncio.Semaphore) -> SyncReport:
        async with semaphore:
            try:
                return await self.runner.run(name)
            except Exception as e:
                logger.bind(
                    repository=name, error_type=type(e).__name__, error=str(e)
                ).error(f"Sync failed for {name}: {e}")
                return SyncReport(repository=name, error=str(e))

    async def run_cycle(self) -> CycleReport:
        """
        Sync every configured repository once.

        Returns:
            CycleReport; failed when any repository failed
        """
        started_at = datetime.now(timezone.utc)
        semaphore = asyncio.Semaphore(self.config.git_sync.max_concurrent_repositories)

        reports = await asyncio.gather(
            *(self._run_one(repository.name, semaphore) for repository in self.config.repositories)
        )

        cycle = CycleReport(
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            reports=list(reports),
        )
        self.status.last_cycle = cycle
        self.status.last_run_failed = cycle.failed
        if not cycle.failed:
            self.status.last_successful_run = cycle.finished_at

        bound = logger.bind(
            failed=[r.repository for r in reports if not r.succeeded],
            duration_seconds=(cycle.finished_at - started_at).total_seconds(),
        )
        log = bound.warning if cycle.failed else bound.info
        log(f"Sync cycle finished for {len(reports)} repositories")
        return cycle

    async def run_forever(self) -> None:
        """Run cycles every interval_seconds until cancelled."""
        interval = self.config.git_sync.interval_seconds
        logger.info(f"Starting background sync every {interval}s")
        while True:
            await self.run_cycle()
            await asyncio.sleep(interval)
