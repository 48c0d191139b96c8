"""
Tenant scope for queries and mutations.
"""

from pydantic import BaseModel, ConfigDict, Field


class TenantContext(BaseModel):
    """
    (project, branch) scope of one logical knowledge base.

    Passed explicitly into ingestion metadata, vector filters and graph
    traversal so two branches of the same project never share results.
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(..., min_length=1, description="Project name")
    branch: str = Field(..., min_length=1, description="Branch name")

    def as_filters(self) -> dict[str, str]:
        """Payload filters matching this tenant."""
        return {"project": self.project, "branch": self.branch}
