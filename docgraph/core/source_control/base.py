"""
Base interface for source-control access.

The sync runner only needs a working copy, the files changed since a
commit, file contents and the HEAD commit.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from docgraph.config import RepositoryConfig
from docgraph.models.sync import ChangedFile


class SourceControl(ABC):
    """Abstract base class for source-control backends."""

    @abstractmethod
    async def clone_or_update(self, config: RepositoryConfig) -> Path:
        """
        Clone the repository, or bring an existing working copy up to date.

        Args:
            config: Repository configuration

        Returns:
            Path of the working copy
        """
        pass

    @abstractmethod
    async def diff_since(self, config: RepositoryConfig, commit_hash: str | None) -> list[ChangedFile]:
        """
        List files changed between a commit and HEAD.

        Args:
            config: Repository configuration
            commit_hash: Last synced commit, None for the first sync

        Returns:
            Changed files; every tracked file as Added when commit_hash is None
        """
        pass

    @abstractmethod
    async def read_file(self, repo_path: Path, relative_path: str) -> str:
        """
        Read a file from the working copy.

        Raises:
            NotFoundError: If the file does not exist
        """
        pass

    @abstractmethod
    async def head_commit_hash(self, repo_path: Path) -> str:
        """Hash of the commit checked out in the working copy."""
        pass
