"""
Git source control backed by GitPython.

GitPython is blocking, so every call runs in a worker thread.
"""

import asyncio
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import BadName, BadObject

from docgraph.config import RepositoryConfig
from docgraph.core.source_control.base import SourceControl
from docgraph.models.sync import ChangedFile, ChangeType
from docgraph.utils.exceptions import NotFoundError, SourceControlError
from docgraph.utils.id_generator import normalize_path
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)


class GitSourceControl(SourceControl):
    """
    Keeps one working copy per repository under a base directory.

    Updates are fetch + hard reset to origin/<branch>, so local edits in a
    working copy never survive a sync.
    """

    def __init__(self, clone_base_directory: str | Path = "tmp/docgraph-repos"):
        self.clone_base_directory = Path(clone_base_directory)

    def working_copy(self, config: RepositoryConfig) -> Path:
        return self.clone_base_directory / config.name.lower()

    def _clone_or_update(self, config: RepositoryConfig) -> Path:
        path = self.working_copy(config)
        if (path / ".git").exists():
            repo = Repo(path)
            repo.remotes.origin.fetch()
            repo.git.checkout(config.branch)
            repo.git.reset("--hard", f"origin/{config.branch}")
            logger.bind(path=str(path)).debug(f"Updated {config.name}")
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            Repo.clone_from(config.url, path, branch=config.branch)
            logger.bind(url=config.url, path=str(path)).info(f"Cloned {config.name}")
        return path

    async def clone_or_update(self, config: RepositoryConfig) -> Path:
        """
        Clone or fast-forward the working copy of a repository.

        Raises:
            SourceControlError: If a git command fails
        """
        try:
            return await asyncio.to_thread(self._clone_or_update, config)
        except (GitCommandError, InvalidGitRepositoryError, NoSuchPathError) as e:
            logger.bind(
                repository=config.name, url=config.url, error=str(e)
            ).error(f"Failed to clone or update {config.name}: {e}")
            raise SourceControlError(
                f"Failed to clone or update {config.name}: {e}",
                context={"repository": config.name, "branch": config.branch},
            ) from e

    @staticmethod
    def _all_files(repo: Repo) -> list[ChangedFile]:
        return [
            ChangedFile(path=normalize_path(item.path), change_type=ChangeType.ADDED)
            for item in repo.head.commit.tree.traverse()
            if item.type == "blob"
        ]

    def _diff_since(self, config: RepositoryConfig, commit_hash: str | None) -> list[ChangedFile]:
        repo = Repo(self.working_copy(config))
        if commit_hash is None:
            return self._all_files(repo)

        try:
            old_commit = repo.commit(commit_hash)
        except (BadName, BadObject, ValueError):
            logger.bind(
                repository=config.name, commit=commit_hash
            ).warning(f"Commit {commit_hash} unknown in {config.name}, resyncing every file")
            return self._all_files(repo)

        changes: list[ChangedFile] = []
        for diff in old_commit.diff(repo.head.commit):
            if diff.change_type == "A":
                changes.append(ChangedFile(path=normalize_path(diff.b_path), change_type=ChangeType.ADDED))
            elif diff.change_type == "D":
                changes.append(ChangedFile(path=normalize_path(diff.a_path), change_type=ChangeType.DELETED))
            elif diff.change_type == "R":
                changes.append(ChangedFile(path=normalize_path(diff.a_path), change_type=ChangeType.DELETED))
                changes.append(ChangedFile(path=normalize_path(diff.b_path), change_type=ChangeType.ADDED))
            else:
                path = diff.b_path or diff.a_path
                changes.append(ChangedFile(path=normalize_path(path), change_type=ChangeType.MODIFIED))
        return changes

    async def diff_since(self, config: RepositoryConfig, commit_hash: str | None) -> list[ChangedFile]:
        """
        Files changed between commit_hash and HEAD.

        Renames are reported as a deletion of the old path and an addition
        of the new one.

        Raises:
            SourceControlError: If the working copy cannot be read
        """
        try:
            return await asyncio.to_thread(self._diff_since, config, commit_hash)
        except (GitCommandError, InvalidGitRepositoryError, NoSuchPathError) as e:
            raise SourceControlError(
                f"Failed to diff {config.name}: {e}",
                context={"repository": config.name, "commit": commit_hash},
            ) from e

    async def read_file(self, repo_path: Path, relative_path: str) -> str:
        """
        Read a UTF-8 file from the working copy.

        Raises:
            NotFoundError: If the file does not exist
        """
        file_path = Path(repo_path) / normalize_path(relative_path)
        if not file_path.is_file():
            raise NotFoundError(
                f"File not found: {relative_path}",
                context={"repository_path": str(repo_path), "path": relative_path},
            )
        return await asyncio.to_thread(file_path.read_text, encoding="utf-8", errors="replace")

    async def head_commit_hash(self, repo_path: Path) -> str:
        """
        Hash of HEAD in the working copy.

        Raises:
            SourceControlError: If the path is not a git repository
        """
        try:
            return await asyncio.to_thread(lambda: Repo(repo_path).head.commit.hexsha)
        except (InvalidGitRepositoryError, NoSuchPathError, ValueError) as e:
            raise SourceControlError(
                f"Failed to read HEAD of {repo_path}: {e}",
                context={"repository_path": str(repo_path)},
            ) from e
