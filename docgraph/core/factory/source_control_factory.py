"""
Factory for creating source-control backends.
"""

from docgraph.config import GitSyncConfig
from docgraph.core.source_control.base import SourceControl
from docgraph.core.source_control.git_repo import GitSourceControl


class SourceControlFactory:
    """Factory for creating source-control backends from configuration."""

    @staticmethod
    def create(config: GitSyncConfig) -> SourceControl:
        """Create a git backend cloning under the configured base directory."""
        return GitSourceControl(clone_base_directory=config.clone_base_directory)
