"""
Source-control access for repository sync.
"""

from docgraph.core.source_control.base import SourceControl
from docgraph.core.source_control.git_repo import GitSourceControl

__all__ = ["SourceControl", "GitSourceControl"]
