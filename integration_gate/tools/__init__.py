"""Tools for the integration gate."""

from .github_tool import GitHubTool
from .git_tool import GitTool
from .diff_parser import FileChange, parse_diff_files, changed_paths_from_diff

__all__ = [
    "GitHubTool",
    "GitTool",
    "FileChange",
    "parse_diff_files",
    "changed_paths_from_diff",
]
