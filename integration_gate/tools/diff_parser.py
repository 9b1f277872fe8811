"""Git diff parsing utilities."""

from dataclasses import dataclass
from typing import List, Optional
import re


@dataclass
class FileChange:
    """A single file touched by a unified diff."""
    old_path: Optional[str]
    new_path: Optional[str]
    is_new_file: bool = False
    is_deleted: bool = False

    @property
    def is_rename(self) -> bool:
        return bool(self.old_path and self.new_path and self.old_path != self.new_path)

    @property
    def paths(self) -> List[str]:
        """Every path this change touches (both sides of a rename)."""
        return [p for p in dict.fromkeys([self.old_path, self.new_path]) if p]


_FILE_HEADER = re.compile(r'^diff --git a/(.*) b/(.*)$')
_RENAME_FROM = re.compile(r'^rename from (.*)$')
_RENAME_TO = re.compile(r'^rename to (.*)$')


def parse_diff_files(diff_text: str) -> List[FileChange]:
    """
    Parse a unified diff into the list of files it touches.

    Args:
        diff_text: Raw `git diff` output

    Returns:
        List of FileChange objects, in diff order
    """
    if not diff_text or not diff_text.strip():
        return []

    changes: List[FileChange] = []
    current: Optional[FileChange] = None

    for line in diff_text.split('\n'):
        header = _FILE_HEADER.match(line)
        if header:
            current = FileChange(old_path=header.group(1), new_path=header.group(2))
            changes.append(current)
            continue

        if current is None:
            continue

        if line.startswith('new file mode'):
            current.is_new_file = True
            current.old_path = None
        elif line.startswith('deleted file mode'):
            current.is_deleted = True
            current.new_path = None
        elif _RENAME_FROM.match(line):
            current.old_path = _RENAME_FROM.match(line).group(1)
        elif _RENAME_TO.match(line):
            current.new_path = _RENAME_TO.match(line).group(1)

    return changes


def changed_paths_from_diff(diff_text: str) -> List[str]:
    """Unique changed paths from a unified diff, in order of appearance."""
    paths: List[str] = []
    for change in parse_diff_files(diff_text):
        for path in change.paths:
            if path not in paths:
                paths.append(path)
    return paths
