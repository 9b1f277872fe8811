"""Change detection: which units does a change set touch."""

from fnmatch import fnmatch
from typing import Dict, Iterable, List, Set

from ..errors import ConfigurationError
from ..models import Unit, normalize_path


class ChangeDetector:
    """
    Maps changed file paths to affected units.

    Rules:
    1. A unit is affected if any changed path is under one of its prefixes
    2. Any path matching a global pattern affects every enabled unit,
       overriding rule 1
    3. Disabled units are never affected
    """

    def __init__(self, units: List[Unit], global_patterns: Iterable[str] = ()):
        if not units:
            raise ConfigurationError("No units configured")
        self.units = list(units)
        self.global_patterns = [normalize_path(p) for p in global_patterns]

    def is_global(self, path: str) -> bool:
        """Check if a path matches any global pattern."""
        path = normalize_path(path)
        return any(fnmatch(path, pattern) for pattern in self.global_patterns)

    def affected_units(self, changed_paths: Iterable[str]) -> Set[str]:
        """
        Determine affected unit names for a change set.

        Args:
            changed_paths: Repo-relative paths changed by the change set

        Returns:
            Set of affected unit names (may be empty)
        """
        paths = [normalize_path(p) for p in changed_paths if p and p.strip()]
        enabled = [u for u in self.units if u.enabled]

        if any(self.is_global(p) for p in paths):
            return {u.name for u in enabled}

        return {
            unit.name
            for unit in enabled
            if any(unit.owns(p) for p in paths)
        }

    def explain(self, changed_paths: Iterable[str]) -> Dict[str, List[str]]:
        """
        Show which paths caused each unit to be affected.

        Global paths are listed under the "*" key.
        """
        paths = [normalize_path(p) for p in changed_paths if p and p.strip()]
        matches: Dict[str, List[str]] = {}

        global_paths = [p for p in paths if self.is_global(p)]
        if global_paths:
            matches["*"] = global_paths

        for unit in self.units:
            if not unit.enabled:
                continue
            owned = [p for p in paths if unit.owns(p)]
            if owned:
                matches[unit.name] = owned

        return matches
