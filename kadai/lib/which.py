"""
Memoized PATH lookups for interpreter and package-manager binaries.

A WhichCache is process-scoped state: create one and pass it to the
command resolver and package-manager resolver rather than relying on a
module global. Misses are memoized too.
"""

import shutil
from typing import Callable, Optional

Lookup = Callable[[str], Optional[str]]


class WhichCache:
    """Caches ``shutil.which`` results per binary name."""

    def __init__(self, lookup: Optional[Lookup] = None):
        self._lookup: Lookup = lookup or shutil.which
        self._cache: dict[str, Optional[str]] = {}

    def which(self, bin_name: str) -> Optional[str]:
        """Return the absolute path of ``bin_name`` on PATH, or None."""
        if bin_name in self._cache:
            return self._cache[bin_name]
        result = self._lookup(bin_name)
        self._cache[bin_name] = result
        return result

    def __contains__(self, bin_name: str) -> bool:
        return self.which(bin_name) is not None

    def clear(self) -> None:
        self._cache.clear()

    def fresh(self) -> "WhichCache":
        """An empty cache using the same lookup."""
        return WhichCache(self._lookup)
