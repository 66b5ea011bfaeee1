"""
Package-manager resolution for plugins that ship a package.json.

Resolution order:
1. The `packageManager` field (corepack convention, e.g. "pnpm@9.1.0"),
   if that binary is on PATH
2. Availability chain: bun, then npm
3. PackageManagerNotFound
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from kadai.lib.errors import PackageManagerNotFound
from kadai.lib.which import WhichCache

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"

PM_CHAIN: list[str] = ["bun", "npm"]


@dataclass
class ResolvedPM:
    """A package manager binary and its install command."""

    bin: str
    install: list[str] = field(default_factory=list)

    @classmethod
    def for_bin(cls, bin_name: str) -> "ResolvedPM":
        return cls(bin=bin_name, install=[bin_name, "install"])


def _declared_package_manager(directory: Path) -> str | None:
    manifest = directory / MANIFEST_NAME
    if not manifest.exists():
        return None
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.debug(f"Unreadable {manifest}: {e}")
        return None
    if not isinstance(data, dict):
        return None
    declared = data.get("packageManager")
    if not isinstance(declared, str):
        return None
    return declared.split("@", 1)[0].strip() or None


def resolve_pm(directory: Path, which_cache: WhichCache) -> ResolvedPM:
    """Pick the package manager used to install a plugin's dependencies.

    Raises:
        PackageManagerNotFound: If no supported package manager is on PATH
    """
    declared = _declared_package_manager(directory)
    if declared:
        if which_cache.which(declared):
            return ResolvedPM.for_bin(declared)
        logger.debug(f"Declared packageManager '{declared}' not on PATH, falling back")

    for candidate in PM_CHAIN:
        if which_cache.which(candidate):
            return ResolvedPM.for_bin(candidate)

    raise PackageManagerNotFound(
        "No package manager found. Install bun or npm to use plugin dependencies."
    )
