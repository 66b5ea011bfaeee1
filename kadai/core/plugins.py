"""
Plugin cache management and plugin action loading.

Cached plugins (npm, github) live under the project's .kadai directory:

    .kadai/.cache/
    ├── .gitignore                       # "*", written once
    └── plugins/
        ├── npm/@org--tools@^1.2.0/
        │   ├── .plugin-meta.json        # fetchedAt, source, resolvedVersion
        │   └── actions/...
        └── github/owner--repo@main/
            └── actions/...

Path plugins are never cached; their actions/ directory is read live on
every load. Every plugin action is namespaced under the plugin's label
(its display name, plus "@constraint" when two slots share that name) so
plugins cannot collide with each other or with local actions.
"""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

from kadai.core.loader import load_actions
from kadai.core.pm import MANIFEST_NAME, resolve_pm
from kadai.lib.errors import DependencyInstallError
from kadai.lib.process import run_command
from kadai.lib.which import WhichCache
from kadai.models.action import Action, ActionOrigin
from kadai.models.plugin import (
    CachedPluginSource,
    NpmPluginSource,
    PathPluginSource,
    PluginMeta,
    PluginSource,
    is_cached_source,
)

logger = logging.getLogger(__name__)

META_FILENAME = ".plugin-meta.json"
ACTIONS_SUBDIR = "actions"
USER_GLOBAL_PREFIX = "~"


def cache_root(kadai_dir: Path) -> Path:
    return kadai_dir / ".cache"


def plugins_cache_dir(kadai_dir: Path) -> Path:
    return cache_root(kadai_dir) / "plugins"


def ensure_plugin_cache_dir(kadai_dir: Path) -> Path:
    """Create .cache/plugins/ and a .cache/.gitignore ignoring everything.

    Idempotent: the .gitignore is only written when missing.
    """
    cache_dir = plugins_cache_dir(kadai_dir)
    cache_dir.mkdir(parents=True, exist_ok=True)

    gitignore = cache_root(kadai_dir) / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text("*\n", encoding="utf-8")

    return cache_dir


def _escape_name(name: str) -> str:
    return name.replace("/", "--")


def cache_key_for(source: CachedPluginSource) -> str:
    """Deterministic cache slot path for a source, relative to .cache/plugins/.

    The declared constraint is part of the key, so two constraints for the
    same package never share a slot:

        {npm: "@org/pkg", version: "1.0.0"}  → "npm/@org--pkg@1.0.0"
        {github: "owner/repo"}               → "github/owner--repo@main"
    """
    if isinstance(source, NpmPluginSource):
        name = source.npm
    else:
        name = source.github
    return f"{source.kind}/{_escape_name(name)}@{_escape_name(source.constraint)}"


def plugin_cache_dir(kadai_dir: Path, source: CachedPluginSource) -> Path:
    return plugins_cache_dir(kadai_dir) / cache_key_for(source)


def plugin_kind(source: PluginSource) -> str:
    """"npm", "github" or "path"."""
    return source.kind


def plugin_display_name(source: PluginSource) -> str:
    """Label used for menus, logs and action namespacing."""
    return source.display_name


def unique_cached_sources(sources: list[PluginSource]) -> list[CachedPluginSource]:
    """npm/github sources in order, keeping the first of any that share a slot."""
    unique: dict[str, CachedPluginSource] = {}
    for source in sources:
        if is_cached_source(source):
            unique.setdefault(cache_key_for(source), source)
    return list(unique.values())


def plugin_labels(sources: list[PluginSource]) -> dict[str, str]:
    """Status and namespace label per cache key.

    Normally the display name. When two slots share a display name (one
    package under two constraints), both are labelled "name@constraint":

        [{npm: "@org/tools", version: "^1"}, {npm: "@org/tools", version: "^2"}]
        → {"npm/@org--tools@^1": "@org/tools@^1", "npm/@org--tools@^2": "@org/tools@^2"}
    """
    cached = unique_cached_sources(sources)
    counts = Counter(plugin_display_name(source) for source in cached)

    labels: dict[str, str] = {}
    for source in cached:
        name = plugin_display_name(source)
        if counts[name] > 1:
            name = f"{name}@{source.constraint}"
        labels[cache_key_for(source)] = name
    return labels


def read_plugin_meta(slot_dir: Path) -> Optional[PluginMeta]:
    """Read .plugin-meta.json from a cache slot. Missing or malformed → None."""
    path = slot_dir / META_FILENAME
    if not path.exists():
        return None
    try:
        return PluginMeta.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Ignoring unreadable plugin metadata at {path}: {e}")
        return None


def write_plugin_meta(slot_dir: Path, meta: PluginMeta) -> None:
    """Write .plugin-meta.json into a cache slot."""
    slot_dir.mkdir(parents=True, exist_ok=True)
    content = json.dumps(meta.to_json_dict(), indent=2) + "\n"
    (slot_dir / META_FILENAME).write_text(content, encoding="utf-8")


async def _load_namespaced(actions_dir: Path, name: str) -> list[Action]:
    if not actions_dir.is_dir():
        return []
    actions = await load_actions(actions_dir, ActionOrigin.plugin(name))
    return [action.namespaced(name) for action in actions]


async def load_cached_plugins(
    kadai_dir: Path,
    sources: list[PluginSource],
) -> list[Action]:
    """Load actions from every cached npm/github plugin that has been synced.

    Path sources are skipped; use load_path_plugin for those. Sources sharing
    a slot are loaded once.
    """
    labels = plugin_labels(sources)
    all_actions: list[Action] = []

    for source in unique_cached_sources(sources):
        slot = plugin_cache_dir(kadai_dir, source)
        all_actions.extend(
            await _load_namespaced(slot / ACTIONS_SUBDIR, labels[cache_key_for(source)])
        )

    return all_actions


def resolve_path_plugin_root(kadai_dir: Path, source: PathPluginSource) -> Path:
    """Relative path sources are resolved against the .kadai directory."""
    root = Path(source.path).expanduser()
    if not root.is_absolute():
        root = (kadai_dir / root).resolve()
    return root


async def load_path_plugin(kadai_dir: Path, source: PathPluginSource) -> list[Action]:
    """Load a path plugin's actions live from disk. Missing → []."""
    root = resolve_path_plugin_root(kadai_dir, source)
    return await _load_namespaced(root / ACTIONS_SUBDIR, plugin_display_name(source))


async def load_user_global_actions(home: Path) -> list[Action]:
    """Load ~/.kadai/actions, namespaced under "~". Missing → []."""
    return await _load_namespaced(home / ".kadai" / ACTIONS_SUBDIR, USER_GLOBAL_PREFIX)


async def install_plugin_deps(plugin_dir: Path, which_cache: WhichCache) -> None:
    """Install a plugin's dependencies if it ships a package.json.

    Raises:
        PackageManagerNotFound: If no package manager is available
        DependencyInstallError: If the install exits non-zero
    """
    if not (plugin_dir / MANIFEST_NAME).exists():
        return

    pm = resolve_pm(plugin_dir, which_cache)
    logger.info(f"Installing plugin dependencies with {pm.bin} in {plugin_dir}")
    result = await run_command(*pm.install, cwd=plugin_dir)
    if not result.ok:
        stderr = result.stderr.strip()
        raise DependencyInstallError(
            f"Failed to install plugin dependencies in {plugin_dir}: {stderr}",
            stderr=stderr,
        )
