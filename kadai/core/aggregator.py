"""
Live action aggregation.

Merges every action source into the one list a menu shows:

1. Local project actions      .kadai/<actions_dir>/
2. User-global actions        ~/.kadai/actions/          (namespaced "~")
3. Path plugins               read live from disk
4. Cached npm/github plugins   .kadai/.cache/plugins/     (may be refreshed)

A background sync only ever replaces the cached-plugin portion, so local,
global and path actions survive every refresh untouched.
"""

import logging
from pathlib import Path
from typing import Optional

from kadai.config import KadaiConfig, resolve_home
from kadai.core.fetchers import FetcherRegistry
from kadai.core.loader import load_actions
from kadai.core.plugins import (
    load_cached_plugins,
    load_path_plugin,
    load_user_global_actions,
)
from kadai.core.sync import StatusCallback, sync_plugins
from kadai.lib.errors import PluginFailure
from kadai.lib.which import WhichCache
from kadai.models.action import Action
from kadai.models.plugin import PathPluginSource, PluginSource, PluginSyncStatus

logger = logging.getLogger(__name__)


def merge_unique(*groups: list[Action]) -> list[Action]:
    """Concatenate action groups, keeping the first action for each id."""
    merged: list[Action] = []
    seen: set[str] = set()
    for group in groups:
        for action in group:
            if action.id in seen:
                logger.warning(f"Duplicate action id '{action.id}' from {action.file_path}, ignoring")
                continue
            seen.add(action.id)
            merged.append(action)
    return merged


class ActionAggregator:
    """Holds the merged action view for one project."""

    def __init__(
        self,
        kadai_dir: Path,
        config: KadaiConfig,
        *,
        home: Optional[Path] = None,
        which_cache: Optional[WhichCache] = None,
        fetchers: Optional[FetcherRegistry] = None,
        with_dates: bool = False,
    ):
        self.kadai_dir = kadai_dir
        self.config = config
        self.home = resolve_home(home)
        self.which_cache = which_cache
        self.fetchers = fetchers
        self.with_dates = with_dates

        self.statuses: dict[str, PluginSyncStatus] = {}
        self.failures: dict[str, PluginFailure] = {}

        self._local: list[Action] = []
        self._global: list[Action] = []
        self._path_plugins: list[Action] = []
        self._cached_plugins: list[Action] = []

    @property
    def plugins(self) -> list[PluginSource]:
        return list(self.config.plugins or [])

    @property
    def actions_dir(self) -> Path:
        return self.kadai_dir / self.config.actions_dir

    @property
    def actions(self) -> list[Action]:
        """The merged view: local, global, path plugins, cached plugins."""
        return merge_unique(self._local, self._global, self._path_plugins, self._cached_plugins)

    async def load(self) -> list[Action]:
        """Load everything available without touching the network."""
        self._local = await load_actions(self.actions_dir, with_dates=self.with_dates)
        self._global = await load_user_global_actions(self.home)

        path_actions: list[Action] = []
        for source in self.plugins:
            if isinstance(source, PathPluginSource):
                path_actions.extend(await load_path_plugin(self.kadai_dir, source))
        self._path_plugins = path_actions

        self._cached_plugins = await load_cached_plugins(self.kadai_dir, self.plugins)
        return self.actions

    def apply_plugin_update(self, cached_actions: list[Action]) -> list[Action]:
        """Replace only the cached-plugin actions with a fresh snapshot."""
        self._cached_plugins = list(cached_actions)
        return self.actions

    def find(self, action_id: str) -> Optional[Action]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    async def refresh(self, on_plugin_status: Optional[StatusCallback] = None) -> list[Action]:
        """Sync cached plugins in the background and fold in the result."""

        def status(name: str, value: PluginSyncStatus) -> None:
            self.statuses[name] = value
            if value == PluginSyncStatus.SYNCING:
                self.failures.pop(name, None)
            if on_plugin_status is not None:
                on_plugin_status(name, value)

        def failure(name: str, info: PluginFailure) -> None:
            self.failures[name] = info

        # PATH lookups are memoized for one pass only
        which_cache = self.which_cache.fresh() if self.which_cache is not None else WhichCache()

        await sync_plugins(
            self.kadai_dir,
            self.plugins,
            status,
            self.apply_plugin_update,
            fetchers=self.fetchers,
            which_cache=which_cache,
            on_plugin_error=failure,
        )
        return self.actions
