"""
Background plugin synchronization.

One sync pass runs every npm/github plugin concurrently:

    pending → syncing → done | error

Per plugin: if the slot already has metadata, ask the fetcher whether the
remote moved; if not, the slot is left alone. Otherwise the plugin is
fetched into a staging directory beside its slot, dependencies are
installed, metadata is written, and only then is the old slot replaced.
A failure or timeout therefore leaves the previous cache intact.

Tasks are joined settle-all: one plugin failing or hanging never affects
another. When every task has settled, cached plugin actions are reloaded
once and handed to on_update as a single snapshot.
"""

import asyncio
import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from kadai.config import get_settings
from kadai.core.fetchers import FetcherRegistry, default_fetchers, get_fetcher
from kadai.core.plugins import (
    cache_key_for,
    ensure_plugin_cache_dir,
    install_plugin_deps,
    load_cached_plugins,
    plugin_cache_dir,
    plugin_display_name,
    plugin_labels,
    read_plugin_meta,
    write_plugin_meta,
)
from kadai.lib.errors import PluginFailure, SyncTimeoutError, describe_error
from kadai.lib.which import WhichCache
from kadai.models.action import Action
from kadai.models.plugin import (
    CachedPluginSource,
    PluginMeta,
    PluginSource,
    PluginSyncStatus,
    is_cached_source,
)

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, PluginSyncStatus], None]
UpdateCallback = Callable[[list[Action]], None]
ErrorCallback = Callable[[str, PluginFailure], None]


def _sibling(slot: Path, label: str) -> Path:
    return slot.parent / f".{slot.name}.{label}-{uuid.uuid4().hex[:8]}"


def _replace_slot(slot: Path, staging: Path) -> None:
    """Swap a fully populated staging directory into the slot's place."""
    backup: Optional[Path] = None
    if slot.exists():
        backup = _sibling(slot, "old")
        slot.rename(backup)
    staging.rename(slot)
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)


def _sweep_stale(slot: Path) -> None:
    """Remove staging and backup siblings left behind by an interrupted sync."""
    prefixes = (f".{slot.name}.staging-", f".{slot.name}.old-")
    for entry in slot.parent.iterdir():
        if entry.name.startswith(prefixes):
            logger.debug(f"Removing stale {entry}")
            shutil.rmtree(entry, ignore_errors=True)


async def sync_plugin(
    kadai_dir: Path,
    source: CachedPluginSource,
    fetchers: FetcherRegistry,
    which_cache: WhichCache,
) -> bool:
    """Bring one cached plugin up to date.

    Returns True if the slot was (re)populated, False if it was current.
    """
    ensure_plugin_cache_dir(kadai_dir)
    fetcher = get_fetcher(source, fetchers)
    slot = plugin_cache_dir(kadai_dir, source)
    name = plugin_display_name(source)
    slot.parent.mkdir(parents=True, exist_ok=True)
    _sweep_stale(slot)

    meta = read_plugin_meta(slot)
    if meta is not None:
        if not await fetcher.check_for_update(source, meta.resolved_version):
            logger.debug(f"Plugin {name} is current at {meta.resolved_version}")
            return False
        logger.info(f"Plugin {name} has an update (cached {meta.resolved_version})")

    staging = _sibling(slot, "staging")
    staging.mkdir()
    try:
        result = await fetcher.fetch(source, staging)
        await install_plugin_deps(staging, which_cache)
        write_plugin_meta(
            staging,
            PluginMeta(
                fetched_at=datetime.now(timezone.utc).isoformat(),
                source=source,
                resolved_version=result.resolved_version,
            ),
        )
        _replace_slot(slot, staging)
    except BaseException:
        # Also runs on cancellation (timeout); fetchers finish their thread work first
        shutil.rmtree(staging, ignore_errors=True)
        raise

    logger.info(f"Synced plugin {name} at {result.resolved_version}")
    return True


async def sync_plugins(
    kadai_dir: Path,
    sources: list[PluginSource],
    on_plugin_status: StatusCallback,
    on_update: UpdateCallback,
    *,
    fetchers: Optional[FetcherRegistry] = None,
    which_cache: Optional[WhichCache] = None,
    timeout: Optional[float] = None,
    on_plugin_error: Optional[ErrorCallback] = None,
) -> dict[str, PluginSyncStatus]:
    """Sync all npm/github plugins concurrently, then publish one snapshot.

    Args:
        kadai_dir: The project's .kadai directory
        sources: Configured plugin sources (path sources are ignored)
        on_plugin_status: Called with (label, status) on each transition
        on_update: Called exactly once with all cached plugin actions
        fetchers: Fetcher per source kind (defaults from settings)
        which_cache: PATH lookups for dependency installs (fresh per pass)
        timeout: Seconds allowed per plugin (defaults from settings)
        on_plugin_error: Called with (label, failure) when a plugin fails

    Returns:
        Final status per plugin label: the display name, or "name@constraint"
        when one package is configured under several constraints
    """
    fetchers = fetchers if fetchers is not None else default_fetchers()
    which_cache = which_cache or WhichCache()
    timeout = timeout if timeout is not None else get_settings().sync_timeout

    syncable: list[CachedPluginSource] = []
    seen_keys: set[str] = set()
    for source in sources:
        if not is_cached_source(source):
            continue
        key = cache_key_for(source)
        if key in seen_keys:
            logger.warning(f"Duplicate plugin source ignored: {plugin_display_name(source)}")
            continue
        seen_keys.add(key)
        syncable.append(source)
    labels = plugin_labels(syncable)

    statuses: dict[str, PluginSyncStatus] = {}

    def report(name: str, status: PluginSyncStatus) -> None:
        statuses[name] = status
        try:
            on_plugin_status(name, status)
        except Exception:
            logger.exception(f"Plugin status callback failed for {name}")

    async def run_one(source: CachedPluginSource) -> None:
        name = labels[cache_key_for(source)]
        report(name, PluginSyncStatus.SYNCING)
        try:
            await asyncio.wait_for(
                sync_plugin(kadai_dir, source, fetchers, which_cache),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            error: BaseException = SyncTimeoutError(f"Sync timeout for {name} after {timeout:g}s")
        except Exception as e:
            error = e
        else:
            report(name, PluginSyncStatus.DONE)
            return

        logger.warning(f"Plugin {name} failed to sync: {error}")
        report(name, PluginSyncStatus.ERROR)
        if on_plugin_error is not None:
            try:
                on_plugin_error(name, describe_error(name, error))
            except Exception:
                logger.exception(f"Plugin error callback failed for {name}")

    await asyncio.gather(*(run_one(source) for source in syncable), return_exceptions=True)

    actions = await load_cached_plugins(kadai_dir, syncable)
    on_update(actions)
    return statuses
