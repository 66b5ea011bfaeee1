"""
Common contract for plugin source fetchers.
"""

from pathlib import Path
from typing import Mapping, Optional, Protocol

from kadai.models.plugin import CachedPluginSource, FetchResult


class PluginFetcher(Protocol):
    """Pulls one plugin's content and checks remote staleness."""

    async def fetch(self, source: CachedPluginSource, dest_dir: Path) -> FetchResult:
        """Populate ``dest_dir`` with the plugin's content.

        Raises:
            ResolutionError: If the package, version or repo cannot be found
            FetchError: If downloading or extracting fails
        """
        ...

    async def check_for_update(
        self, source: CachedPluginSource, current_version: str
    ) -> bool:
        """True if the remote resolves to something other than ``current_version``.

        Never raises: any failure means "no update".
        """
        ...


FetcherRegistry = Mapping[str, PluginFetcher]


def get_fetcher(
    source: CachedPluginSource,
    fetchers: FetcherRegistry,
) -> PluginFetcher:
    """Look up the fetcher registered for a source's kind."""
    fetcher: Optional[PluginFetcher] = fetchers.get(source.kind)
    if fetcher is None:
        raise KeyError(f"No fetcher registered for '{source.kind}' plugins")
    return fetcher
