"""
Plugin source fetchers (npm registry, GitHub).
"""

from typing import Optional

from kadai.config import get_settings
from kadai.core.fetchers.base import FetcherRegistry, PluginFetcher, get_fetcher
from kadai.core.fetchers.github import GithubFetcher
from kadai.core.fetchers.npm import NpmFetcher


def default_fetchers(
    npm_registry: Optional[str] = None,
    github_base_url: Optional[str] = None,
) -> dict[str, PluginFetcher]:
    """Build the standard fetcher registry from settings."""
    settings = get_settings()
    return {
        "npm": NpmFetcher(registry_url=npm_registry or settings.npm_registry),
        "github": GithubFetcher(base_url=github_base_url or settings.github_base_url),
    }


__all__ = [
    "FetcherRegistry",
    "GithubFetcher",
    "NpmFetcher",
    "PluginFetcher",
    "default_fetchers",
    "get_fetcher",
]
