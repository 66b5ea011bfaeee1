"""
Pydantic models for kadai.
"""

from kadai.models.action import Action, ActionMeta, ActionOrigin, Runtime
from kadai.models.plugin import (
    FetchResult,
    GithubPluginSource,
    NpmPluginSource,
    PathPluginSource,
    PluginMeta,
    PluginSource,
    PluginSyncStatus,
)

__all__ = [
    "Action",
    "ActionMeta",
    "ActionOrigin",
    "Runtime",
    "FetchResult",
    "GithubPluginSource",
    "NpmPluginSource",
    "PathPluginSource",
    "PluginMeta",
    "PluginSource",
    "PluginSyncStatus",
]
