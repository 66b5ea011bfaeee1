"""
Plugin models.

A plugin source is declared in .kadai/config.yaml as exactly one of:
  - npm: "@org/tools"          (version: "^1.2.0", default "latest")
  - github: "owner/repo"       (ref: "v2", default "main")
  - path: "../shared-scripts"  (read live, never cached)

npm and github sources are fetched into a cache slot that carries a
.plugin-meta.json sidecar (PluginMeta).
"""

from enum import Enum
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

DEFAULT_NPM_VERSION = "latest"
DEFAULT_GITHUB_REF = "main"


class NpmPluginSource(BaseModel):
    """An npm package, resolved against the registry."""

    kind: ClassVar[str] = "npm"

    npm: str = Field(min_length=1)
    version: Optional[str] = None  # Constraint: exact, dist-tag, ^, ~, *

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def constraint(self) -> str:
        return self.version or DEFAULT_NPM_VERSION

    @property
    def display_name(self) -> str:
        return self.npm


class GithubPluginSource(BaseModel):
    """A GitHub repository in owner/repo form."""

    kind: ClassVar[str] = "github"

    github: str = Field(pattern=r"^[^/\s]+/[^/\s]+$")
    ref: Optional[str] = None  # Branch or tag

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def constraint(self) -> str:
        return self.ref or DEFAULT_GITHUB_REF

    @property
    def display_name(self) -> str:
        return self.github


class PathPluginSource(BaseModel):
    """A local directory containing an actions/ folder."""

    kind: ClassVar[str] = "path"

    path: str = Field(min_length=1)

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def display_name(self) -> str:
        return self.path


CachedPluginSource = Union[NpmPluginSource, GithubPluginSource]
PluginSource = Union[NpmPluginSource, GithubPluginSource, PathPluginSource]

_source_adapter: TypeAdapter[PluginSource] = TypeAdapter(PluginSource)


def parse_plugin_source(data: Any) -> PluginSource:
    """Validate a raw mapping into exactly one PluginSource variant.

    Raises:
        ValueError: If the mapping matches no variant (or more than one key
            is present)
    """
    if isinstance(data, (NpmPluginSource, GithubPluginSource, PathPluginSource)):
        return data
    try:
        return _source_adapter.validate_python(data)
    except ValidationError as e:
        raise ValueError(f"Invalid plugin source {data!r}: {e}") from e


def is_cached_source(source: PluginSource) -> bool:
    """True for sources that live in the plugin cache (npm, github)."""
    return not isinstance(source, PathPluginSource)


class PluginSyncStatus(str, Enum):
    """Per-plugin progress during a sync pass."""

    SYNCING = "syncing"
    DONE = "done"
    ERROR = "error"


class FetchResult(BaseModel):
    """Outcome of fetching one plugin."""

    resolved_version: str  # Exact semver (npm) or commit SHA (github)


class PluginMeta(BaseModel):
    """Contents of .plugin-meta.json inside a cache slot."""

    fetched_at: str = Field(alias="fetchedAt")  # ISO-8601
    source: CachedPluginSource
    resolved_version: str = Field(alias="resolvedVersion")

    model_config = {"populate_by_name": True}

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
