"""
Action models.

An action is a discovered script under an actions/ directory:
  actions/deploy/staging.sh  → id "deploy/staging", category ["deploy"]
Plugin actions get the plugin's display name prefixed onto both.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class Runtime(str, Enum):
    """Execution strategy inferred from the file extension."""

    BUN = "bun"
    NODE = "node"
    BASH = "bash"
    PYTHON = "python"
    EXECUTABLE = "executable"


class ActionMeta(BaseModel):
    """Metadata from `# kadai:<key> <value>` frontmatter or the filename."""

    name: str
    emoji: Optional[str] = None
    description: Optional[str] = None
    confirm: bool = False  # Ask before running
    hidden: bool = False  # Hide from menus (still searchable)
    interactive: bool = False


class ActionOrigin(BaseModel):
    """Where an action came from."""

    type: Literal["local", "plugin"] = "local"
    plugin_name: Optional[str] = None  # "@org/tools", "~", "../shared"

    @classmethod
    def local(cls) -> "ActionOrigin":
        return cls(type="local")

    @classmethod
    def plugin(cls, name: str) -> "ActionOrigin":
        return cls(type="plugin", plugin_name=name)


class Action(BaseModel):
    """A runnable script plus its metadata."""

    id: str  # "database/reset"
    meta: ActionMeta
    file_path: str  # Absolute path on disk
    category: list[str] = Field(default_factory=list)
    runtime: Runtime
    shebang: Optional[str] = None  # "#!/usr/bin/env zsh"
    added_at: Optional[datetime] = None  # When the file was first committed
    origin: ActionOrigin = Field(default_factory=ActionOrigin.local)

    @field_validator("category")
    @classmethod
    def _no_empty_segments(cls, value: list[str]) -> list[str]:
        if any(not segment for segment in value):
            raise ValueError("category segments must be non-empty")
        return value

    def namespaced(self, prefix: str) -> "Action":
        """Return a copy with ``prefix`` prepended to the category and id."""
        return self.model_copy(
            update={
                "category": [prefix, *self.category],
                "id": f"{prefix}/{self.id}",
            }
        )
