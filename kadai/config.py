"""
Configuration management for kadai.

Two layers:

- Settings: process-level knobs (logging, registry, timeouts), read from
  KADAI_* env vars or a .env file.
- KadaiConfig: per-project config in .kadai/config.yaml (actions directory,
  environment injected into actions, plugin sources).
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from kadai.lib.errors import ConfigError
from kadai.models.plugin import PluginSource

logger = logging.getLogger(__name__)

KADAI_DIR_NAME = ".kadai"
CONFIG_FILE_NAME = "config.yaml"


class Settings(BaseSettings):
    """Process configuration. Precedence: env vars > .env > defaults."""

    # Logging
    log_level: str = Field(default="WARNING", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    # Plugins
    sync_timeout: float = Field(
        default=60.0,
        description="Seconds allowed for syncing a single plugin",
    )
    npm_registry: str = Field(
        default="https://registry.npmjs.org",
        description="npm registry base URL",
    )
    github_base_url: str = Field(
        default="https://github.com",
        description="Base URL that owner/repo GitHub sources are cloned from",
    )

    # User-global actions live under {home}/.kadai/actions
    home: Path = Field(default_factory=Path.home, description="User home directory")

    model_config = {
        "env_prefix": "KADAI_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def global_dir(self) -> Path:
        """Get the user-global ~/.kadai directory."""
        return self.home / KADAI_DIR_NAME


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings


class KadaiConfig(BaseModel):
    """Contents of .kadai/config.yaml."""

    actions_dir: str = Field(default="actions", alias="actionsDir")
    env: dict[str, str] = Field(default_factory=dict)
    plugins: Optional[list[PluginSource]] = None

    model_config = {"populate_by_name": True}

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value: Any) -> Any:
        # YAML turns `DEBUG: 1` into an int; actions only ever see strings
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value


def get_config_path(kadai_dir: Path) -> Path:
    """Get the config.yaml path for a .kadai directory."""
    return kadai_dir / CONFIG_FILE_NAME


def _load_yaml_config(kadai_dir: Path) -> dict[str, Any]:
    """Load .kadai/config.yaml as a dict. Missing or unreadable → {}."""
    config_file = get_config_path(kadai_dir)
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a mapping, ignoring: {config_file}")
            return {}
        return data
    except (yaml.YAMLError, OSError) as e:
        logger.warning(f"Error loading config.yaml: {e}")
        return {}


def load_config(kadai_dir: Path) -> KadaiConfig:
    """Load the project config, falling back to defaults when absent.

    Raises:
        ConfigError: If the file parses but does not match the schema
    """
    data = _load_yaml_config(kadai_dir)
    try:
        return KadaiConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid {get_config_path(kadai_dir)}: {e}") from e


def save_config(kadai_dir: Path, config: KadaiConfig) -> Path:
    """Write a KadaiConfig to .kadai/config.yaml."""
    config_file = get_config_path(kadai_dir)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


def find_kadai_dir(cwd: Path) -> Optional[Path]:
    """Walk upward from ``cwd`` to find the nearest .kadai directory."""
    current = cwd.resolve()
    while True:
        candidate = current / KADAI_DIR_NAME
        if candidate.is_dir():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def resolve_home(explicit: Optional[Path] = None) -> Path:
    """Home directory for user-global actions: explicit argument, else settings."""
    if explicit is not None:
        return explicit
    return get_settings().home
