"""
Typed errors for plugin resolution, fetching and action execution.

Each exception carries an ErrorCode so callers (the sync orchestrator, the
CLI) can report failures per plugin without string matching.
"""

import asyncio
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes for programmatic handling."""

    # Resolution errors
    PACKAGE_NOT_FOUND = "package_not_found"
    VERSION_NOT_FOUND = "version_not_found"
    REPO_NOT_FOUND = "repo_not_found"

    # Fetch errors
    DOWNLOAD_FAILED = "download_failed"
    EXTRACT_FAILED = "extract_failed"

    # Dependency installation
    PACKAGE_MANAGER_NOT_FOUND = "package_manager_not_found"
    DEPENDENCY_INSTALL_FAILED = "dependency_install_failed"

    # Sync
    SYNC_TIMEOUT = "sync_timeout"

    # Configuration / actions
    INVALID_CONFIG = "invalid_config"
    ACTION_NOT_FOUND = "action_not_found"

    # Generic
    UNKNOWN_ERROR = "unknown_error"


class KadaiError(Exception):
    """Base class for kadai errors."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ResolutionError(KadaiError):
    """A package, version or repository could not be resolved."""

    code = ErrorCode.PACKAGE_NOT_FOUND


class FetchError(KadaiError):
    """Plugin content could not be downloaded, cloned or extracted."""

    code = ErrorCode.DOWNLOAD_FAILED


class PackageManagerNotFound(KadaiError):
    code = ErrorCode.PACKAGE_MANAGER_NOT_FOUND


class DependencyInstallError(KadaiError):
    """A plugin's dependency install exited non-zero."""

    code = ErrorCode.DEPENDENCY_INSTALL_FAILED

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class SyncTimeoutError(KadaiError):
    code = ErrorCode.SYNC_TIMEOUT


class ConfigError(KadaiError):
    code = ErrorCode.INVALID_CONFIG


class ActionNotFound(KadaiError):
    code = ErrorCode.ACTION_NOT_FOUND


_TITLES: dict[ErrorCode, str] = {
    ErrorCode.PACKAGE_NOT_FOUND: "Package not found",
    ErrorCode.VERSION_NOT_FOUND: "No matching version",
    ErrorCode.REPO_NOT_FOUND: "Repository unavailable",
    ErrorCode.DOWNLOAD_FAILED: "Download failed",
    ErrorCode.EXTRACT_FAILED: "Extraction failed",
    ErrorCode.PACKAGE_MANAGER_NOT_FOUND: "No package manager",
    ErrorCode.DEPENDENCY_INSTALL_FAILED: "Dependency install failed",
    ErrorCode.SYNC_TIMEOUT: "Sync timed out",
    ErrorCode.INVALID_CONFIG: "Invalid configuration",
    ErrorCode.ACTION_NOT_FOUND: "Action not found",
    ErrorCode.UNKNOWN_ERROR: "Error",
}


class PluginFailure(BaseModel):
    """A structured, user-presentable description of one plugin's failure."""

    plugin: str = Field(description="Plugin display name")
    code: ErrorCode
    title: str
    message: str
    details: Optional[str] = Field(
        default=None, description="Captured stderr or other diagnostics"
    )


def describe_error(plugin: str, error: BaseException) -> PluginFailure:
    """Map an exception raised while syncing ``plugin`` to a PluginFailure."""
    if isinstance(error, KadaiError):
        code = error.code
    elif isinstance(error, asyncio.TimeoutError):
        code = ErrorCode.SYNC_TIMEOUT
    else:
        code = ErrorCode.UNKNOWN_ERROR

    details = error.stderr if isinstance(error, DependencyInstallError) and error.stderr else None
    message = str(error) or type(error).__name__

    return PluginFailure(
        plugin=plugin,
        code=code,
        title=_TITLES[code],
        message=message,
        details=details,
    )
