"""
Pytest configuration and fixtures.
"""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable

import pytest

# Set test environment before kadai.config builds its settings
os.environ["KADAI_HOME"] = tempfile.mkdtemp(prefix="kadai-test-home-")
os.environ["KADAI_LOG_LEVEL"] = "WARNING"


def _git(*args: str, cwd: Path) -> str:
    result = subprocess.run(
        [
            "git",
            "-c", "user.name=kadai-test",
            "-c", "user.email=kadai-test@example.com",
            "-c", "commit.gpgsign=false",
            "-c", "tag.gpgsign=false",
            "-c", "init.defaultBranch=main",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git() -> Callable[..., str]:
    """Run git with a throwaway identity and no signing. Skips without git."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    return _git


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root containing an empty .kadai/actions directory."""
    root = tmp_path / "project"
    (root / ".kadai" / "actions").mkdir(parents=True)
    return root


@pytest.fixture
def kadai_dir(project: Path) -> Path:
    return project / ".kadai"


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A fake home directory for user-global actions."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    return home_dir


@pytest.fixture
def write_script() -> Callable[..., Path]:
    """Write a script under a directory, creating parents."""

    def _write(base: Path, rel_path: str, content: str = "#!/bin/bash\necho hi\n") -> Path:
        path = base / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
