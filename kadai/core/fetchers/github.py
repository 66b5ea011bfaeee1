"""
GitHub plugin fetcher.

Fetches by shallow-cloning a single branch or tag, then drops `.git/` so the
cache slot holds content only. The resolved version is the checked-out
commit SHA; update checks compare it against `git ls-remote` without
cloning.
"""

import logging
import shutil
from pathlib import Path

from kadai.lib.errors import ErrorCode, FetchError
from kadai.lib.process import run_command, run_in_thread
from kadai.models.plugin import FetchResult, GithubPluginSource

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://github.com"


class GithubFetcher:
    """Fetches plugins from GitHub (or any git host laid out like it)."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def repo_url(self, source: GithubPluginSource) -> str:
        return f"{self.base_url}/{source.github}.git"

    async def fetch(self, source: GithubPluginSource, dest_dir: Path) -> FetchResult:
        """Shallow-clone ``source`` into ``dest_dir`` and report the commit SHA.

        Raises:
            FetchError: If the clone fails (unknown repo or ref, no network)
        """
        ref = source.constraint
        url = self.repo_url(source)
        dest_dir.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Cloning {source.github}@{ref}")
        try:
            clone = await run_command(
                "git", "clone", "--depth", "1", "--single-branch", "--branch", ref,
                url, str(dest_dir),
            )
        except OSError as e:
            raise FetchError(f"git is not available: {e}", code=ErrorCode.REPO_NOT_FOUND) from e

        if not clone.ok:
            raise FetchError(
                f'Failed to clone "{source.github}" (ref: {ref}): {clone.stderr.strip()}',
                code=ErrorCode.REPO_NOT_FOUND,
            )

        rev = await run_command("git", "rev-parse", "HEAD", cwd=dest_dir)
        sha = rev.stdout.strip()
        if not rev.ok or not sha:
            raise FetchError(f'Could not read commit SHA for "{source.github}": {rev.stderr.strip()}')

        await run_in_thread(shutil.rmtree, dest_dir / ".git", ignore_errors=True)

        return FetchResult(resolved_version=sha)

    async def remote_sha(self, source: GithubPluginSource) -> str | None:
        """Current SHA of the source's ref on the remote, or None on any failure."""
        try:
            result = await run_command("git", "ls-remote", self.repo_url(source), source.constraint)
        except OSError as e:
            logger.debug(f"git ls-remote unavailable: {e}")
            return None
        if not result.ok:
            return None

        # Output lines: "<sha>\t<ref>". Annotated tags also list the peeled
        # commit as "<sha>\trefs/tags/v1^{}", which is what a clone checks out.
        entries = [line.split("\t", 1) for line in result.stdout.splitlines() if "\t" in line]
        if not entries:
            return None
        for sha, ref in entries:
            if ref.endswith("^{}"):
                return sha.strip() or None
        return entries[0][0].strip() or None

    async def check_for_update(self, source: GithubPluginSource, current_version: str) -> bool:
        try:
            sha = await self.remote_sha(source)
        except Exception as e:
            logger.debug(f"Update check for {source.github} failed, assuming current: {e}")
            return False
        if not sha:
            return False
        return sha != current_version
