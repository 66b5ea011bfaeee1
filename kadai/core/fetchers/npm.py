"""
npm plugin fetcher.

Resolves a version constraint against the public registry and extracts the
package tarball into a cache slot:

    GET {registry}/{package}  →  {"dist-tags": {...}, "versions": {v: {"dist": {"tarball": url}}}}

Supported constraints: dist-tags ("latest", "next"), exact versions,
caret ("^1.2.3"; "^0.2.3" stays within 0.2.x), tilde ("~1.2.3") and
wildcards ("*", "x"). Prerelease versions are only chosen when named
exactly or through a dist-tag, never by a range.
"""

import logging
import tarfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Optional
from urllib.parse import quote

import aiofiles
import httpx

from kadai.lib.errors import ErrorCode, FetchError, ResolutionError
from kadai.lib.process import run_in_thread
from kadai.models.plugin import FetchResult, NpmPluginSource

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "https://registry.npmjs.org"
TARBALL_NAME = ".plugin.tgz"
WILDCARDS = {"*", "x", "X", ""}

Semver = tuple[int, int, int]


def parse_semver(version: str) -> Optional[Semver]:
    """'v1.2.3-beta.1+build' → (1, 2, 3). Returns None if not x.y.z."""
    clean = version.strip()
    if clean.startswith("v"):
        clean = clean[1:]
    clean = clean.split("+", 1)[0].split("-", 1)[0]
    parts = clean.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    return int(parts[0]), int(parts[1]), int(parts[2])


def is_prerelease(version: str) -> bool:
    return "-" in version.split("+", 1)[0]


def satisfies(version: str, constraint: str) -> bool:
    """Check ``version`` against an exact, ^, ~ or wildcard constraint."""
    parsed = parse_semver(version)
    if parsed is None or is_prerelease(version):
        return False

    constraint = constraint.strip()
    if constraint in WILDCARDS:
        return True

    if constraint.startswith("^"):
        minimum = parse_semver(constraint[1:])
        if minimum is None or parsed < minimum:
            return False
        # ^0.x.y only allows patch-level changes within the same minor
        if minimum[0] == 0:
            return parsed[0] == 0 and parsed[1] == minimum[1]
        return parsed[0] == minimum[0]

    if constraint.startswith("~"):
        minimum = parse_semver(constraint[1:])
        if minimum is None or parsed < minimum:
            return False
        return parsed[:2] == minimum[:2]

    exact = parse_semver(constraint)
    return exact is not None and parsed == exact


def max_satisfying(versions: list[str], constraint: str) -> Optional[str]:
    """Highest version (by major, minor, patch) satisfying ``constraint``."""
    matching = [v for v in versions if satisfies(v, constraint)]
    if not matching:
        return None
    return max(matching, key=lambda v: parse_semver(v) or (0, 0, 0))


@dataclass
class ResolvedPackage:
    version: str
    tarball_url: str


def _tarball_for(name: str, versions: dict[str, Any], version: str) -> str:
    data = versions.get(version)
    tarball = None
    if isinstance(data, dict):
        tarball = (data.get("dist") or {}).get("tarball")
    if not tarball:
        raise ResolutionError(
            f'npm package "{name}": version {version} not found in registry',
            code=ErrorCode.VERSION_NOT_FOUND,
        )
    return tarball


def _strip_wrapper(members: list[tarfile.TarInfo]) -> list[tarfile.TarInfo]:
    """Drop the single top-level directory (usually `package/`) from every member."""
    stripped: list[tarfile.TarInfo] = []
    for member in members:
        name = member.name[2:] if member.name.startswith("./") else member.name
        parts = name.split("/", 1)
        if len(parts) < 2 or not parts[1]:
            continue
        member.name = parts[1]
        if member.islnk():
            linkname = member.linkname[2:] if member.linkname.startswith("./") else member.linkname
            link_parts = linkname.split("/", 1)
            member.linkname = link_parts[1] if len(link_parts) == 2 else member.linkname
        stripped.append(member)
    return stripped


def extract_tarball(tarball_path: Path, dest_dir: Path) -> None:
    """Extract a .tgz into ``dest_dir`` without its top-level wrapper directory.

    Raises:
        FetchError: If the archive is corrupt or contains unsafe members
    """
    try:
        with tarfile.open(tarball_path, "r:gz") as tar:
            members = _strip_wrapper(tar.getmembers())
            tar.extractall(dest_dir, members=members, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise FetchError(f"Failed to extract tarball: {e}", code=ErrorCode.EXTRACT_FAILED) from e


class NpmFetcher:
    """Fetches npm-hosted plugins from a registry."""

    def __init__(
        self,
        registry_url: str = DEFAULT_REGISTRY,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.registry_url = registry_url.rstrip("/")
        self._client = client
        self.timeout = timeout

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    def package_url(self, name: str) -> str:
        # Scoped names keep their "@" but escape the "/": @org%2Fpkg
        return f"{self.registry_url}/{quote(name, safe='@')}"

    async def resolve_version(self, source: NpmPluginSource) -> ResolvedPackage:
        """Resolve the source's constraint to a concrete version and tarball URL.

        Raises:
            ResolutionError: Unknown package, or no version matches
            FetchError: Registry unreachable or returned garbage
        """
        constraint = source.constraint

        async with self._http() as client:
            try:
                response = await client.get(
                    self.package_url(source.npm),
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as e:
                raise FetchError(f'Failed to reach npm registry for "{source.npm}": {e}') from e

        if response.status_code == 404:
            raise ResolutionError(f'npm package "{source.npm}" not found')
        if response.status_code != 200:
            raise ResolutionError(
                f'Failed to fetch npm package "{source.npm}": {response.status_code}'
            )

        try:
            metadata = response.json()
        except ValueError as e:
            raise FetchError(f'Invalid registry response for "{source.npm}": {e}') from e
        if not isinstance(metadata, dict):
            raise FetchError(f'Invalid registry response for "{source.npm}"')

        dist_tags = metadata.get("dist-tags") or {}
        versions = metadata.get("versions") or {}

        # dist-tags first ("latest", "next", ...)
        tagged = dist_tags.get(constraint)
        if isinstance(tagged, str):
            return ResolvedPackage(tagged, _tarball_for(source.npm, versions, tagged))

        if constraint in versions:
            return ResolvedPackage(constraint, _tarball_for(source.npm, versions, constraint))

        best = max_satisfying(list(versions), constraint)
        if best is None:
            raise ResolutionError(
                f'npm package "{source.npm}": no version matching "{constraint}" found',
                code=ErrorCode.VERSION_NOT_FOUND,
            )
        return ResolvedPackage(best, _tarball_for(source.npm, versions, best))

    async def fetch(self, source: NpmPluginSource, dest_dir: Path) -> FetchResult:
        """Download the resolved tarball and extract it into ``dest_dir``."""
        resolved = await self.resolve_version(source)
        dest_dir.mkdir(parents=True, exist_ok=True)
        tarball_path = dest_dir / TARBALL_NAME

        logger.info(f"Downloading {source.npm}@{resolved.version}")
        async with self._http() as client:
            try:
                async with client.stream("GET", resolved.tarball_url) as response:
                    if response.status_code != 200:
                        raise FetchError(
                            f'Failed to download tarball for "{source.npm}@{resolved.version}": '
                            f"{response.status_code}"
                        )
                    async with aiofiles.open(tarball_path, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            await f.write(chunk)
            except httpx.HTTPError as e:
                raise FetchError(
                    f'Failed to download tarball for "{source.npm}@{resolved.version}": {e}'
                ) from e

        try:
            await run_in_thread(extract_tarball, tarball_path, dest_dir)
        finally:
            tarball_path.unlink(missing_ok=True)

        return FetchResult(resolved_version=resolved.version)

    async def check_for_update(self, source: NpmPluginSource, current_version: str) -> bool:
        try:
            resolved = await self.resolve_version(source)
        except Exception as e:
            logger.debug(f"Update check for {source.npm} failed, assuming current: {e}")
            return False
        return resolved.version != current_version
