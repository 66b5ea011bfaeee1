"""
Action discovery.

Walks an actions/ directory and builds an Action for every script with a
recognized extension:

    actions/
    ├── hello.sh              → id "hello",          category []
    ├── database/
    │   └── reset.py          → id "database/reset", category ["database"]
    └── _helpers/lib.sh       → skipped (leading underscore)

Discovery is best-effort over an untrusted tree: unreadable directories or
files are skipped, and nesting deeper than MAX_DEPTH is ignored.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from kadai.core.metadata import metadata_from_content, read_head
from kadai.lib.process import run_command
from kadai.models.action import Action, ActionOrigin, Runtime

logger = logging.getLogger(__name__)

# Depth 0 is the actions directory itself; 3 is the deepest directory scanned
MAX_DEPTH = 3
MAX_SHEBANG_LENGTH = 256

EXTENSION_RUNTIMES: dict[str, Runtime] = {
    ".ts": Runtime.BUN,
    ".js": Runtime.BUN,
    ".mjs": Runtime.BUN,
    ".sh": Runtime.BASH,
    ".bash": Runtime.BASH,
    ".py": Runtime.PYTHON,
}


def runtime_from_extension(ext: str) -> Runtime:
    return EXTENSION_RUNTIMES.get(ext, Runtime.EXECUTABLE)


def parse_shebang_line(content: str) -> Optional[str]:
    """Return the first line if it is a shebang."""
    first_line = content.split("\n", 1)[0][:MAX_SHEBANG_LENGTH].rstrip("\r")
    return first_line if first_line.startswith("#!") else None


async def load_actions(
    actions_dir: Path,
    origin: Optional[ActionOrigin] = None,
    *,
    with_dates: bool = False,
) -> list[Action]:
    """Discover actions under ``actions_dir``, sorted by display name.

    Args:
        actions_dir: Directory to scan
        origin: Origin tag for every action (defaults to local)
        with_dates: Assign ``added_at`` from git history (one query per scan)

    Returns:
        Discovered actions; empty if the directory is missing or unreadable
    """
    origin = origin or ActionOrigin.local()
    actions: list[Action] = []
    await _scan_directory(actions_dir, [], actions, 0, origin)

    if with_dates and actions:
        root = actions_dir.absolute()
        added = await get_added_dates(root)
        if added:
            for i, action in enumerate(actions):
                rel = Path(action.file_path).relative_to(root).as_posix()
                if rel in added:
                    actions[i] = action.model_copy(update={"added_at": added[rel]})

    actions.sort(key=lambda a: (a.meta.name.lower(), a.id))
    logger.debug(f"Loaded {len(actions)} actions from {actions_dir}")
    return actions


async def _scan_directory(
    current_dir: Path,
    category: list[str],
    actions: list[Action],
    depth: int,
    origin: ActionOrigin,
) -> None:
    if depth > MAX_DEPTH:
        return

    try:
        entries = sorted(current_dir.iterdir())
    except OSError:
        return

    files: list[Path] = []
    for entry in entries:
        if entry.name.startswith(("_", ".")):
            continue
        try:
            if entry.is_dir():
                await _scan_directory(
                    entry, [*category, entry.name], actions, depth + 1, origin
                )
            elif entry.is_file() and entry.suffix in EXTENSION_RUNTIMES:
                files.append(entry)
        except OSError:
            continue

    loaded = await asyncio.gather(
        *(_load_action(path, category, origin) for path in files)
    )
    actions.extend(action for action in loaded if action is not None)


async def _load_action(
    file_path: Path,
    category: list[str],
    origin: ActionOrigin,
) -> Optional[Action]:
    try:
        content = await read_head(file_path)
    except (OSError, UnicodeError) as e:
        logger.debug(f"Skipping unreadable action {file_path}: {e}")
        return None

    return Action(
        id="/".join([*category, file_path.stem]),
        meta=metadata_from_content(content, file_path.name),
        file_path=str(file_path.absolute()),
        category=list(category),
        runtime=runtime_from_extension(file_path.suffix),
        shebang=parse_shebang_line(content),
        origin=origin,
    )


async def get_added_dates(directory: Path) -> dict[str, datetime]:
    """Map each file (relative posix path) to the time it was first committed.

    A single `git log` covers the whole tree. Outside a git work tree, or
    without git installed, returns {}.
    """
    try:
        result = await run_command(
            "git", "-C", str(directory),
            "-c", "core.quotepath=off",
            "log", "--diff-filter=A", "--name-only", "--relative",
            "--format=%x00%at", "--", ".",
        )
    except OSError as e:
        logger.debug(f"git unavailable for history lookup: {e}")
        return {}

    if not result.ok:
        return {}

    added: dict[str, datetime] = {}
    timestamp: Optional[datetime] = None
    # Newest commits come first, so later entries overwrite with older adds
    for line in result.stdout.splitlines():
        if line.startswith("\x00"):
            try:
                timestamp = datetime.fromtimestamp(int(line[1:]), tz=timezone.utc)
            except ValueError:
                timestamp = None
        elif line.strip() and timestamp is not None:
            added[line.strip()] = timestamp
    return added
