"""
Command resolution and execution for actions.

Resolution is three-tier and never fails:
1. Shebang: the script author's explicit intent
2. Runtime chain: first interpreter for the runtime found on PATH
3. Hardcoded fallback per runtime
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional

from kadai.lib.which import WhichCache
from kadai.models.action import Action, Runtime

logger = logging.getLogger(__name__)

ENV_SHEBANG = "/usr/bin/env"

# Per-runtime interpreter chains, tried in priority order
RUNTIME_CHAINS: dict[Runtime, list[list[str]]] = {
    Runtime.PYTHON: [["uv", "run"], ["python3"], ["python"]],
    Runtime.BASH: [["bash"]],
    Runtime.BUN: [["bun", "run"]],
    Runtime.NODE: [["bun", "run"], ["node"]],
    Runtime.EXECUTABLE: [],
}

FALLBACK_COMMANDS: dict[Runtime, list[str]] = {
    Runtime.BUN: ["bun", "run"],
    Runtime.BASH: ["bash"],
    Runtime.PYTHON: ["python3"],
    Runtime.NODE: ["node"],
    Runtime.EXECUTABLE: [],
}


def parse_shebang_command(shebang: Optional[str], file_path: str) -> Optional[list[str]]:
    """Turn a shebang line into an argv ending with ``file_path``.

    Handles `#!/usr/bin/env interp args`, `#!/usr/bin/env -S interp args`
    and direct interpreters like `#!/usr/bin/perl -w`. Returns None when
    there is nothing usable.
    """
    if not shebang or not shebang.startswith("#!"):
        return None

    parts = shebang[2:].split()
    if not parts:
        return None

    interpreter, args = parts[0], parts[1:]

    if interpreter == ENV_SHEBANG:
        if args and args[0] == "-S":
            args = args[1:]
        if not args:
            return None
        return [*args, file_path]

    return [*parts, file_path]


def resolve_from_chain(
    runtime: Runtime,
    file_path: str,
    which_cache: WhichCache,
) -> Optional[list[str]]:
    for candidate in RUNTIME_CHAINS.get(runtime, []):
        if which_cache.which(candidate[0]):
            return [*candidate, file_path]
    return None


def resolve_command(action: Action, which_cache: WhichCache) -> list[str]:
    """Pick the exact argv used to run ``action``."""
    command = parse_shebang_command(action.shebang, action.file_path)
    if command:
        return command

    command = resolve_from_chain(action.runtime, action.file_path, which_cache)
    if command:
        return command

    return [*FALLBACK_COMMANDS.get(action.runtime, []), action.file_path]


def build_action_env(extra: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Process environment overlaid with config-provided variables."""
    env = dict(os.environ)
    if extra:
        env.update(extra)
    return env


def run_action(
    action: Action,
    *,
    cwd: Path,
    env: Optional[dict[str, str]] = None,
    which_cache: Optional[WhichCache] = None,
) -> int:
    """Run an action in the foreground, inheriting stdio. Returns the exit code."""
    command = resolve_command(action, which_cache or WhichCache())
    logger.info(f"Running action '{action.id}': {' '.join(command)}")
    try:
        completed = subprocess.run(command, cwd=cwd, env=build_action_env(env))
    except FileNotFoundError as e:
        logger.error(f"Cannot run action '{action.id}': {e}")
        return 127
    except PermissionError as e:
        logger.error(f"Cannot run action '{action.id}': {e}")
        return 126
    return completed.returncode
