"""
Async subprocess and thread helpers used by the fetchers, dependency installs and
history enrichment.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of a finished subprocess."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    *args: str,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run a command with captured output.

    The child is killed if the awaiting task is cancelled or the timeout
    expires, so an abandoned sync never leaves a stray git or npm behind.

    Raises:
        FileNotFoundError: If the executable does not exist
        asyncio.TimeoutError: If ``timeout`` expires
    """
    logger.debug(f"Running: {' '.join(args)}" + (f" (cwd={cwd})" if cwd else ""))
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except (asyncio.CancelledError, asyncio.TimeoutError):
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
        stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
    )


async def run_in_thread(func, /, *args, **kwargs):
    """Run blocking work in a thread and wait for it even when cancelled.

    A cancelled ``asyncio.to_thread`` returns control while the thread keeps
    running. Here the caller's cleanup only starts after the thread has
    finished touching the filesystem.
    """
    future = asyncio.ensure_future(asyncio.to_thread(func, *args, **kwargs))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        await asyncio.gather(future, return_exceptions=True)
        raise
