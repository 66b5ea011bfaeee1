"""
Action metadata extraction.

Scripts declare metadata in comment frontmatter near the top of the file:

    #!/bin/bash
    # kadai:name Deploy Staging
    # kadai:emoji 🚀
    # kadai:confirm true

JS/TS scripts use `//` instead of `#`. Only the first 20 lines are scanned.
Unknown keys are ignored so newer scripts still load on older kadai.
"""

import logging
import re
from pathlib import Path
from typing import Any

import aiofiles

from kadai.models.action import ActionMeta

logger = logging.getLogger(__name__)

META_PATTERN = re.compile(r"^(?:#|//)\s*kadai:(\w+)\s+(.+)$")
MAX_SCAN_LINES = 20

_STRING_KEYS = {"name", "emoji", "description"}
_BOOL_KEYS = {"confirm", "hidden", "interactive"}


def parse_metadata(content: str) -> dict[str, Any]:
    """Parse `kadai:<key> <value>` frontmatter from the first lines of a script."""
    metadata: dict[str, Any] = {}

    for line in content.split("\n")[:MAX_SCAN_LINES]:
        match = META_PATTERN.match(line.rstrip("\r"))
        if not match:
            continue

        key, value = match.group(1), match.group(2).strip()
        if not value:
            continue

        if key in _STRING_KEYS:
            metadata[key] = value
        elif key in _BOOL_KEYS:
            metadata[key] = value == "true"

    return metadata


def infer_name_from_filename(filename: str) -> str:
    """'reset-db_fast.sh' → 'Reset Db Fast'."""
    stem = re.sub(r"\.[^.]+$", "", filename)
    spaced = re.sub(r"[-_]", " ", stem)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def metadata_from_content(content: str, filename: str) -> ActionMeta:
    """Build ActionMeta from script content, inferring the name if missing."""
    frontmatter = parse_metadata(content)
    if not frontmatter.get("name"):
        frontmatter["name"] = infer_name_from_filename(filename)
    return ActionMeta(**frontmatter)


async def read_head(file_path: Path, max_lines: int = MAX_SCAN_LINES) -> str:
    """Read at most ``max_lines`` lines from the top of a file."""
    lines: list[str] = []
    async with aiofiles.open(file_path, "r", encoding="utf-8", errors="replace") as f:
        async for line in f:
            lines.append(line)
            if len(lines) >= max_lines:
                break
    return "".join(lines)


async def extract_metadata(file_path: Path) -> ActionMeta:
    """Read a script's frontmatter, falling back to a filename-derived name.

    Raises:
        OSError: If the file cannot be read
    """
    content = await read_head(file_path)
    return metadata_from_content(content, file_path.name)
