"""
kadai CLI.

Usage:
    kadai init                         # Create .kadai/actions with a sample action
    kadai list                         # Actions as JSON (hidden ones omitted)
    kadai list --all                   # Include hidden actions
    kadai run ID                       # Run an action by id
    kadai run ID --yes                 # Skip the confirmation prompt
    kadai sync                         # Fetch or update npm/github plugins
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from kadai import __version__
from kadai.config import KADAI_DIR_NAME, find_kadai_dir, load_config
from kadai.core.aggregator import ActionAggregator
from kadai.core.runner import run_action
from kadai.lib.errors import ConfigError
from kadai.lib.logger import get_logger, setup_logging
from kadai.lib.which import WhichCache
from kadai.models.plugin import PluginSyncStatus

logger = get_logger(__name__)

SAMPLE_ACTION = """#!/bin/bash
# kadai:name Hello World
# kadai:emoji 👋
# kadai:description A sample action, edit or delete this file

echo "Hello from kadai!"
echo "Add your own scripts to .kadai/actions/ to get started."
"""


# --- Helpers ---


def _require_kadai_dir() -> Path:
    kadai_dir = find_kadai_dir(Path.cwd())
    if kadai_dir is None:
        print(f"No {KADAI_DIR_NAME} directory found. Run 'kadai init' first.", file=sys.stderr)
        sys.exit(1)
    return kadai_dir


def _load_aggregator(kadai_dir: Path, which_cache: Optional[WhichCache] = None) -> ActionAggregator:
    try:
        config = load_config(kadai_dir)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    return ActionAggregator(kadai_dir, config, which_cache=which_cache)


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


# --- Commands ---


def cmd_init(args: argparse.Namespace) -> None:
    """Create .kadai/actions/ in the current directory."""
    kadai_dir = Path.cwd() / KADAI_DIR_NAME
    actions_dir = kadai_dir / "actions"
    actions_dir.mkdir(parents=True, exist_ok=True)

    sample = actions_dir / "hello.sh"
    if sample.exists():
        print(f"Already initialized: {kadai_dir}")
        return

    sample.write_text(SAMPLE_ACTION, encoding="utf-8")
    sample.chmod(0o755)
    print(f"Initialized {kadai_dir}")
    print(f"  Sample action: {sample}")


def cmd_list(args: argparse.Namespace) -> None:
    """Print discovered actions as JSON."""
    kadai_dir = _require_kadai_dir()
    aggregator = _load_aggregator(kadai_dir)
    actions = asyncio.run(aggregator.load())

    if not args.all:
        actions = [a for a in actions if not a.meta.hidden]

    output = [
        {
            "id": a.id,
            "name": a.meta.name,
            "emoji": a.meta.emoji,
            "description": a.meta.description,
            "category": a.category,
            "runtime": a.runtime.value,
            "confirm": a.meta.confirm,
            "origin": a.origin.plugin_name or a.origin.type,
        }
        for a in actions
    ]
    print(json.dumps(output, indent=2, ensure_ascii=False))


def cmd_run(args: argparse.Namespace) -> None:
    """Run one action in the foreground and exit with its code."""
    kadai_dir = _require_kadai_dir()
    which_cache = WhichCache()
    aggregator = _load_aggregator(kadai_dir, which_cache)
    asyncio.run(aggregator.load())

    action = aggregator.find(args.id)
    if action is None:
        print(f'Error: action "{args.id}" not found', file=sys.stderr)
        sys.exit(1)

    if action.meta.confirm and not args.yes:
        if not sys.stdin.isatty() or not _confirm(f"Run {action.meta.name}?"):
            print("Cancelled.", file=sys.stderr)
            sys.exit(1)

    code = run_action(
        action,
        cwd=kadai_dir.parent,
        env=aggregator.config.env,
        which_cache=which_cache,
    )
    sys.exit(code)


def cmd_sync(args: argparse.Namespace) -> None:
    """Sync npm/github plugins into the cache."""
    kadai_dir = _require_kadai_dir()
    aggregator = _load_aggregator(kadai_dir)

    if not aggregator.plugins:
        print("No plugins configured.")
        return

    def on_status(name: str, status: PluginSyncStatus) -> None:
        if status != PluginSyncStatus.SYNCING:
            print(f"  {name:<30}  {status.value}")

    async def run() -> None:
        await aggregator.load()
        await aggregator.refresh(on_status)

    asyncio.run(run())

    failed = [s for s in aggregator.statuses.values() if s == PluginSyncStatus.ERROR]
    for failure in aggregator.failures.values():
        print(f"\n{failure.plugin}: {failure.title}", file=sys.stderr)
        print(f"  {failure.message}", file=sys.stderr)
        if failure.details:
            print(f"  {failure.details}", file=sys.stderr)

    cached = sum(1 for a in aggregator.actions if a.origin.type == "plugin")
    print(f"\n{len(aggregator.statuses) - len(failed)} synced, {len(failed)} failed, {cached} plugin actions")
    if failed:
        sys.exit(1)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="kadai",
        description="kadai: discover and run project scripts",
    )
    parser.add_argument("--version", action="version", version=f"kadai {__version__}")
    parser.add_argument(
        "--log-level",
        help="Log level for diagnostics on stderr (default: KADAI_LOG_LEVEL or WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command")

    # init
    subparsers.add_parser("init", help="Create .kadai/actions with a sample action")

    # list
    list_parser = subparsers.add_parser("list", help="List actions as JSON")
    list_parser.add_argument(
        "--all", action="store_true",
        help="Include hidden actions",
    )

    # run
    run_parser = subparsers.add_parser("run", help="Run an action")
    run_parser.add_argument("id", help="Action id, e.g. database/reset")
    run_parser.add_argument(
        "--yes", "-y", action="store_true",
        help="Don't ask for confirmation",
    )

    # sync
    subparsers.add_parser("sync", help="Fetch or update npm/github plugins")

    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    if args.command == "init":
        cmd_init(args)
    elif args.command == "list":
        cmd_list(args)
    elif args.command == "run":
        cmd_run(args)
    elif args.command == "sync":
        cmd_sync(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
