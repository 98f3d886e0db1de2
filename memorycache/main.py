"""
Command line entry point for MemoryCacheAI maintenance.

Runs one administrative operation against the configured stores:
- stats / embedding-info / check-dimensions: inspect the vector store and provider
- reindex: re-embed stored memories after an embedding provider change
- cleanup: run an expired, per-user or per-session cleanup now
- schedule / cancel-schedule / list-schedules: manage QStash cleanup tasks
- handle-task: process a delivered cleanup callback body from a file

SETUP REQUIRED:
1. Copy .env.example to .env and fill in credentials
2. Copy config.yaml.example to config.yaml and adjust settings
3. Install: pip install -e .
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .config import config
from .errors import MemoryCacheError
from .memory_manager import MemoryManager, create_memory_manager
from .webhook import CleanupTaskHandler

logger = logging.getLogger("memorycache.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memorycache",
        description="Session and long-term memory maintenance",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("stats", help="Show vector store statistics")
    commands.add_parser("embedding-info", help="Show the active embedding provider")

    check = commands.add_parser("check-dimensions", help="Compare stored vectors with the provider")
    check.add_argument("--sample", type=int, default=0, help="Also inspect this many stored vectors")

    cleanup = commands.add_parser("cleanup", help="Run a cleanup now")
    cleanup_kinds = cleanup.add_subparsers(dest="kind", required=True)
    cleanup_kinds.add_parser("expired", help="Delete expired memories")
    cleanup_owner = cleanup_kinds.add_parser("owner", help="Delete all data of one user")
    cleanup_owner.add_argument("user_id")
    cleanup_session = cleanup_kinds.add_parser("session", help="Delete one session")
    cleanup_session.add_argument("session_id")

    schedule = commands.add_parser("schedule", help="Schedule a cleanup through QStash")
    schedule.add_argument("--callback-url", default="", help="Callback URL (defaults to config)")
    schedule_kinds = schedule.add_subparsers(dest="kind", required=True)
    schedule_kinds.add_parser("daily", help="Daily expired-memory cleanup")
    schedule_owner = schedule_kinds.add_parser("owner", help="One-off cleanup of one user")
    schedule_owner.add_argument("user_id")
    schedule_owner.add_argument("--delay", type=int, default=0, help="Delay in seconds")
    schedule_session = schedule_kinds.add_parser("session", help="One-off deletion of one session")
    schedule_session.add_argument("session_id")
    schedule_session.add_argument("--delay", type=int, default=0, help="Delay in seconds")

    cancel = commands.add_parser("cancel-schedule", help="Cancel a QStash schedule")
    cancel.add_argument("schedule_id")

    commands.add_parser("list-schedules", help="List QStash schedules")

    reindex = commands.add_parser("reindex", help="Re-embed every stored memory with the active provider")
    reindex.add_argument("--batch-size", type=int, default=100)

    handle = commands.add_parser("handle-task", help="Process a cleanup callback body")
    handle.add_argument("body_file", type=Path)
    handle.add_argument("--signature", default=None, help="Upstash-Signature header value")

    return parser


async def execute(manager: MemoryManager, args: argparse.Namespace) -> Any:
    """Run the selected command and return its JSON-serializable result."""
    command = args.command

    if command == "stats":
        return await manager.get_memory_stats()

    if command == "embedding-info":
        return manager.get_embedding_info()

    if command == "check-dimensions":
        report = await manager.check_dimensions(sample_size=args.sample)
        return report.to_dict()

    if command == "cleanup":
        if args.kind == "expired":
            report = await manager.cleanup_expired_memories()
        elif args.kind == "owner":
            report = await manager.cleanup_user_memories(args.user_id)
        else:
            report = await manager.cleanup_session(args.session_id)
        return report.to_dict()

    if command == "schedule":
        callback_url = args.callback_url or config.tasks.callback_url
        if args.kind == "daily":
            return {"schedule_id": await manager.schedule_cleanup(callback_url)}
        if args.kind == "owner":
            return {"message_id": await manager.schedule_owner_cleanup(callback_url, args.user_id, args.delay)}
        return {"message_id": await manager.schedule_session_cleanup(callback_url, args.session_id, args.delay)}

    if command == "cancel-schedule":
        await manager.cancel_schedule(args.schedule_id)
        return {"cancelled": args.schedule_id}

    if command == "list-schedules":
        return await manager.list_schedules()

    if command == "reindex":
        return {"reindexed": await manager.reindex(batch_size=args.batch_size)}

    if command == "handle-task":
        handler = CleanupTaskHandler(manager)
        return await handler.handle(args.body_file.read_bytes(), signature=args.signature)

    raise ValueError(f"Unknown command: {command}")


async def run(args: argparse.Namespace) -> bool:
    """
    Set up logging and the memory manager, then run one command.

    Returns:
        True if the command completed successfully.
    """
    logger = config.setup_logging()

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return False

    manager = None
    try:
        manager = await create_memory_manager(config)
        result = await execute(manager, args)
        print(json.dumps(result, indent=2, default=str))
        return True

    except MemoryCacheError as e:
        logger.error(f"{args.command} failed: {e}")
        return False

    except OSError as e:
        logger.error(f"{args.command} failed: {e}")
        return False

    finally:
        if manager:
            await manager.close()


def main(argv: list[str] | None = None):
    """Entry point for the application."""
    args = build_parser().parse_args(argv)

    print("""
    ==============================================================
    |     MemoryCacheAI                                          |
    |     Session & Long-Term Memory Maintenance                 |
    ==============================================================
    """, file=sys.stderr)

    try:
        success = asyncio.run(run(args))
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"\nFatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
