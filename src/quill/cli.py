"""CLI entry point for inspecting and compressing stored sessions."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Any

from quill.core.compression.engine import get_compression_stats
from quill.core.compression.utils import excerpt
from quill.core.session.pool import SessionPool
from quill.core.sessions import SessionStore
from quill.core.settings import SettingsManager
from quill.types import CompressionConfig, CompressionResult


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="quill",
        description="Inspect context usage and compress coding assistant sessions",
    )
    parser.add_argument("-m", "--model", help="Model name used to look up context limits")
    parser.add_argument("--data-dir", help="Session directory (default: ~/.quill/sessions)")
    parser.add_argument("--cwd", default=os.getcwd(), help="Working directory for project settings")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("sessions", help="List stored sessions")

    usage = sub.add_parser("usage", help="Show context usage for a session")
    usage.add_argument("session_id")

    stats = sub.add_parser("stats", help="Show message statistics for a session")
    stats.add_argument("session_id")

    compress = sub.add_parser("compress", help="Compress a session's history")
    compress.add_argument("session_id")
    compress.add_argument("--strategy", choices=["summary", "sliding-window", "importance"])
    compress.add_argument("--threshold", type=int, help="Usage percentage that triggers compression")
    compress.add_argument("--keep", type=int, dest="preserve_recent", help="Number of recent messages to keep")
    compress.add_argument("--dry-run", action="store_true", help="Show the result without applying it")

    return parser.parse_args(argv)


def _compression_config(settings: SettingsManager, args: argparse.Namespace) -> CompressionConfig:
    """Configured compression settings with CLI flags applied on top.

    An explicit compress command falls back to the defaults when nothing is configured.
    """
    config = settings.get_compression_config() or CompressionConfig()
    updates: dict[str, Any] = {}
    if args.strategy:
        updates["strategy"] = args.strategy
    if args.threshold is not None:
        updates["threshold"] = args.threshold
    if args.preserve_recent is not None:
        updates["preserve_recent_messages"] = args.preserve_recent
    if not updates:
        return config
    return CompressionConfig.model_validate({**config.model_dump(), **updates})


def _print_result(result: CompressionResult, before: int) -> None:
    print(result.message)
    if not result.compressed:
        return
    after = len(result.compressed_messages or [])
    print(f"Strategy: {result.strategy}")
    print(f"Reduction: {result.reduction_percentage}%")
    print(f"Tokens: {result.original_token_count:,} -> {result.compressed_token_count:,}")
    print(f"Messages: {before} -> {after}")
    if result.summary:
        print(f"Summary: {excerpt(result.summary, 200)}")


async def run_command(args: argparse.Namespace) -> int:
    settings = SettingsManager.create(args.cwd)
    if args.model:
        settings.apply_overrides({"defaultModel": args.model})
    if args.data_dir:
        settings.apply_overrides({"dataDir": args.data_dir})

    store = SessionStore(settings.get_data_dir())

    if args.command == "sessions":
        for session in store.list_sessions():
            print(f"{session.id}  {len(session.messages):>4} messages  {session.title}")
        return 0

    config = _compression_config(settings, args) if args.command == "compress" else settings.get_compression_config()
    pool = SessionPool(store, model_name=settings.get_default_model(), compression=config)
    conversation = pool.open(args.session_id)
    if conversation is None:
        print(f"Error: session not found: {args.session_id}", file=sys.stderr)
        return 1

    if args.command == "usage":
        print(conversation.format_context_status())
        warning = conversation.check_context_warning()
        if warning:
            print(warning)
        return 0

    if args.command == "stats":
        stats = get_compression_stats(conversation.messages)
        print(f"Messages: {stats.total_messages}")
        print(f"User: {stats.user_messages}  Assistant: {stats.assistant_messages}  Tool: {stats.tool_messages}")
        print(f"Tool calls: {stats.tool_calls}")
        print(f"Code blocks: {stats.code_blocks}")
        print(f"Errors mentioned: {stats.errors}")
        print(f"Estimated tokens: {stats.estimated_tokens:,}")
        return 0

    before = len(conversation.messages)
    print(conversation.format_context_status())
    if args.dry_run:
        result = conversation.preview_compression()
    else:
        result = await conversation.check_and_perform_compression()
    if result is None:
        print("Compression is not configured.")
        return 0
    _print_result(result, before)
    if result.compressed and not args.dry_run:
        print(conversation.format_context_status())
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run_command(args)))


if __name__ == "__main__":
    main()
