#!/usr/bin/env python3
"""
Query an Oxford game server from the command line.

Usage:
    python -m scripts.query_server server
    python -m scripts.query_server players --rate-limit none
    python -m scripts.query_server command ":h Restart in 5 minutes"
    python -m scripts.query_server killlogs --json-logs -v

The server key is read from --server-key or the OXFD_SERVER_KEY env var.
Output is the JSON response on stdout. Exit code 1 on API errors, 2 on
invalid options.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from oxfd import OxfordAPI, OxfordAPIError, RateLimitError
from oxfd.config import DEFAULT_BASE_URL, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_MS
from oxfd.logging_config import setup_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

# Resource name -> OxfordAPI read method
READ_RESOURCES: dict[str, str] = {
    "server": "get_server",
    "players": "get_players",
    "queue": "get_queue",
    "bans": "get_bans",
    "vehicles": "get_vehicles",
    "robberies": "get_robberies",
    "killlogs": "get_kill_logs",
    "commandlogs": "get_command_logs",
    "modcalls": "get_mod_calls",
    "radiocalls": "get_radio_calls",
    "joinlogs": "get_join_logs",
}


def to_jsonable(result: Any) -> Any:
    """Convert contract models (or lists of them) to wire-format dicts."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True)
    if isinstance(result, list):
        return [to_jsonable(item) for item in result]
    return result


async def run_query(api: OxfordAPI, resource: str, command: str | None = None) -> Any:
    """
    Run one query against the API.

    Args:
        api: Client instance.
        resource: A READ_RESOURCES key, or "command".
        command: Command text when resource is "command".

    Returns:
        JSON-serializable result.
    """
    if resource == "command":
        if command is None:
            raise ValueError("command text is required for the 'command' resource")
        return to_jsonable(await api.execute_command(command))
    method = getattr(api, READ_RESOURCES[resource])
    return to_jsonable(await method())


def _rate_limit_arg(value: str) -> str | float:
    if value in ("auto", "none"):
        return value
    try:
        return float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected 'auto', 'none' or seconds, got {value!r}"
        ) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query an Oxford game server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "resource",
        choices=[*READ_RESOURCES, "command"],
        help="Resource to read, or 'command' to execute an admin command",
    )
    parser.add_argument(
        "command_text",
        nargs="?",
        default=None,
        help="Command text (only with 'command')",
    )
    parser.add_argument(
        "--server-key",
        type=str,
        default=None,
        help="API key (default: OXFD_SERVER_KEY env var)",
    )
    parser.add_argument(
        "--rate-limit",
        type=_rate_limit_arg,
        default="auto",
        help="'auto', 'none', or seconds between requests (default: auto)",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=DEFAULT_MAX_RETRIES,
        help=f"Retries on 429 (default: {DEFAULT_MAX_RETRIES})",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=DEFAULT_TIMEOUT_MS,
        help=f"Per-attempt timeout in ms (default: {DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=DEFAULT_BASE_URL,
        help="Override API base URL",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines on stderr",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    async with OxfordAPI(
        args.server_key,
        rate_limit=args.rate_limit,
        max_retries=args.max_retries,
        timeout_ms=args.timeout_ms,
        base_url=args.base_url,
    ) as api:
        try:
            result = await run_query(api, args.resource, args.command_text)
        except RateLimitError as e:
            logger.error("Rate limited", extra={"retry_after": e.retry_after})
            print(f"error: {e.message} (retry after {e.retry_after or '?'}s)", file=sys.stderr)
            return 1
        except OxfordAPIError as e:
            print(f"error [{e.status}]: {e.message}", file=sys.stderr)
            return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        json_format=args.json_logs,
    )

    if args.resource == "command" and not args.command_text:
        parser.error("'command' requires the command text")

    try:
        return asyncio.run(_run(args))
    except (ValueError, TypeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
