from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from playerscout.application.use_cases import ResolutionOrchestrator
from playerscout.domain.entities import ContentRef, MediaType
from playerscout.infrastructure.composition import build_orchestrator
from playerscout.infrastructure.config import load_config
from playerscout.infrastructure.logging.setup import configure_logging
from playerscout.infrastructure.sources import VideoHubSource

log = structlog.get_logger(__name__)


def _add_episode_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--season", type=int, default=None, help="Season number.")
    parser.add_argument("--episode", type=int, default=None, help="Episode number.")
    parser.add_argument(
        "--series",
        action="store_true",
        help="Treat the id as a series (implied by --season/--episode).",
    )


def _parse_id_override(value: str) -> tuple[str, str]:
    source, sep, content_id = value.partition("=")
    if not sep or not source or not content_id:
        raise argparse.ArgumentTypeError(f"expected SOURCE=ID, got {value!r}")
    return source, content_id


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="playerscout")

    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--relay-host",
        default=None,
        help="Override the CORS relay host of every source ('' = direct).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search one source.")
    search.add_argument("source")
    search.add_argument("query")

    search_all = commands.add_parser("search-all", help="Search every source.")
    search_all.add_argument("query")

    resolve = commands.add_parser("resolve", help="Resolve a player on one source.")
    resolve.add_argument("source")
    resolve.add_argument("content_id")
    _add_episode_args(resolve)

    fallback = commands.add_parser(
        "fallback", help="Resolve a player trying sources in priority order."
    )
    fallback.add_argument("content_id")
    fallback.add_argument(
        "--sources",
        default=None,
        help="Comma-separated priority list (default: sources.priority).",
    )
    fallback.add_argument(
        "--id",
        dest="overrides",
        action="append",
        type=_parse_id_override,
        default=[],
        metavar="SOURCE=ID",
        help="Per-source content id (repeatable).",
    )
    _add_episode_args(fallback)

    series = commands.add_parser("series", help="List seasons and episodes.")
    series.add_argument("source")
    series.add_argument("content_id")

    voices = commands.add_parser("voices", help="List videohub voice tracks.")
    voices.add_argument("content_id")

    return parser.parse_args(argv)


def _content_ref(args: argparse.Namespace, source: str = "") -> ContentRef:
    is_series = args.series or args.season is not None or args.episode is not None
    return ContentRef(
        source_name=source,
        content_id=args.content_id,
        media_type=MediaType.SERIES if is_series else MediaType.MOVIE,
        season=args.season,
        episode=args.episode,
    )


def _emit(payload: Any) -> None:
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        payload = dataclasses.asdict(payload)
    elif isinstance(payload, dict):
        payload = {
            k: dataclasses.asdict(v) if dataclasses.is_dataclass(v) else v
            for k, v in payload.items()
        }
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


async def _run(args: argparse.Namespace, orchestrator: ResolutionOrchestrator) -> int:
    try:
        if args.command == "search":
            result = await orchestrator.search(args.source, args.query)
            _emit(result)
            return 0 if result.success else 1

        if args.command == "search-all":
            _emit(await orchestrator.search_all(args.query))
            return 0

        if args.command == "resolve":
            player = await orchestrator.resolve_player(
                args.source, _content_ref(args, args.source)
            )
            _emit(player)
            return 0 if player.success else 1

        if args.command == "fallback":
            order = args.sources.split(",") if args.sources else None
            player = await orchestrator.resolve_from_priority_list(
                order, _content_ref(args), dict(args.overrides)
            )
            _emit(player)
            return 0 if player.success else 1

        if args.command == "series":
            index = await orchestrator.resolve_series_index(
                args.source, args.content_id
            )
            _emit(index)
            return 0 if index else 1

        if args.command == "voices":
            adapter = orchestrator.get(VideoHubSource.name)
            if not isinstance(adapter, VideoHubSource):
                log.error("source_unavailable", source=VideoHubSource.name)
                return 1
            voices = await adapter.list_voices(args.content_id)
            _emit(voices)
            return 0 if voices else 1

        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await orchestrator.cleanup()


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config exactly once, configures logging, then runs one command.
    """

    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.relay_host is not None:
        cli_overrides["relay_host"] = args.relay_host
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )

    # stdout carries the JSON result; every log line goes to stderr.
    configure_logging(config, stream=sys.stderr)

    return asyncio.run(_run(args, build_orchestrator(config)))


if __name__ == "__main__":
    raise SystemExit(start())
