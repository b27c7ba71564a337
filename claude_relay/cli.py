"""CLI entry point for the relay.

Usage:
    claude-relay run "Explain this repository"
    claude-relay run --session-id abc123 --image shot.png "What is wrong here?"
    claude-relay serve --port 3010
"""
from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import mimetypes
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console

from .engine.config import RelayConfig
from .engine.errors import RelayError
from .engine.models import ImageAttachment, QueryOptions

logger = logging.getLogger(__name__)


class ConsoleSink:
    """Prints each event as JSON on the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self.session_id: str | None = None

    def send(self, event: dict[str, Any]) -> None:
        self._console.print_json(data=event)

    def set_session_id(self, session_id: str) -> None:
        self.session_id = session_id


def _split_tools(value: str | None) -> list[str]:
    if not value:
        return []
    return [t.strip() for t in value.split(",") if t.strip()]


def _image_to_attachment(path: str) -> ImageAttachment:
    """Read an image file into a data URI attachment."""
    p = Path(path)
    mime_type = mimetypes.guess_type(p.name)[0] or "image/png"
    payload = base64.b64encode(p.read_bytes()).decode("ascii")
    return ImageAttachment(data=f"data:{mime_type};base64,{payload}")


def _configure_logging(level: str, log_file: str | None) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    if log_file:
        file_handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def _load_config(path: str | None) -> RelayConfig:
    if path:
        from .engine.yaml_config import load_yaml_config
        return load_yaml_config(path)
    return RelayConfig.from_env()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-relay",
        description="Relay prompts to the Claude Code CLI and stream its output",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="YAML config file (default: RELAY_* env vars)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file (rotated)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a single prompt and print events")
    run.add_argument("prompt", help="Prompt text")
    run.add_argument("--session-id", default=None, help="Resume this session")
    run.add_argument("--cwd", default=None, help="Working directory for the assistant")
    run.add_argument("--model", default=None, help="Model to use")
    run.add_argument(
        "--allowed-tools", default=None, help="Comma-separated allowed tools",
    )
    run.add_argument(
        "--disallowed-tools", default=None, help="Comma-separated disallowed tools",
    )
    run.add_argument(
        "--image", action="append", default=[], metavar="FILE",
        help="Attach an image file (repeatable)",
    )

    serve = sub.add_parser("serve", help="Run the WebSocket server")
    serve.add_argument("--host", default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port")
    return parser


async def _run_once(config: RelayConfig, args: argparse.Namespace) -> int:
    from .engine.runner import ClaudeCliRunner

    options = QueryOptions(
        session_id=args.session_id,
        cwd=args.cwd,
        model=args.model,
        images=[_image_to_attachment(p) for p in args.image],
        allowed_tools=_split_tools(args.allowed_tools),
        disallowed_tools=_split_tools(args.disallowed_tools),
    )
    runner = ClaudeCliRunner(config)
    try:
        await runner.query(args.prompt, options, ConsoleSink())
    except RelayError as exc:
        logger.debug("Query failed: %s", exc)
        return 1
    return 0


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    config = _load_config(args.config)
    level = "DEBUG" if args.verbose else config.log_level
    _configure_logging(level, args.log_file)

    if args.command == "serve":
        from .server.ws_server import RelayServer

        if args.host is not None:
            config.host = args.host
        if args.port is not None:
            config.port = args.port
        try:
            asyncio.run(RelayServer(config).serve_forever())
        except KeyboardInterrupt:
            print("\nShutting down.")
        return

    try:
        code = asyncio.run(_run_once(config, args))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(1)
    sys.exit(code)
