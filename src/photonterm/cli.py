"""Command-line interface for photonterm.

Provides the main entry point for running a program interactively
against the remote runner, or serving the HTTP bridge.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ABORTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="photonterm",
        description="Run programs on a remote runner with an interactive terminal",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/photonterm.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run a source file interactively")
    run_parser.add_argument("file", type=Path, help="Source file to execute")
    run_parser.add_argument(
        "--url", type=str, default=None,
        help="Runner URL (overrides channel.url)",
    )
    indent = run_parser.add_mutually_exclusive_group()
    indent.add_argument(
        "--auto-indent", dest="auto_indent", action="store_true", default=None,
        help="Ask the runner to auto-indent the code",
    )
    indent.add_argument(
        "--no-auto-indent", dest="auto_indent", action="store_false",
        help="Send the code exactly as written",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP bridge")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    return parser.parse_args(argv)


async def _run_file(settings, args) -> int:
    """Run one source file interactively and map the outcome to an exit code."""
    from photonterm.channel.base import ChannelError
    from photonterm.channel.socketio_channel import SocketIOChannel
    from photonterm.console import ConsoleSession
    from photonterm.domain.models import SessionState
    from photonterm.session.controller import SessionController

    code = args.file.read_text(encoding="utf-8")

    channel = SocketIOChannel.from_config(settings.channel)
    controller = SessionController.from_config(settings.session, channel)
    console = ConsoleSession(controller, channel)

    try:
        state = await console.run(code, auto_indent=args.auto_indent)
    except ChannelError as e:
        print(f"× {e}", file=sys.stderr)
        return EXIT_ERROR

    if state is SessionState.ENDED:
        return EXIT_OK
    return EXIT_ABORTED


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the photonterm CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return EXIT_OK

    from photonterm.config.settings import load_settings
    from photonterm.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "run":
        if not args.file.is_file():
            print(f"× No such file: {args.file}", file=sys.stderr)
            return EXIT_ERROR
        if args.url:
            settings.channel.url = args.url
        logger.info("Running %s on %s", args.file, settings.channel.url)
        return asyncio.run(_run_file(settings, args))

    elif args.command == "serve":
        from photonterm.endpoint.server import create_app
        import uvicorn

        if args.host:
            settings.server.host = args.host
        if args.port:
            settings.server.port = args.port
        logger.info("Starting HTTP bridge for runner %s", settings.channel.url)
        app = create_app(settings=settings)
        uvicorn.run(app, host=settings.server.host, port=settings.server.port)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
