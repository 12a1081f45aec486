from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Sequence, TextIO

from dotenv import load_dotenv

from .client import SheetClient
from .config import AppConfig, load_config
from .screen import Screen, render_text
from .server import create_app

LOGGER = logging.getLogger("sheet_bridge")

CONSOLE_HELP = "commands: run | send <3 digits> | reload | stop | dismiss | quit"


def _load_env_files(config_path: Path | None) -> None:
    """Load environment variables from .env files."""

    # Load default .env in current working directory if present
    load_dotenv(override=False)

    # Load .env placed next to the config file if it exists
    if config_path is not None:
        config_env = config_path.parent / ".env"
        if config_env.exists():
            load_dotenv(dotenv_path=config_env, override=False)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Drive a Google Sheet login workflow from a single operator screen"
    )
    parser.add_argument("--config", default=None, help="Optional path to a YAML configuration file")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the sheet API server")
    serve.add_argument("--host", default=None, help="Override the bind address")
    serve.add_argument("--port", type=int, default=None, help="Override the listening port")

    console = subparsers.add_parser("console", help="Run the interactive operator console")
    console.add_argument("--url", default=None, help="Override the sheet API URL")
    console.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between poll cycles while a login is running",
    )
    return parser.parse_args(argv)


def serve(config: AppConfig, host: str | None = None, port: int | None = None) -> int:
    app = create_app(config)
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    LOGGER.info("Sheet API listening on %s:%s", bind_host, bind_port)
    app.run(host=bind_host, port=bind_port)
    return 0


def run_console(
    screen: Screen,
    *,
    read_line: Callable[[str], str] = input,
    out: TextIO = sys.stdout,
) -> int:
    """Read operator commands until ``quit`` or end of input."""

    out.write(CONSOLE_HELP + "\n")
    out.write(render_text(screen) + "\n")
    while True:
        try:
            line = read_line("> ")
        except EOFError:
            break
        command, _, argument = line.strip().partition(" ")
        command = command.lower()
        if command in {"quit", "exit", "q"}:
            break
        if command == "run":
            screen.handle_run()
        elif command == "send":
            screen.set_answer(argument)
            screen.handle_submit()
        elif command == "reload":
            screen.controller.reload()
        elif command == "stop":
            screen.controller.stop_polling()
        elif command == "dismiss":
            screen.dismiss()
        elif command:
            out.write(CONSOLE_HELP + "\n")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config_path = Path(args.config).expanduser().resolve() if args.config else None
    _load_env_files(config_path)
    config = load_config(config_path)

    if args.command == "serve":
        return serve(config, host=args.host, port=args.port)

    base_url = args.url or config.client.base_url
    if not base_url:
        LOGGER.error("Missing SHEET_API_URL pointing to the sheet API endpoint (or pass --url)")
        return 2
    interval = args.interval or config.client.poll_interval
    client = SheetClient(base_url, timeout=config.client.request_timeout)

    def _print_screen(screen: Screen) -> None:
        sys.stdout.write("\n" + render_text(screen) + "\n")
        sys.stdout.flush()

    with Screen(client, interval=interval, on_render=_print_screen) as screen:
        return run_console(screen)


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
