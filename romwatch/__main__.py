from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable

from romwatch import __version__
from romwatch.config import load_config
from romwatch.errors import RomWatchError
from romwatch.logging_setup import configure_logging
from romwatch.models import AppConfig, Event, WebConfig
from romwatch.notify import ScriptNotifier, StatusServer
from romwatch.watcher import RomWatcher

LOGGER = logging.getLogger("romwatch.cli")

Notifier = Callable[[Event], None]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report which game an emulator is running")
    parser.add_argument("--config", default="config/default.json", help="Path to JSON config")
    parser.add_argument("--home", help="Home folder of the user running EmulationStation")
    parser.add_argument("--script", help="Program to run on every START/STOP event")
    parser.add_argument("--web", action="store_true", help="Serve the running game on /status")
    parser.add_argument("--port", type=int, help="Port for the /status endpoint")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Override log level from config",
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--version", action="store_true", help="Print the release version and exit")
    return parser


def _default_base_dir() -> Path:
    return Path(__file__).resolve().parent.parent


def _resolve_config_path(raw_path: str) -> str:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return str(candidate)

    if candidate.exists():
        return str(candidate.resolve())

    from_base = _default_base_dir() / candidate
    if from_base.exists():
        return str(from_base.resolve())

    return str(candidate)


def _resolve_runtime(args: argparse.Namespace) -> AppConfig:
    config = load_config(_resolve_config_path(args.config))

    overrides: dict[str, object] = {}
    for key in ("home", "script", "log_level", "log_file"):
        value = getattr(args, key, None)
        if value:
            overrides[key] = value

    web = config.web
    if getattr(args, "web", False):
        web = replace(web, enabled=True)
    port = getattr(args, "port", None)
    if port:
        web = replace(web, port=port)

    return replace(config, web=web, **overrides)


def _build_notifiers(config: AppConfig) -> tuple[list[Notifier], StatusServer | None]:
    notifiers: list[Notifier] = []
    server: StatusServer | None = None

    if config.web.enabled:
        server = _start_status_server(config.web)
        notifiers.append(server)

    if config.script:
        notifiers.append(ScriptNotifier(config.script))

    return notifiers, server


def _start_status_server(web: WebConfig) -> StatusServer:
    server = StatusServer(web.host, web.port)
    server.start()
    return server


def _drain_errors(watcher: RomWatcher) -> None:
    for error in watcher.errors:
        LOGGER.info("error: %s", error)


def _dispatch(event: Event, notifiers: list[Notifier]) -> None:
    LOGGER.info(
        "event: op=%s system=%s game=%s title=%s",
        event.op,
        event.system.name,
        event.game.path,
        event.game.title,
    )
    for notify in notifiers:
        notify(event)


def _raise_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


def run(config: AppConfig) -> None:
    watcher = RomWatcher.from_home(
        config.home,
        config.systems_paths or None,
        tick_seconds=config.tick_seconds,
        debounce_seconds=config.debounce_seconds,
    )
    notifiers, server = _build_notifiers(config)
    signal.signal(signal.SIGTERM, _raise_interrupt)

    error_thread = threading.Thread(target=_drain_errors, args=(watcher,), name="romwatch-errors", daemon=True)
    error_thread.start()
    watcher.start()

    try:
        for event in watcher.events:
            _dispatch(event, notifiers)
    except KeyboardInterrupt:
        LOGGER.info("Received interrupt, stopping watcher")
    finally:
        watcher.close()
        error_thread.join(timeout=5)
        if server:
            server.shutdown()


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    if args.version:
        print(__version__)
        return

    try:
        config = _resolve_runtime(args)
        configure_logging(config.log_level, config.log_file)
        run(config)
    except RomWatchError as exc:
        parser.exit(2, f"romwatch: {exc}\n")


if __name__ == "__main__":
    main()
