from __future__ import annotations

import json
import logging
import os
import subprocess
import threading
from dataclasses import asdict
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from romwatch.errors import ConfigError
from romwatch.models import START, Event

LOGGER = logging.getLogger("romwatch.notify")


def event_to_dict(event: Event) -> dict:
    payload = asdict(event)
    payload["time"] = event.time.isoformat()
    return payload


def display_title(event: Event) -> str:
    return event.game.title or os.path.basename(event.game.path)


class ScriptNotifier:
    """Runs ``script OP NAME FULLNAME TITLE`` for every event."""

    def __init__(self, script: str, timeout: float | None = 30.0) -> None:
        self._script = script
        self._timeout = timeout

    def command(self, event: Event) -> list[str]:
        return [self._script, event.op, event.system.name, event.system.fullname, display_title(event)]

    def __call__(self, event: Event) -> None:
        command = self.command(event)
        try:
            result = subprocess.run(command, check=False, timeout=self._timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            LOGGER.warning("Script failed command=%s error=%s", command, exc)
            return

        if result.returncode != 0:
            LOGGER.warning("Script exited code=%s command=%s", result.returncode, command)


class StatusServer:
    """Serves the currently running game as JSON on ``GET /status``."""

    def __init__(self, host: str = "", port: int = 8080) -> None:
        self._lock = threading.Lock()
        self._current: Event | None = None
        try:
            self._httpd = ThreadingHTTPServer((host, port), self._handler_class())
        except OSError as exc:
            raise ConfigError(f"status endpoint port={port}: {exc}") from exc
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self._httpd.server_address[1]

    def __call__(self, event: Event) -> None:
        with self._lock:
            self._current = event

    def status_body(self) -> bytes:
        with self._lock:
            event = self._current
        if event is None or event.op != START:
            return b""
        return json.dumps(event_to_dict(event), indent=2).encode("utf-8")

    def start(self) -> None:
        self._thread = threading.Thread(target=self._httpd.serve_forever, name="romwatch-status", daemon=True)
        self._thread.start()
        LOGGER.info("Status endpoint listening on port=%s", self.port)

    def shutdown(self) -> None:
        if self._thread is None:
            self._httpd.server_close()
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join(timeout=5)
        self._thread = None

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        server = self

        class _StatusHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:  # noqa: N802 (http.server naming)
                if self.path.split("?", 1)[0] != "/status":
                    self.send_error(404)
                    return
                body = server.status_body()
                self.send_response(200)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format: str, *args: object) -> None:
                LOGGER.debug("status %s", format % args)

        return _StatusHandler
