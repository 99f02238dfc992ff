from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import Callable, Sequence

from romwatch.correlator import ProcessCorrelator, ProcessSource
from romwatch.errors import ProcessReadError
from romwatch.models import Event
from romwatch.process_table import ProcessTable
from romwatch.stream import Stream
from romwatch.systems import EmulatorDescriptor, build_descriptors, load_systems

LOGGER = logging.getLogger("romwatch.watcher")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RomWatcher:
    """Background worker publishing Start/Stop events for emulated games.

    Events and process read errors are delivered on ``events`` and
    ``errors``. Both streams are closed once the worker has shut down.
    """

    def __init__(
        self,
        descriptors: Sequence[EmulatorDescriptor],
        table: ProcessSource | None = None,
        tick_seconds: float = 1.0,
        debounce_seconds: float = 600.0,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._correlator = ProcessCorrelator(
            descriptors,
            table or ProcessTable(),
            debounce_seconds=debounce_seconds,
        )
        self._tick_seconds = tick_seconds
        self._clock = clock

        self.events: Stream[Event] = Stream()
        self.errors: Stream[ProcessReadError] = Stream()

        self._stop_event = threading.Event()
        self._done_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_home(
        cls,
        home: str,
        systems_paths: list[str] | None = None,
        **kwargs,
    ) -> RomWatcher:
        descriptors = build_descriptors(load_systems(home, systems_paths), home)
        LOGGER.info("Loaded %d systems", len(descriptors))
        return cls(descriptors, **kwargs)

    def start(self) -> RomWatcher:
        with self._lock:
            if self._thread is not None or self._stop_event.is_set():
                return self
            self._thread = threading.Thread(target=self._run, name="romwatch-worker", daemon=True)
            self._thread.start()
        return self

    def close(self) -> None:
        """Stop the worker and wait until both streams are closed."""
        with self._lock:
            self._stop_event.set()
            thread = self._thread

        if thread is None:
            self._finish()
            return

        self.events.wake()
        self.errors.wake()
        self._done_event.wait()

    def __enter__(self) -> RomWatcher:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run(self) -> None:
        LOGGER.info("Watching processes tick=%.2fs", self._tick_seconds)
        try:
            while not self._stop_event.wait(self._tick_seconds):
                self._run_cycle(self._clock())
        except Exception:
            LOGGER.exception("Unhandled error in watcher loop")
        finally:
            self._finish()
            LOGGER.info("Watcher stopped")

    def _run_cycle(self, now: datetime) -> None:
        for item in self._correlator.poll(now):
            stream = self.errors if isinstance(item, ProcessReadError) else self.events
            if not stream.publish(item, self._stop_event):
                return

    def _finish(self) -> None:
        self.events.close()
        self.errors.close()
        self._done_event.set()
