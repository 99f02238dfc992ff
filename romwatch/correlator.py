from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Iterator, Protocol, Sequence

from romwatch.catalog import resolve_game
from romwatch.errors import MetadataError, ProcessReadError
from romwatch.models import START, STOP, Event, GameRecord, PlaceholderKind
from romwatch.systems import EmulatorDescriptor

LOGGER = logging.getLogger("romwatch.correlator")

Resolver = Callable[[str | None, str, PlaceholderKind | None], GameRecord]


class ProcessSource(Protocol):
    def pids(self) -> list[int]: ...

    def exists(self, pid: int) -> bool: ...

    def read_cmdline(self, pid: int) -> str: ...


class ProcessCorrelator:
    """Tracks which configured emulator, if any, is running a game.

    At most one process is tracked. While it is alive nothing else is
    scanned; once it exits a Stop event mirroring the last Start is emitted
    and the scan resumes on the same poll.
    """

    def __init__(
        self,
        descriptors: Sequence[EmulatorDescriptor],
        table: ProcessSource,
        debounce_seconds: float = 600.0,
        resolver: Resolver = resolve_game,
    ) -> None:
        self._descriptors = tuple(descriptors)
        self._table = table
        self._debounce = timedelta(seconds=debounce_seconds)
        self._resolver = resolver

        self._running_pid: int | None = None
        self._last_event: Event | None = None
        self._unmatched: dict[int, datetime] = {}

    @property
    def running_pid(self) -> int | None:
        return self._running_pid

    @property
    def last_event(self) -> Event | None:
        return self._last_event

    def poll(self, now: datetime) -> Iterator[Event | ProcessReadError]:
        """Run one liveness check and scan, yielding events and read errors in order."""
        if self._running_pid is not None:
            if self._table.exists(self._running_pid):
                return
            yield self._stop(now)

        try:
            pids = self._table.pids()
        except ProcessReadError as exc:
            LOGGER.debug("Process table read failed: %s", exc)
            yield exc
            return

        self._expire_unmatched(now)
        for pid in pids:
            if pid in self._unmatched:
                continue

            try:
                cmdline = self._table.read_cmdline(pid)
            except ProcessReadError as exc:
                LOGGER.debug("Skipping pid=%s: %s", pid, exc)
                yield exc
                continue

            event = self._match(cmdline, now)
            if event is None:
                self._unmatched[pid] = now
                continue

            self._running_pid = pid
            self._last_event = event
            LOGGER.info(
                "Start pid=%s system=%s path=%s title=%s",
                pid,
                event.system.name,
                event.game.path,
                event.game.title,
            )
            yield event
            return

    def _stop(self, now: datetime) -> Event:
        assert self._last_event is not None
        event = replace(self._last_event, op=STOP, time=now)
        LOGGER.info(
            "Stop pid=%s system=%s path=%s",
            self._running_pid,
            event.system.name,
            event.game.path,
        )
        self._last_event = event
        self._running_pid = None
        return event

    def _match(self, cmdline: str, now: datetime) -> Event | None:
        for descriptor in self._descriptors:
            content_path = descriptor.extract(cmdline)
            if not content_path:
                continue
            return Event(
                op=START,
                time=now,
                system=descriptor.info(),
                game=self._resolve(descriptor, content_path),
            )
        return None

    def _resolve(self, descriptor: EmulatorDescriptor, content_path: str) -> GameRecord:
        try:
            return self._resolver(descriptor.catalog_path, content_path, descriptor.kind)
        except MetadataError as exc:
            LOGGER.warning("No metadata for system=%s path=%s: %s", descriptor.name, content_path, exc)
            return GameRecord(path=content_path)

    def _expire_unmatched(self, now: datetime) -> None:
        expired = [pid for pid, seen in self._unmatched.items() if now >= seen + self._debounce]
        for pid in expired:
            self._unmatched.pop(pid, None)
