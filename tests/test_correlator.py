from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime, timedelta

from romwatch.correlator import ProcessCorrelator
from romwatch.errors import CatalogParseError, ProcessReadError
from romwatch.models import START, STOP, Event, GameRecord
from romwatch.patterns import compile_command
from romwatch.systems import EmulatorDescriptor

_T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

_SNES_ARGS = "/bin/bash\x00-c\x00retroarch -L core.so /home/pi/roms/snes/Game.sfc\x00"
_NES_ARGS = "/bin/bash\x00-c\x00retroarch -L core.so /home/pi/roms/nes/Mario.nes\x00"


class _FakeTable:
    def __init__(self, processes: dict[int, str]) -> None:
        self.processes = dict(processes)
        self.failing: set[int] = set()
        self.table_error = False
        self.reads: Counter[int] = Counter()
        self.scans = 0

    def pids(self) -> list[int]:
        self.scans += 1
        if self.table_error:
            raise ProcessReadError(None, "permission denied")
        return sorted(self.processes)

    def exists(self, pid: int) -> bool:
        return pid in self.processes

    def read_cmdline(self, pid: int) -> str:
        self.reads[pid] += 1
        if pid in self.failing:
            raise ProcessReadError(pid, "access denied")
        return self.processes[pid]


def _descriptor(name: str, command: str, catalog_path: str | None = None) -> EmulatorDescriptor:
    return EmulatorDescriptor(
        name=name,
        fullname=name.upper(),
        platform=name,
        path=f"/home/pi/roms/{name}",
        command=command,
        matcher=compile_command(command),
        catalog_path=catalog_path,
    )


def _retroarch() -> EmulatorDescriptor:
    return _descriptor("snes", "retroarch -L core.so %ROM%")


def test_start_then_stop_reuses_system_and_game() -> None:
    table = _FakeTable({1: "/sbin/init\x00", 100: _SNES_ARGS})
    correlator = ProcessCorrelator([_retroarch()], table)

    started = list(correlator.poll(_T0))

    assert len(started) == 1
    start = started[0]
    assert isinstance(start, Event)
    assert start.op == START
    assert start.time == _T0
    assert start.game == GameRecord(path="/home/pi/roms/snes/Game.sfc")
    assert start.system.name == "snes"
    assert start.system.fullname == "SNES"
    assert start.system.path == "/home/pi/roms/snes"
    assert correlator.running_pid == 100

    assert list(correlator.poll(_T0 + timedelta(seconds=1))) == []

    del table.processes[100]
    stop_time = _T0 + timedelta(seconds=2)
    stopped = list(correlator.poll(stop_time))

    assert len(stopped) == 1
    stop = stopped[0]
    assert stop.op == STOP
    assert stop.time == stop_time
    assert stop.system == start.system
    assert stop.game == start.game
    assert correlator.running_pid is None
    assert correlator.last_event == stop


def test_tracking_skips_the_scan() -> None:
    table = _FakeTable({100: _SNES_ARGS, 200: _NES_ARGS})
    correlator = ProcessCorrelator([_retroarch()], table)

    list(correlator.poll(_T0))
    scans = table.scans
    for second in range(1, 5):
        assert list(correlator.poll(_T0 + timedelta(seconds=second))) == []

    assert table.scans == scans
    assert table.reads[200] == 0


def test_first_matching_process_wins_the_tick() -> None:
    table = _FakeTable({100: _SNES_ARGS, 200: _NES_ARGS})
    correlator = ProcessCorrelator([_retroarch()], table)

    events = list(correlator.poll(_T0))

    assert [event.game.path for event in events] == ["/home/pi/roms/snes/Game.sfc"]
    assert table.reads[200] == 0


def test_first_matching_descriptor_wins() -> None:
    table = _FakeTable({100: _SNES_ARGS})
    first = _descriptor("first", "retroarch -L core.so %ROM%")
    second = _descriptor("second", "retroarch -L %ROM_RAW%")
    correlator = ProcessCorrelator([first, second], table)

    (event,) = correlator.poll(_T0)

    assert event.system.name == "first"


def test_inert_descriptor_is_passed_over() -> None:
    table = _FakeTable({100: _SNES_ARGS})
    inert = _descriptor("kodi", "%ROM%")
    correlator = ProcessCorrelator([inert, _retroarch()], table)

    (event,) = correlator.poll(_T0)

    assert event.system.name == "snes"


def test_stop_is_emitted_before_a_new_start_in_the_same_tick() -> None:
    table = _FakeTable({100: _SNES_ARGS})
    correlator = ProcessCorrelator([_retroarch()], table)
    list(correlator.poll(_T0))

    del table.processes[100]
    table.processes[200] = _NES_ARGS
    events = list(correlator.poll(_T0 + timedelta(seconds=1)))

    assert [event.op for event in events] == [STOP, START]
    assert events[0].game.path == "/home/pi/roms/snes/Game.sfc"
    assert events[1].game.path == "/home/pi/roms/nes/Mario.nes"
    assert correlator.running_pid == 200


def test_unmatched_process_is_not_reread_within_debounce_window() -> None:
    table = _FakeTable({1: "/sbin/init\x00"})
    correlator = ProcessCorrelator([_retroarch()], table, debounce_seconds=600)

    for second in range(0, 120, 10):
        assert list(correlator.poll(_T0 + timedelta(seconds=second))) == []
    assert table.reads[1] == 1

    list(correlator.poll(_T0 + timedelta(minutes=10)))
    assert table.reads[1] == 2


def test_debounced_process_that_becomes_an_emulator_is_found_after_window() -> None:
    table = _FakeTable({100: "/bin/bash\x00"})
    correlator = ProcessCorrelator([_retroarch()], table, debounce_seconds=60)
    list(correlator.poll(_T0))

    table.processes[100] = _SNES_ARGS
    assert list(correlator.poll(_T0 + timedelta(seconds=30))) == []

    events = list(correlator.poll(_T0 + timedelta(seconds=61)))
    assert [event.op for event in events] == [START]


def test_read_errors_are_yielded_and_scan_continues() -> None:
    table = _FakeTable({5: "", 100: _SNES_ARGS})
    table.failing.add(5)
    correlator = ProcessCorrelator([_retroarch()], table)

    items = list(correlator.poll(_T0))

    assert isinstance(items[0], ProcessReadError)
    assert items[0].pid == 5
    assert isinstance(items[1], Event)
    assert items[1].op == START


def test_failed_read_is_retried_next_tick() -> None:
    table = _FakeTable({5: _SNES_ARGS})
    table.failing.add(5)
    correlator = ProcessCorrelator([_retroarch()], table)
    list(correlator.poll(_T0))

    table.failing.clear()
    events = list(correlator.poll(_T0 + timedelta(seconds=1)))

    assert [event.op for event in events] == [START]


def test_process_table_error_is_yielded() -> None:
    table = _FakeTable({100: _SNES_ARGS})
    table.table_error = True
    correlator = ProcessCorrelator([_retroarch()], table)

    items = list(correlator.poll(_T0))

    assert len(items) == 1
    assert isinstance(items[0], ProcessReadError)
    assert items[0].pid is None


def test_metadata_failure_falls_back_to_content_path() -> None:
    def _broken(catalog_path, content_path, kind):
        raise CatalogParseError("bad xml")

    table = _FakeTable({100: _SNES_ARGS})
    descriptor = _descriptor("snes", "retroarch -L core.so %ROM%", catalog_path="/tmp/gamelist.xml")
    correlator = ProcessCorrelator([descriptor], table, resolver=_broken)

    (event,) = correlator.poll(_T0)

    assert event.game == GameRecord(path="/home/pi/roms/snes/Game.sfc")


def test_catalog_record_is_used_when_resolved(tmp_path) -> None:
    catalog = tmp_path / "gamelist.xml"
    catalog.write_text(
        "<gameList><game><path>./Game.sfc</path><name>Super Game</name></game></gameList>",
        encoding="utf-8",
    )
    table = _FakeTable({100: _SNES_ARGS})
    descriptor = _descriptor("snes", "retroarch -L core.so %ROM%", catalog_path=str(catalog))
    correlator = ProcessCorrelator([descriptor], table)

    (event,) = correlator.poll(_T0)

    assert event.game.title == "Super Game"
    assert event.game.path == str(tmp_path / "Game.sfc")


def test_missing_catalog_yields_path_only_record() -> None:
    table = _FakeTable({100: _SNES_ARGS})
    correlator = ProcessCorrelator([_retroarch()], table)

    (event,) = correlator.poll(_T0)

    assert event.game.path == "/home/pi/roms/snes/Game.sfc"
    assert event.game.title == ""
    assert event.game.rating is None
    assert event.game.players is None
