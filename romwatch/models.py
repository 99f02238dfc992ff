from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

Op = Literal["START", "STOP"]

START: Op = "START"
STOP: Op = "STOP"


class PlaceholderKind(str, Enum):
    ROM = "%ROM%"
    BASENAME = "%BASENAME%"
    ROM_RAW = "%ROM_RAW%"


@dataclass(frozen=True)
class WebConfig:
    enabled: bool = False
    host: str = ""
    port: int = 8080


@dataclass(frozen=True)
class AppConfig:
    home: str = "/home/pi"
    tick_seconds: float = 1.0
    debounce_seconds: float = 600.0
    log_level: str = "INFO"
    log_file: str | None = None
    script: str | None = None
    web: WebConfig = field(default_factory=WebConfig)
    systems_paths: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SystemConfig:
    """One ``<system>`` entry of the emulator configuration, as written."""

    name: str
    fullname: str
    path: str
    platform: str
    command: str


@dataclass(frozen=True)
class SystemInfo:
    name: str
    fullname: str
    platform: str
    path: str


@dataclass(frozen=True)
class GameRecord:
    path: str
    title: str = ""
    overview: str = ""
    image: str = ""
    thumbnail: str = ""
    rating: float | None = None
    release_date: str = ""
    developer: str = ""
    publisher: str = ""
    genre: str = ""
    players: int | None = None


@dataclass(frozen=True)
class Event:
    op: Op
    time: datetime
    system: SystemInfo
    game: GameRecord
