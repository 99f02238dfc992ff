from __future__ import annotations


class RomWatchError(Exception):
    """Base class for every error raised by romwatch."""


class ConfigError(RomWatchError):
    pass


class PatternError(RomWatchError):
    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"invalid command template {command!r}: {reason}")
        self.command = command


class ProcessReadError(RomWatchError):
    def __init__(self, pid: int | None, reason: str) -> None:
        target = "process table" if pid is None else f"pid={pid}"
        super().__init__(f"{target}: {reason}")
        self.pid = pid


class MetadataError(RomWatchError):
    """Raised when a content path cannot be resolved to a catalog record."""


class NoCatalogError(MetadataError):
    pass


class CatalogParseError(MetadataError):
    pass


class NotFoundError(MetadataError):
    pass
