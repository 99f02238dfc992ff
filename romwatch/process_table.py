from __future__ import annotations

import psutil

from romwatch.errors import ProcessReadError
from romwatch.patterns import ARG_SEPARATOR


class ProcessTable:
    """Live view of the host's process table."""

    def pids(self) -> list[int]:
        try:
            return psutil.pids()
        except (OSError, psutil.Error) as exc:
            raise ProcessReadError(None, str(exc)) from exc

    def exists(self, pid: int) -> bool:
        return psutil.pid_exists(pid)

    def read_cmdline(self, pid: int) -> str:
        """Return the argument vector with every argument NUL-terminated."""
        try:
            args = psutil.Process(pid).cmdline()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as exc:
            raise ProcessReadError(pid, str(exc)) from exc
        except OSError as exc:
            raise ProcessReadError(pid, str(exc)) from exc

        return "".join(f"{arg}{ARG_SEPARATOR}" for arg in args)
