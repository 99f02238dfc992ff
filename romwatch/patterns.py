"""Command template compilation.

A command template is the launch command an emulator frontend runs, with
placeholder tokens standing in for the content being launched, e.g.::

    /opt/retropie/supplementary/runcommand/runcommand.sh 0 _SYS_ snes %ROM%

The compiled matcher runs against a process argument vector in the
``/proc/<pid>/cmdline`` layout, where every argument is terminated by a NUL
byte, and captures the text that occupied the first placeholder.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from romwatch.errors import PatternError
from romwatch.models import PlaceholderKind

ARG_SEPARATOR = "\x00"

_PLACEHOLDER = re.compile("|".join(re.escape(kind.value) for kind in PlaceholderKind))
_CAPTURE = "(.+?)"
_WILDCARD = "(?:.+?)"


@dataclass(frozen=True)
class CommandMatcher:
    command: str
    kind: PlaceholderKind | None
    pattern: re.Pattern[str] | None

    @property
    def inert(self) -> bool:
        return self.pattern is None

    def extract(self, cmdline: str) -> str:
        """Return the content path launched by ``cmdline`` or ``""``."""
        if self.pattern is None:
            return ""

        match = self.pattern.search(cmdline)
        if match is None:
            return ""

        captured = match.group(1)
        if self.kind is PlaceholderKind.ROM:
            return unescape_backslashes(captured)
        return captured


def compile_command(command: str) -> CommandMatcher:
    # A bare placeholder carries no literal text to anchor on.
    if command in {kind.value for kind in PlaceholderKind}:
        return CommandMatcher(command=command, kind=None, pattern=None)

    parts: list[str] = []
    kind: PlaceholderKind | None = None
    position = 0
    for token in _PLACEHOLDER.finditer(command):
        parts.append(re.escape(command[position : token.start()]))
        if kind is None:
            kind = PlaceholderKind(token.group(0))
            parts.append(_CAPTURE)
        else:
            parts.append(_WILDCARD)
        position = token.end()
    parts.append(re.escape(command[position:]))

    if kind is None:
        return CommandMatcher(command=command, kind=None, pattern=None)

    expression = f"{ARG_SEPARATOR}{''.join(parts)}{ARG_SEPARATOR}"
    try:
        pattern = re.compile(expression)
    except re.error as exc:
        raise PatternError(command, str(exc)) from exc

    return CommandMatcher(command=command, kind=kind, pattern=pattern)


def unescape_backslashes(value: str) -> str:
    output: list[str] = []
    escaped = False
    for char in value:
        if char == "\\" and not escaped:
            escaped = True
            continue
        escaped = False
        output.append(char)
    return "".join(output)
