from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from xml.etree import ElementTree as ET

from romwatch.catalog import find_catalog
from romwatch.errors import ConfigError
from romwatch.models import PlaceholderKind, SystemConfig, SystemInfo
from romwatch.patterns import CommandMatcher, compile_command

LOGGER = logging.getLogger("romwatch.systems")

SYSTEM_CONFIG_PATH = Path("/etc/emulationstation/es_systems.cfg")


@dataclass(frozen=True)
class EmulatorDescriptor:
    name: str
    fullname: str
    platform: str
    path: str
    command: str
    matcher: CommandMatcher | None
    catalog_path: str | None

    @property
    def kind(self) -> PlaceholderKind | None:
        return self.matcher.kind if self.matcher else None

    def extract(self, cmdline: str) -> str:
        if self.matcher is None:
            return ""
        return self.matcher.extract(cmdline)

    def info(self) -> SystemInfo:
        return SystemInfo(name=self.name, fullname=self.fullname, platform=self.platform, path=self.path)


def systems_config_candidates(home: str) -> list[Path]:
    return [Path(home) / ".emulationstation" / "es_systems.cfg", SYSTEM_CONFIG_PATH]


def _text(node: ET.Element, tag: str) -> str:
    child = node.find(tag)
    if child is None:
        return ""
    return (child.text or "").strip()


def parse_systems(path: str | Path) -> list[SystemConfig]:
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as exc:
        raise ConfigError(f"{path}: {exc}") from exc

    if root.tag != "systemList":
        raise ConfigError(f"{path}: expected <systemList>, found <{root.tag}>")

    systems: list[SystemConfig] = []
    for node in root.findall("system"):
        name = _text(node, "name")
        if not name:
            LOGGER.warning("Skipping system without a name in %s", path)
            continue
        systems.append(
            SystemConfig(
                name=name,
                fullname=_text(node, "fullname"),
                path=_text(node, "path"),
                platform=_text(node, "platform"),
                command=_text(node, "command"),
            )
        )
    return systems


def load_systems(home: str, candidates: list[str | Path] | None = None) -> list[SystemConfig]:
    paths = [Path(item) for item in candidates] if candidates else systems_config_candidates(home)
    for path in paths:
        if path.exists():
            LOGGER.info("Loading systems from %s", path)
            return parse_systems(path)

    raise ConfigError(f"{' and '.join(str(path) for path in paths)} not found")


def expand_home(path: str, home: str) -> str:
    if path.startswith("~/"):
        return str(Path(home) / path[2:])
    return path


def build_descriptor(system: SystemConfig, home: str) -> EmulatorDescriptor:
    root = expand_home(system.path, home)
    matcher = compile_command(system.command)
    catalog_path = find_catalog(root, system.name, home)
    if matcher.inert:
        LOGGER.debug("System %s has no matchable command=%r", system.name, system.command)
    if catalog_path is None:
        LOGGER.debug("System %s has no gamelist.xml", system.name)

    return EmulatorDescriptor(
        name=system.name,
        fullname=system.fullname,
        platform=system.platform,
        path=root,
        command=system.command,
        matcher=matcher,
        catalog_path=catalog_path,
    )


def build_descriptors(systems: list[SystemConfig], home: str) -> list[EmulatorDescriptor]:
    return [build_descriptor(system, home) for system in systems]
