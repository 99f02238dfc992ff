"""EmulationStation ``gamelist.xml`` lookups.

A catalog lists the games known for one system::

    <gameList>
      <game>
        <path>./Super Game (USA).sfc</path>
        <name>Super Game</name>
        <desc>...</desc>
        <image>./images/Super Game (USA)-image.png</image>
        <rating>0.8</rating>
        <players>2</players>
      </game>
    </gameList>

Relative paths inside the catalog are relative to the catalog's directory.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from xml.etree import ElementTree as ET

from romwatch.errors import CatalogParseError, NoCatalogError, NotFoundError
from romwatch.models import GameRecord, PlaceholderKind

LOGGER = logging.getLogger("romwatch.catalog")

CATALOG_NAME = "gamelist.xml"
SYSTEM_CATALOG_ROOT = Path("/etc/emulationstation/gamelists")


def catalog_candidates(root: str, name: str, home: str) -> list[Path]:
    return [
        Path(root) / CATALOG_NAME,
        Path(home) / ".emulationstation" / "gamelists" / name / CATALOG_NAME,
        SYSTEM_CATALOG_ROOT / name / CATALOG_NAME,
    ]


def find_catalog(root: str, name: str, home: str) -> str | None:
    for candidate in catalog_candidates(root, name, home):
        if candidate.exists():
            return str(candidate)
    return None


def _text(node: ET.Element, tag: str) -> str:
    child = node.find(tag)
    if child is None:
        return ""
    return (child.text or "").strip()


def _float(node: ET.Element, tag: str) -> float | None:
    raw = _text(node, tag)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _int(node: ET.Element, tag: str) -> int | None:
    raw = _text(node, tag)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_game(node: ET.Element) -> GameRecord:
    return GameRecord(
        path=_text(node, "path"),
        title=_text(node, "name"),
        overview=_text(node, "desc"),
        image=_text(node, "image"),
        thumbnail=_text(node, "thumbnail"),
        rating=_float(node, "rating"),
        release_date=_text(node, "releasedate"),
        developer=_text(node, "developer"),
        publisher=_text(node, "publisher"),
        genre=_text(node, "genre"),
        players=_int(node, "players"),
    )


def load_catalog(catalog_path: str | Path) -> list[GameRecord]:
    try:
        tree = ET.parse(catalog_path)
    except (OSError, ET.ParseError) as exc:
        raise CatalogParseError(f"{catalog_path}: {exc}") from exc

    root = tree.getroot()
    if root.tag != "gameList":
        raise CatalogParseError(f"{catalog_path}: expected <gameList>, found <{root.tag}>")

    games = [_parse_game(node) for node in root.findall("game")]
    LOGGER.debug("Loaded %d games from %s", len(games), catalog_path)
    return games


def _match_name(path: str, kind: PlaceholderKind | None) -> str:
    name = os.path.basename(path)
    if kind is PlaceholderKind.BASENAME:
        name = os.path.splitext(name)[0]
    return name


def _absolute(value: str, base_dir: str) -> str:
    if not value or os.path.isabs(value):
        return value
    return os.path.normpath(os.path.join(base_dir, value))


def resolve_game(catalog_path: str | None, content_path: str, kind: PlaceholderKind | None) -> GameRecord:
    """Look up ``content_path`` in the catalog by base file name.

    When the command captured ``%BASENAME%`` the catalog's names are compared
    without their extension. Relative path, image and thumbnail entries of
    the matched record are returned absolute.
    """
    if not catalog_path:
        raise NoCatalogError("no gamelist.xml configured")

    # %BASENAME% captures are already extension-less but may contain dots,
    # so the name as captured is tried before its stripped form.
    wanted = [os.path.basename(content_path)]
    stripped = _match_name(content_path, kind)
    if stripped not in wanted:
        wanted.append(stripped)
    base_dir = os.path.dirname(catalog_path)

    games = load_catalog(catalog_path)
    game = next(
        (entry for name in wanted for entry in games if _match_name(entry.path, kind) == name),
        None,
    )
    if game is not None:
        return replace(
            game,
            path=_absolute(game.path, base_dir),
            image=_absolute(game.image, base_dir),
            thumbnail=_absolute(game.thumbnail, base_dir),
        )

    raise NotFoundError(f"{content_path}: not found in {catalog_path}")
