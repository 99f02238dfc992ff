from __future__ import annotations

import json
import logging
from pathlib import Path

from romwatch.errors import ConfigError
from romwatch.models import AppConfig, WebConfig

LOGGER = logging.getLogger("romwatch.config")

_ALLOWED_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_MIN_TICK_SECONDS = 0.05


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _build_web(raw: object) -> WebConfig:
    if not isinstance(raw, dict):
        return WebConfig()
    enabled = raw.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigError(f"web.enabled must be true or false, got {enabled!r}")
    return WebConfig(
        enabled=enabled,
        host=str(raw.get("host", "")).strip(),
        port=int(raw.get("port", 8080)),
    )


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path)
    if not config_path.exists():
        LOGGER.debug("No config at %s, using defaults", config_path)
        return AppConfig()

    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"{config_path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"{config_path}: expected a JSON object")

    log_level = str(payload.get("log_level", "INFO")).strip().upper()
    if log_level not in _ALLOWED_LEVELS:
        raise ConfigError(f"Invalid log_level: {log_level}. Expected one of {sorted(_ALLOWED_LEVELS)}")

    systems_paths = payload.get("systems_paths", [])
    if not isinstance(systems_paths, list):
        raise ConfigError("systems_paths must be a list of paths")

    try:
        return AppConfig(
            home=str(payload.get("home", "/home/pi")).strip() or "/home/pi",
            tick_seconds=max(float(payload.get("tick_seconds", 1.0)), _MIN_TICK_SECONDS),
            debounce_seconds=max(float(payload.get("debounce_seconds", 600.0)), 0.0),
            log_level=log_level,
            log_file=_optional_str(payload.get("log_file")),
            script=_optional_str(payload.get("script")),
            web=_build_web(payload.get("web", {})),
            systems_paths=[str(item) for item in systems_paths if str(item).strip()],
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{config_path}: {exc}") from exc
