"""
Settings loader.

Settings come from an optional YAML file merged over built-in defaults:

    logging:
      level: INFO
      format: "%(asctime)s %(levelname)s %(name)s: %(message)s"
      trace_rules: false
    navigation:
      honor_jumps: true
    events:
      enabled: true

Usage:
    from funnel_logic.config import load_settings, configure_logging

    settings = load_settings("funnel.yaml")
    configure_logging(settings)
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

DEFAULTS: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        "trace_rules": False,
    },
    "navigation": {
        "honor_jumps": True,
    },
    "events": {
        "enabled": True,
    },
}


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    log_format: str = DEFAULTS["logging"]["format"]
    trace_rules: bool = False
    honor_jumps: bool = True
    events_enabled: bool = True


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base; nested dicts are merged, other values replaced."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def settings_from_dict(data: Optional[Dict[str, Any]]) -> Settings:
    merged = _deep_merge(DEFAULTS, data or {})
    return Settings(
        log_level=str(merged["logging"]["level"]).upper(),
        log_format=merged["logging"]["format"],
        trace_rules=bool(merged["logging"]["trace_rules"]),
        honor_jumps=bool(merged["navigation"]["honor_jumps"]),
        events_enabled=bool(merged["events"]["enabled"]),
    )


def load_settings(filepath: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file.

    A missing path (or None) yields the defaults.
    """
    if filepath is None:
        return settings_from_dict(None)

    path = Path(filepath)
    if not path.exists():
        return settings_from_dict(None)

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return settings_from_dict(data)


def configure_logging(settings: Settings) -> logging.Logger:
    """Attach a stream handler to the package logger (once) and set levels."""
    logger = logging.getLogger("funnel_logic")
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.log_format))
        logger.addHandler(handler)

    rules_logger = logging.getLogger("funnel_logic.rules")
    rules_logger.setLevel(logging.DEBUG if settings.trace_rules else logging.NOTSET)
    return logger
