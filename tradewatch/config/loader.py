"""
Config loader: YAML file -> frozen dataclass tree.

The log level can be overridden with the TRADEWATCH_LOG_LEVEL environment
variable. The config file holds only non-secret values.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

import yaml

from tradewatch.events.journal import EventJournal

LOG_FORMATS = {
    "plain": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    "short": "%(levelname)s %(name)s: %(message)s",
}


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "plain"


@dataclass(frozen=True)
class JournalConfig:
    enabled: bool = False
    path: str = "-"


@dataclass(frozen=True)
class AppConfig:
    symbols: Tuple[str, ...] = ()
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    journal: JournalConfig = field(default_factory=JournalConfig)


def load_config(path: Union[str, Path] = "tradewatch.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a mapping or a value is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    symbols = raw.get("symbols") or []
    if not isinstance(symbols, list):
        raise ValueError("symbols must be a list")

    log_raw = raw.get("logging") or {}
    level = os.environ.get("TRADEWATCH_LOG_LEVEL") or str(log_raw.get("level", "INFO"))
    level = level.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown log level: {level}")
    log_format = str(log_raw.get("format", "plain"))
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {log_format}")

    j_raw = raw.get("journal") or {}
    j_cfg = JournalConfig(
        enabled=bool(j_raw.get("enabled", False)),
        path=str(j_raw.get("path", "-")),
    )

    return AppConfig(
        symbols=tuple(str(s) for s in symbols),
        logging=LoggingConfig(level=level, format=log_format),
        journal=j_cfg,
    )


def configure_logging(config: AppConfig) -> None:
    """Apply the logging section to the root logger."""
    logging.basicConfig(
        level=config.logging.level,
        format=LOG_FORMATS[config.logging.format],
        force=True,
    )


def build_journal(config: JournalConfig) -> Optional[EventJournal]:
    """Create the event journal described by config, or None if disabled."""
    if not config.enabled:
        return None
    if config.path == "-":
        return EventJournal(stream=sys.stderr)
    Path(config.path).parent.mkdir(parents=True, exist_ok=True)
    return EventJournal(stream=open(config.path, "a", encoding="utf-8"), owns_stream=True)
