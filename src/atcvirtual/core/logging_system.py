"""Logging setup for ATC Virtual.

Loggers are plain ``logging`` loggers namespaced under the module name.
``initialize_logging`` applies a YAML dictConfig (console plus rotating
file in the user data directory) and falls back to basicConfig when the
YAML file is missing or invalid.

Typical usage:
    from atcvirtual.core.logging_system import get_logger, initialize_logging

    initialize_logging()
    logger = get_logger(__name__)
    logger.info("Session started for %s", icao)
"""

import logging
import logging.config
from pathlib import Path
from typing import Any

import yaml

from atcvirtual.core.resource_path import get_config_path, get_user_data_dir

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module.

    Args:
        name: Logger name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


def initialize_logging(
    config_path: str | Path | None = None,
    level: str | None = None,
    log_dir: Path | None = None,
) -> None:
    """Configure logging from YAML.

    Args:
        config_path: Path to a logging YAML file. Defaults to the packaged
            config/logging.yaml.
        level: Optional level override for the root logger (e.g., "DEBUG").
        log_dir: Directory for file handlers. Defaults to the user data dir.
    """
    path = Path(config_path) if config_path else get_config_path("logging.yaml")
    log_dir = log_dir or get_user_data_dir() / "logs"

    try:
        with open(path, encoding="utf-8") as f:
            config: dict[str, Any] = yaml.safe_load(f) or {}

        log_dir.mkdir(parents=True, exist_ok=True)
        for handler in config.get("handlers", {}).values():
            filename = handler.get("filename")
            if filename and not Path(filename).is_absolute():
                handler["filename"] = str(log_dir / filename)

        logging.config.dictConfig(config)
    except (OSError, yaml.YAMLError, ValueError) as e:
        logging.basicConfig(level=logging.INFO, format=DEFAULT_FORMAT)
        logging.getLogger(__name__).warning(
            "Could not apply logging config %s, using defaults: %s", path, e
        )

    if level:
        logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))
