"""Logging setup for the fleet controller."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-frame Bluetooth/OSC chatter; follows ``link_level`` instead of ``level``.
LINK_LOGGER = "metabot_fleet.devices"

NETWORK_LOGGERS = ("aiohttp.access", "paho")


def _level(name: Optional[str], default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def configure_logging(
    level: str = "INFO",
    *,
    log_path: Optional[Path] = None,
    log_network: bool = False,
    link_level: Optional[str] = None,
) -> None:
    """Send controller logs to the console and, optionally, a file.

    ``link_level`` sets the level of link traffic (claims, port
    reassignment, frames dropped on closed links) apart from the rest of the
    controller, so a noisy radio can be silenced or traced on its own.
    MQTT and HTTP access logs stay at WARNING unless ``log_network`` is set.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root_level = _level(level, logging.INFO)
    logging.basicConfig(level=root_level, format=LOG_FORMAT)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    links = logging.getLogger(LINK_LOGGER)
    if link_level:
        links.setLevel(_level(link_level, root_level))
    else:
        links.setLevel(logging.NOTSET)

    for name in NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.NOTSET if log_network else logging.WARNING
        )
