"""Logging configuration helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-request chatter from the HTTP stack and image decoder
NETWORK_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.websocket", "PIL")


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Install console (and optionally file) handlers on the root logger.

    ``log_network`` keeps the aiohttp access/client/websocket and PIL loggers at
    ``level``; otherwise they only report warnings. Records from ``oled_relay``
    itself always follow ``level``.
    """

    root = logging.getLogger()
    logging.captureWarnings(True)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    network_level = numeric_level if log_network else max(numeric_level, logging.WARNING)
    for name in NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(network_level)
