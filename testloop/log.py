# testloop/log.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Optional

from testloop.core.settings import get_settings

ROOT_LOGGER = "testloop"
DONES_LOGGER = "testloop.dones"

LOG_FORMAT = "TESTLOOP: %(levelname)s %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stream handler to the ``testloop`` logger. Calling it again only
    updates the level.

    :param level: Level name; defaults to the configured ``log_level``.
    """
    settings = get_settings()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level or settings.log_level)

    if not any(getattr(h, "_testloop_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._testloop_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
