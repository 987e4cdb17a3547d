from __future__ import annotations

import logging
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Attach a stream handler to the package logger.

    Applications that configure logging themselves should not call this.
    """
    if level is None:
        from pkdverify.core.settings import get_settings

        level = get_settings().log_level

    logger = logging.getLogger("pkdverify")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
