"""Central logging configuration for the service.

Installs a single stdout handler on the root logger so every module logger
(``logging.getLogger(__name__)``) emits without per-module setup. The level
comes from ``LOG_LEVEL`` (default INFO). uvicorn loggers are routed to the same
handler.
"""
from __future__ import annotations

import logging
import os
from logging.config import dictConfig


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            name: {"level": level, "handlers": ["console"], "propagate": False}
            for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once.

    Returns early when the root logger already has handlers (reloaders,
    pytest's capture handlers).
    """
    root = logging.getLogger()
    if root.handlers:
        return
    resolved = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    dictConfig(_dict_config(resolved))
