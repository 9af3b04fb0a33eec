"""
Logging setup and structured (one JSON object per line) event logging.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any


def configure_logging(name: str = "linear_plugin") -> None:
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.getLogger(name).setLevel(level)
    root = logging.getLogger()
    if root.level and root.level > level:
        root.setLevel(level)


def log_event(logger: logging.Logger, msg: str, level: int = logging.INFO, **fields: Any) -> None:
    try:
        rec = {"msg": msg, **fields}
        logger.log(level, json.dumps(rec, ensure_ascii=False, default=str))
    except Exception:
        # Fallback to plain log
        logger.log(level, "%s | %s", msg, fields)
