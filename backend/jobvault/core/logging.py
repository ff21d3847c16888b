"""Central logging configuration for the backend.

`setup_logging()` is invoked from `jobvault.main` during startup. Modules log
through `logging.getLogger(__name__)` using concise `event | k=v` messages.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

# LogRecord attributes that must not be overwritten through `extra`
_RESERVED_KEYS = {
    "name",
    "msg",
    "message",
    "asctime",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "args",
}


def setup_logging(level: Optional[str] = None) -> None:
    """Initialize application logging.

    - Level is taken from the `LOG_LEVEL` environment variable if not provided.
    - Uses a concise, structured-ish format with timestamps.
    """

    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()

    # Configure handlers once to avoid duplicates in reloads
    if not root_logger.handlers:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger.setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    quiet_level = logging.DEBUG if root_logger.level == logging.DEBUG else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(quiet_level)
    logging.getLogger("apscheduler").setLevel(quiet_level)


def log_event(
    logger: logging.Logger,
    event_name: str,
    *,
    level: int = logging.INFO,
    **fields: object,
) -> None:
    """Emit an `event | k=v ...` line and carry the fields in `extra`."""
    if not fields:
        logger.log(level, "%s", event_name, extra={"event": event_name})
        return

    keys = sorted(fields.keys())
    msg = "%s | " + " ".join(f"{k}=%s" for k in keys)
    args = (event_name, *(fields[k] for k in keys))

    safe_extra: dict[str, object] = {"event": event_name}
    for k, v in fields.items():
        safe_extra[k if k not in _RESERVED_KEYS else f"field_{k}"] = v

    logger.log(level, msg, *args, extra=safe_extra)
