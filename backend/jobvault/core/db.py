"""Database configuration for the live database and read-only snapshot access.

The live database path comes from `jobvault.core.config`. The engine is
created lazily and `close_engine()` releases every pooled handle; the snapshot
manager calls it before the live file is replaced during a restore.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from jobvault.core.config import get_settings

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()

_engine: Engine | None = None


def _resolve_sql_echo() -> bool | str:
    """Resolve SQL echo flag from `LOG_SQL_ECHO` ("debug" for parameter values)."""
    raw = os.getenv("LOG_SQL_ECHO", "").strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("debug", "2", "verbose"):
        return "debug"
    return False


def build_sqlite_url(db_file: Path) -> str:
    # `sqlite:///` + absolute path results in four slashes which SQLAlchemy expects
    return f"sqlite:///{db_file.resolve()}"


def get_engine(db_file: Optional[Path] = None) -> Engine:
    """Create the live-database engine lazily."""
    global _engine
    if _engine is not None:
        return _engine

    db_file = db_file or get_settings().db_path
    db_file.parent.mkdir(parents=True, exist_ok=True)
    logger.info("live_db_engine_created | path=%s", db_file)
    _engine = create_engine(
        build_sqlite_url(db_file),
        connect_args={"check_same_thread": False},  # Required for SQLite
        echo=_resolve_sql_echo(),
    )
    return _engine


def close_engine() -> None:
    """Close every pooled connection to the live database.

    The next `get_engine()` call opens a fresh engine against whatever file is
    then at the configured path.
    """
    global _engine
    if _engine is None:
        return
    _engine.dispose()
    _engine = None
    logger.info("live_db_engine_closed")


def readonly_engine(db_file: Union[str, Path]) -> Engine:
    """Engine that opens `db_file` read-only and never creates it.

    Uses a `file:` URI with `mode=ro`, so a missing file is an error instead of
    a new empty database. Callers must `dispose()` the engine when done.
    """
    uri = Path(db_file).resolve().as_uri() + "?mode=ro"

    def _connect() -> sqlite3.Connection:
        return sqlite3.connect(uri, uri=True, check_same_thread=False)

    return create_engine("sqlite://", creator=_connect, poolclass=NullPool)
