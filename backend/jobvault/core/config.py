"""Runtime configuration read from environment variables.

Variables (read once by `get_settings()`):
- DB_DIR (default `/app/db`): directory holding the live database
- DB_FILENAME (default `jobvault.db`)
- BACKUP_DIR (default `<DB_DIR>/backups`): snapshot directory
- SNAPSHOT_RETENTION_DAYS (default 30)
- SNAPSHOT_CLEANUP_CRON (default `0 3 * * *`)
- SNAPSHOT_CLEANUP_ENABLED (default "true")
- SNAPSHOT_CHECK_DISK_SPACE (default "true")
- SCHEDULER_TIMEZONE (default `UTC`)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_DB_DIR = "/app/db"
DEFAULT_DB_FILENAME = "jobvault.db"
DEFAULT_RETENTION_DAYS = 30
DEFAULT_CLEANUP_CRON = "0 3 * * *"


def _get_bool(env_value: str | None, default: bool) -> bool:
    if env_value is None or env_value.strip() == "":
        return default
    return env_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_value: str | None, default: int) -> int:
    if env_value is None or env_value.strip() == "":
        return default
    try:
        return int(env_value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    db_dir: Path
    db_filename: str
    backup_dir: Path
    retention_days: int = DEFAULT_RETENTION_DAYS
    cleanup_cron: str = DEFAULT_CLEANUP_CRON
    cleanup_enabled: bool = True
    check_disk_space: bool = True
    scheduler_timezone: str = "UTC"

    @property
    def db_path(self) -> Path:
        return self.db_dir / self.db_filename


def load_settings() -> Settings:
    """Build a `Settings` object from the current environment."""
    db_dir = Path(os.getenv("DB_DIR") or DEFAULT_DB_DIR)
    backup_dir = Path(os.getenv("BACKUP_DIR") or db_dir / "backups")
    return Settings(
        db_dir=db_dir,
        db_filename=os.getenv("DB_FILENAME") or DEFAULT_DB_FILENAME,
        backup_dir=backup_dir,
        retention_days=_get_int(os.getenv("SNAPSHOT_RETENTION_DAYS"), DEFAULT_RETENTION_DAYS),
        cleanup_cron=(os.getenv("SNAPSHOT_CLEANUP_CRON") or DEFAULT_CLEANUP_CRON).strip(),
        cleanup_enabled=_get_bool(os.getenv("SNAPSHOT_CLEANUP_ENABLED"), True),
        check_disk_space=_get_bool(os.getenv("SNAPSHOT_CHECK_DISK_SPACE"), True),
        scheduler_timezone=(os.getenv("SCHEDULER_TIMEZONE") or "UTC").strip(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    return load_settings()


def ensure_dir(path: Path) -> tuple[bool, str]:
    """Create `path` if needed and report whether it is a writable directory."""
    try:
        path.mkdir(parents=True, exist_ok=True)
        if not os.access(path, os.W_OK):
            return False, "directory not writable"
        return True, ""
    except OSError as exc:
        return False, str(exc)
