from __future__ import annotations

from pathlib import Path

import pytest

from jobvault.core.config import (
    DEFAULT_CLEANUP_CRON,
    DEFAULT_RETENTION_DAYS,
    ensure_dir,
    get_settings,
    load_settings,
)
from jobvault.services import snapshots as snapshots_module

_ENV_VARS = (
    "DB_DIR",
    "DB_FILENAME",
    "BACKUP_DIR",
    "SNAPSHOT_RETENTION_DAYS",
    "SNAPSHOT_CLEANUP_CRON",
    "SNAPSHOT_CLEANUP_ENABLED",
    "SNAPSHOT_CHECK_DISK_SPACE",
    "SCHEDULER_TIMEZONE",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


def test_defaults(clean_env):
    settings = load_settings()

    assert settings.db_path == Path("/app/db/jobvault.db")
    assert settings.backup_dir == Path("/app/db/backups")
    assert settings.retention_days == DEFAULT_RETENTION_DAYS
    assert settings.cleanup_cron == DEFAULT_CLEANUP_CRON
    assert settings.cleanup_enabled is True
    assert settings.check_disk_space is True
    assert settings.scheduler_timezone == "UTC"


def test_environment_overrides(clean_env, tmp_path):
    clean_env.setenv("DB_DIR", str(tmp_path / "data"))
    clean_env.setenv("DB_FILENAME", "tracker.db")
    clean_env.setenv("BACKUP_DIR", str(tmp_path / "snapshots"))
    clean_env.setenv("SNAPSHOT_RETENTION_DAYS", "7")
    clean_env.setenv("SNAPSHOT_CLEANUP_CRON", " 15 2 * * 0 ")
    clean_env.setenv("SNAPSHOT_CLEANUP_ENABLED", "off")
    clean_env.setenv("SNAPSHOT_CHECK_DISK_SPACE", "no")
    clean_env.setenv("SCHEDULER_TIMEZONE", "Europe/Berlin")

    settings = load_settings()

    assert settings.db_path == tmp_path / "data" / "tracker.db"
    assert settings.backup_dir == tmp_path / "snapshots"
    assert settings.retention_days == 7
    assert settings.cleanup_cron == "15 2 * * 0"
    assert settings.cleanup_enabled is False
    assert settings.check_disk_space is False
    assert settings.scheduler_timezone == "Europe/Berlin"


def test_backup_dir_follows_db_dir(clean_env, tmp_path):
    clean_env.setenv("DB_DIR", str(tmp_path))
    assert load_settings().backup_dir == tmp_path / "backups"


def test_invalid_retention_falls_back(clean_env):
    clean_env.setenv("SNAPSHOT_RETENTION_DAYS", "a month")
    assert load_settings().retention_days == DEFAULT_RETENTION_DAYS


def test_get_settings_is_cached(clean_env):
    assert get_settings() is get_settings()


def test_ensure_dir(tmp_path):
    nested = tmp_path / "a" / "b"
    assert ensure_dir(nested) == (True, "")
    assert nested.is_dir()

    blocker = tmp_path / "file"
    blocker.write_text("x")
    ok, reason = ensure_dir(blocker / "sub")
    assert ok is False
    assert reason


def test_snapshot_manager_built_from_settings(clean_env, tmp_path):
    clean_env.setenv("DB_DIR", str(tmp_path))
    clean_env.setenv("SNAPSHOT_RETENTION_DAYS", "14")
    clean_env.setenv("SNAPSHOT_CHECK_DISK_SPACE", "false")
    clean_env.setattr(snapshots_module, "_manager", None)

    manager = snapshots_module.get_snapshot_manager()

    assert manager.source_db_path == tmp_path / "jobvault.db"
    assert manager.backup_dir == tmp_path / "backups"
    assert manager.retention_days == 14
    assert manager.check_disk_space is False
    assert snapshots_module.get_snapshot_manager() is manager
