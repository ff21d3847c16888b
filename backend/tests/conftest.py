"""Root conftest for tests directory."""

from __future__ import annotations

import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest
from sqlalchemy import create_engine, insert, text

from jobvault.models import SchemaMigration
from jobvault.services.snapshots import SnapshotManager

INITIAL_MIGRATIONS = (
    "20250930000001_initial_schema",
    "20250930000002_seed_initial_data",
)


class FixedClock:
    """Deterministic clock for age and filename computations."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def build_database(
    path: Path,
    *,
    migrations: Optional[Iterable[str]] = INITIAL_MIGRATIONS,
    jobs: Iterable[str] = ("Backend engineer", "Data analyst"),
) -> Path:
    """Create a job tracker database; `migrations=None` leaves out the ledger."""
    engine = create_engine(f"sqlite:///{path}")
    try:
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE jobs (id INTEGER PRIMARY KEY, title TEXT NOT NULL)"))
            for title in jobs:
                conn.execute(text("INSERT INTO jobs (title) VALUES (:title)"), {"title": title})
            if migrations is not None:
                SchemaMigration.__table__.create(bind=conn)
                for name in migrations:
                    conn.execute(insert(SchemaMigration).values(name=name, batch=1))
    finally:
        engine.dispose()
    return path


def read_job_titles(path: Path) -> List[str]:
    engine = create_engine(f"sqlite:///{path}")
    try:
        with engine.connect() as conn:
            return [row[0] for row in conn.execute(text("SELECT title FROM jobs ORDER BY id"))]
    finally:
        engine.dispose()


def add_job(path: Path, title: str) -> None:
    engine = create_engine(f"sqlite:///{path}")
    try:
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO jobs (title) VALUES (:title)"), {"title": title})
    finally:
        engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 2, 10, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def live_db(tmp_path: Path) -> Path:
    """Live database with two applied migrations and two jobs."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return build_database(data_dir / "jobvault.db")


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    path = tmp_path / "backups"
    path.mkdir()
    return path


@pytest.fixture
def manager(live_db: Path, backup_dir: Path, clock: FixedClock) -> SnapshotManager:
    return SnapshotManager(live_db, backup_dir, clock=clock)


@pytest.fixture
def place_snapshot(live_db: Path, backup_dir: Path) -> Callable[[str], Path]:
    """Copy the (closed) live database into the backup directory under `name`."""

    def _place(name: str) -> Path:
        target = backup_dir / name
        shutil.copyfile(live_db, target)
        return target

    return _place


@pytest.fixture
def make_database() -> Callable[..., Path]:
    return build_database


@pytest.fixture
def job_titles() -> Callable[[Path], List[str]]:
    return read_job_titles


@pytest.fixture
def insert_job() -> Callable[[Path, str], None]:
    return add_job
