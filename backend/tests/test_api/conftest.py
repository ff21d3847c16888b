from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from jobvault.main import app
from jobvault.services.snapshots import SnapshotManager, get_snapshot_manager


class _DummyScheduler:
    def start(self) -> None:  # noqa: D401
        """No-op start."""
        return None

    def shutdown(self) -> None:  # noqa: D401
        """No-op shutdown."""
        return None


@pytest.fixture
def client(manager: SnapshotManager, monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    """FastAPI TestClient bound to a temporary live database and backup directory."""
    app.dependency_overrides[get_snapshot_manager] = lambda: manager

    # Avoid touching the configured paths or scheduling during app startup in tests
    monkeypatch.setattr("jobvault.main.prepare_storage", lambda settings: None, raising=True)
    monkeypatch.setattr("jobvault.main.get_scheduler", lambda timezone="UTC": _DummyScheduler(), raising=True)
    monkeypatch.setattr("jobvault.main.get_snapshot_manager", lambda: manager, raising=True)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
