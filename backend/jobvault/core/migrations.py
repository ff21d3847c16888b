"""Schema migration runner guarded by a pre-migration snapshot.

Before any pending migration is applied, the runner asks the snapshot manager
for a `pre-migration` snapshot. If that fails, nothing is applied and
`MigrationAbortedError` is raised.

A database whose ledger is still empty has no data worth protecting (and could
not produce a verifiable snapshot), so the snapshot is skipped for it.

The job tracker owns its migrations and calls this at startup, before it
serves requests:

    runner = MigrationRunner(get_engine(), get_snapshot_manager(), MIGRATIONS)
    runner.run_pending()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.engine import Connection, Engine

from jobvault.domain.enums import SnapshotKind
from jobvault.domain.errors import SnapshotError
from jobvault.models import SchemaMigration
from jobvault.services.snapshots import Snapshot, SnapshotManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """A named schema change; names start with a `YYYYMMDDHHMMSS` prefix."""

    name: str
    upgrade: Callable[[Connection], None]


class MigrationAbortedError(RuntimeError):
    """Raised when the pre-migration snapshot could not be created."""

    def __init__(self, cause: SnapshotError) -> None:
        super().__init__(f"Migration aborted: pre-migration snapshot failed ({cause})")
        self.cause = cause


class MigrationRunner:
    def __init__(
        self,
        engine: Engine,
        snapshot_manager: SnapshotManager,
        migrations: Sequence[Migration],
    ) -> None:
        self.engine = engine
        self.snapshots = snapshot_manager
        self.migrations = sorted(migrations, key=lambda m: m.name)
        self.last_snapshot: Optional[Snapshot] = None

    def ensure_ledger(self) -> None:
        SchemaMigration.__table__.create(bind=self.engine, checkfirst=True)

    def applied_names(self) -> List[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(SchemaMigration.name).order_by(SchemaMigration.id))
            return [row[0] for row in rows]

    def pending(self) -> List[Migration]:
        applied = set(self.applied_names())
        return [m for m in self.migrations if m.name not in applied]

    def run_pending(self) -> List[str]:
        """Apply pending migrations in name order and record them as one batch.

        Returns:
            Names of the migrations applied by this call.

        Raises:
            MigrationAbortedError: if the pre-migration snapshot failed.
        """
        self.ensure_ledger()
        has_history = bool(self.applied_names())
        pending = self.pending()
        if not pending:
            logger.info("migrations_up_to_date")
            return []

        if has_history:
            try:
                self.last_snapshot = self.snapshots.create_snapshot(SnapshotKind.PRE_MIGRATION)
            except SnapshotError as exc:
                logger.error(
                    "migration_aborted | pending=%s code=%s error=%s",
                    len(pending),
                    exc.code.value,
                    exc.message,
                )
                raise MigrationAbortedError(exc) from exc
        else:
            logger.info("pre_migration_snapshot_skipped | reason=empty_ledger")

        applied: List[str] = []
        with self.engine.begin() as conn:
            batch = (conn.execute(select(func.max(SchemaMigration.batch))).scalar() or 0) + 1
            for migration in pending:
                migration.upgrade(conn)
                conn.execute(
                    insert(SchemaMigration).values(
                        name=migration.name,
                        batch=batch,
                        migration_time=datetime.now(timezone.utc),
                    )
                )
                applied.append(migration.name)
                logger.info("migration_applied | name=%s batch=%s", migration.name, batch)

        return applied
