from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from jobvault.core.db import Base

MIGRATIONS_TABLE = "schema_migrations"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchemaMigration(Base):
    """Schema-version ledger: one row per applied migration.

    Migration names start with a zero-padded timestamp (`YYYYMMDDHHMMSS_...`),
    so the row with the highest id is also the lexicographically greatest name.
    """

    __tablename__ = MIGRATIONS_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    batch = Column(Integer, nullable=False)
    migration_time = Column(DateTime, nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<SchemaMigration(id={self.id}, name='{self.name}', batch={self.batch})>"
