"""Structural verification of snapshot files.

A snapshot is usable when it:
- exists and is readable
- starts with the SQLite file signature
- opens read-only and passes `PRAGMA integrity_check`
- contains the schema-version ledger with at least one entry

Verification never writes to the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from sqlalchemy import inspect, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from jobvault.core.db import readonly_engine
from jobvault.domain.enums import SnapshotErrorCode
from jobvault.models import MIGRATIONS_TABLE, SchemaMigration

logger = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"


@dataclass
class VerificationResult:
    """Outcome of `SnapshotVerifier.verify`. Several codes may accumulate."""

    error_codes: List[SnapshotErrorCode] = field(default_factory=list)
    schema_version: Optional[str] = None
    table_names: List[str] = field(default_factory=list)
    structural_check_passed: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.error_codes

    def describe_errors(self) -> str:
        if not self.error_codes:
            return ""
        return ", ".join(code.value for code in self.error_codes)


def is_likely_sqlite_file(path: Union[str, Path]) -> bool:
    """Cheap signature check on the first 16 bytes."""
    try:
        with open(path, "rb") as fh:
            return fh.read(len(SQLITE_HEADER)) == SQLITE_HEADER
    except OSError:
        return False


def _classify_open_error(exc: Exception) -> SnapshotErrorCode:
    if "not a database" in str(exc).lower():
        return SnapshotErrorCode.NOT_SQLITE_DATABASE
    return SnapshotErrorCode.INTEGRITY_FAILED


def _latest_migration_name(conn: Connection) -> Optional[str]:
    stmt = select(SchemaMigration.name).order_by(SchemaMigration.id.desc()).limit(1)
    return conn.execute(stmt).scalar()


class SnapshotVerifier:
    """Stateless checker answering "is this file an intact snapshot?"."""

    def verify(self, path: Union[str, Path]) -> VerificationResult:
        result = VerificationResult()
        path = Path(path)

        if not path.exists():
            result.error_codes.append(SnapshotErrorCode.FILE_NOT_FOUND)
            return result
        if not os.access(path, os.R_OK):
            result.error_codes.append(SnapshotErrorCode.PERMISSION_DENIED)
            return result

        if not is_likely_sqlite_file(path):
            result.error_codes.append(SnapshotErrorCode.NOT_SQLITE_DATABASE)
            return result

        engine = readonly_engine(path)
        conn: Optional[Connection] = None
        try:
            try:
                conn = engine.connect()
                # sqlite opens lazily; force the header and schema to be read
                conn.exec_driver_sql("SELECT count(*) FROM sqlite_master").scalar()
            except SQLAlchemyError as exc:
                code = _classify_open_error(exc)
                logger.debug("snapshot_open_failed | path=%s code=%s error=%s", path, code.value, exc)
                result.error_codes.append(code)
                return result

            self._check_structure(conn, result)
            return result
        finally:
            if conn is not None:
                conn.close()
            engine.dispose()

    def _check_structure(self, conn: Connection, result: VerificationResult) -> None:
        try:
            rows = conn.exec_driver_sql("PRAGMA integrity_check").scalars().all()
            result.structural_check_passed = list(rows) == ["ok"]
        except SQLAlchemyError:
            result.structural_check_passed = False
        if not result.structural_check_passed:
            result.error_codes.append(SnapshotErrorCode.INTEGRITY_FAILED)

        try:
            result.table_names = list(inspect(conn).get_table_names())
        except SQLAlchemyError:
            if SnapshotErrorCode.INTEGRITY_FAILED not in result.error_codes:
                result.error_codes.append(SnapshotErrorCode.INTEGRITY_FAILED)
            return

        if MIGRATIONS_TABLE not in result.table_names:
            result.error_codes.append(SnapshotErrorCode.MISSING_MIGRATIONS_TABLE)
            return

        try:
            name = _latest_migration_name(conn)
        except SQLAlchemyError:
            if SnapshotErrorCode.INTEGRITY_FAILED not in result.error_codes:
                result.error_codes.append(SnapshotErrorCode.INTEGRITY_FAILED)
            return

        if name is None:
            result.error_codes.append(SnapshotErrorCode.NO_MIGRATIONS_FOUND)
        else:
            result.schema_version = name


def read_schema_version(path: Union[str, Path]) -> Optional[str]:
    """Best-effort read of the latest ledger entry; None when unreadable."""
    path = Path(path)
    if not path.exists() or not is_likely_sqlite_file(path):
        return None
    engine = readonly_engine(path)
    try:
        with engine.connect() as conn:
            return _latest_migration_name(conn)
    except SQLAlchemyError as exc:
        logger.debug("schema_version_unreadable | path=%s error=%s", path, exc)
        return None
    finally:
        engine.dispose()
