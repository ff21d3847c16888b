"""Snapshot service: create, restore, list, delete and retention cleanup.

All mutating operations run under one `OperationLock`; a second mutating call
made while one is active fails with OPERATION_IN_PROGRESS instead of waiting.
Listing and verification are read-only and take no lock.
"""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from jobvault.core.config import get_settings
from jobvault.core.db import close_engine, readonly_engine
from jobvault.core.logging import log_event
from jobvault.domain.enums import SnapshotErrorCode, SnapshotKind
from jobvault.domain.errors import SnapshotError
from jobvault.services.disk_space import DEFAULT_SAFETY_MARGIN, format_bytes, has_sufficient_disk_space
from jobvault.services.snapshot_names import (
    format_snapshot_filename,
    is_snapshot_candidate,
    kind_from_filename,
    timestamp_from_filename,
    timestamp_key,
    validate_snapshot_filename,
)
from jobvault.services.verifier import SnapshotVerifier, VerificationResult, read_schema_version

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_tz_aware(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware, assuming UTC if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _is_permission_error(exc: BaseException) -> bool:
    if isinstance(exc, PermissionError):
        return True
    text = str(exc).lower()
    return "permission denied" in text or "readonly database" in text


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        pass


class OperationLock:
    """Non-blocking exclusive guard for mutating snapshot operations."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise SnapshotError(
                SnapshotErrorCode.OPERATION_IN_PROGRESS,
                "Another backup operation is already running",
            )
        try:
            yield
        finally:
            self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()


@dataclass
class Snapshot:
    """A verified point-in-time copy of the live database."""

    filename: str
    path: Path
    size_bytes: int
    created_at: datetime
    kind: SnapshotKind
    schema_version: str
    verified: bool
    age_days: Optional[int] = None


class SnapshotManager:
    """Owns the backup directory and every operation that touches it."""

    def __init__(
        self,
        source_db_path: Union[str, Path],
        backup_dir: Union[str, Path],
        *,
        close_live_handles: Optional[Callable[[], None]] = None,
        verifier: Optional[SnapshotVerifier] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        disk_space_margin: float = DEFAULT_SAFETY_MARGIN,
        check_disk_space: bool = True,
        clock: Optional[Clock] = None,
    ) -> None:
        self.source_db_path = Path(source_db_path)
        self.backup_dir = Path(backup_dir)
        self.retention_days = retention_days
        self.disk_space_margin = disk_space_margin
        self.check_disk_space = check_disk_space
        self.verifier = verifier or SnapshotVerifier()
        self._close_live_handles = close_live_handles or (lambda: None)
        self._clock = clock or _utcnow
        self._lock = OperationLock()

    @property
    def lock(self) -> OperationLock:
        return self._lock

    def is_operation_in_progress(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------ create

    def create_snapshot(self, kind: Union[SnapshotKind, str] = SnapshotKind.MANUAL) -> Snapshot:
        """Copy the live database into the backup directory and verify the copy.

        Raises:
            SnapshotError: on any failure; no partial file is left behind.
        """
        try:
            kind = SnapshotKind(kind)
        except ValueError as exc:
            raise SnapshotError(SnapshotErrorCode.UNKNOWN, f"Unknown snapshot kind: {kind}") from exc
        with self._lock.hold():
            return self._create_snapshot_locked(kind)

    def _create_snapshot_locked(self, kind: SnapshotKind) -> Snapshot:
        self._check_source_readable()
        self._check_backup_dir_writable()
        self._check_disk_space(self.source_db_path.stat().st_size)

        target, created_at = self._next_snapshot_path(kind)
        self._copy_database(target)

        verification = self.verifier.verify(target)
        if not verification.is_valid:
            _remove_quietly(target)
            errors = verification.describe_errors() or "Unknown verification error"
            raise SnapshotError(
                SnapshotErrorCode.VERIFICATION_FAILED,
                f"Backup verification failed: {errors}",
            )

        snapshot = Snapshot(
            filename=target.name,
            path=target,
            size_bytes=target.stat().st_size,
            created_at=created_at,
            kind=kind,
            schema_version=verification.schema_version or "unknown",
            verified=True,
        )
        log_event(
            logger,
            "snapshot_created",
            filename=snapshot.filename,
            kind=kind.value,
            size=format_bytes(snapshot.size_bytes),
            schema_version=snapshot.schema_version,
        )
        return snapshot

    def _check_source_readable(self) -> None:
        if not self.source_db_path.exists():
            raise SnapshotError(SnapshotErrorCode.FILE_NOT_FOUND, "Source database file not found")
        if not os.access(self.source_db_path, os.R_OK):
            raise SnapshotError(SnapshotErrorCode.PERMISSION_DENIED, "Cannot read source database")

    def _check_backup_dir_writable(self) -> None:
        if not self.backup_dir.is_dir():
            raise SnapshotError(SnapshotErrorCode.DIRECTORY_NOT_FOUND, "Backup directory does not exist")
        if not os.access(self.backup_dir, os.W_OK):
            raise SnapshotError(SnapshotErrorCode.PERMISSION_DENIED, "Cannot write to backup directory")

    def _check_disk_space(self, source_size: int) -> None:
        if not self.check_disk_space:
            return
        try:
            ok = has_sufficient_disk_space(self.backup_dir, source_size, self.disk_space_margin)
        except OSError as exc:
            logger.warning("disk_space_probe_failed | path=%s error=%s", self.backup_dir, exc)
            return
        if not ok:
            required = int(source_size * self.disk_space_margin)
            raise SnapshotError(
                SnapshotErrorCode.INSUFFICIENT_SPACE,
                f"Not enough disk space for backup (need {format_bytes(required)})",
            )

    def _next_snapshot_path(self, kind: SnapshotKind) -> Tuple[Path, datetime]:
        """First free filename at or after the current time, in 1 ms steps."""
        created_at = _ensure_tz_aware(self._clock()).astimezone(timezone.utc)
        created_at = created_at.replace(microsecond=(created_at.microsecond // 1000) * 1000)
        while True:
            target = self.backup_dir / format_snapshot_filename(created_at, kind)
            if not target.exists():
                return target, created_at
            created_at += timedelta(milliseconds=1)

    def _copy_database(self, target: Path) -> None:
        """Online copy through SQLite's backup API from a read-only source handle."""
        engine = readonly_engine(self.source_db_path)
        try:
            with engine.connect() as conn:
                source = conn.connection.driver_connection
                destination = sqlite3.connect(str(target))
                try:
                    source.backup(destination)
                    # Snapshots must open read-only standalone, without -wal/-shm files
                    destination.execute("PRAGMA journal_mode=DELETE")
                finally:
                    destination.close()
        except Exception as exc:  # noqa: BLE001
            _remove_quietly(target)
            if _is_permission_error(exc):
                raise SnapshotError(
                    SnapshotErrorCode.PERMISSION_DENIED,
                    "Permission denied while creating backup",
                ) from exc
            raise SnapshotError(SnapshotErrorCode.UNKNOWN, f"Failed to create backup: {exc}") from exc
        finally:
            engine.dispose()

    # ----------------------------------------------------------------- restore

    def restore_snapshot(self, filename: str) -> Dict[str, Any]:
        """Replace the live database with a verified snapshot.

        A safety snapshot of the current live database is taken first and is
        returned so callers can point the user at it.

        Returns:
            {"success": True, "message": str,
             "safety_snapshot": {"filename": str, "path": str}}
        """
        with self._lock.hold():
            try:
                return self._restore_locked(filename)
            except SnapshotError as exc:
                log_event(
                    logger,
                    "snapshot_restore_failed",
                    level=logging.ERROR,
                    filename=filename,
                    code=exc.code.value,
                    error=exc.message,
                )
                raise

    def _restore_locked(self, filename: str) -> Dict[str, Any]:
        validate_snapshot_filename(filename)
        snapshot_path = self.backup_dir / filename

        if not snapshot_path.exists():
            raise SnapshotError(SnapshotErrorCode.FILE_NOT_FOUND, f"Backup file not found: {filename}")
        if not os.access(snapshot_path, os.R_OK):
            raise SnapshotError(SnapshotErrorCode.PERMISSION_DENIED, "Cannot read backup file")

        verification = self.verifier.verify(snapshot_path)
        if not verification.is_valid:
            raise SnapshotError(
                SnapshotErrorCode.VERIFICATION_FAILED,
                f"Backup verification failed: {verification.describe_errors()}",
            )

        current_version = read_schema_version(self.source_db_path)
        target_version = verification.schema_version
        # Lexicographic: ledger names carry a zero-padded timestamp prefix
        if current_version and target_version and target_version > current_version:
            raise SnapshotError(
                SnapshotErrorCode.SCHEMA_TOO_NEW,
                "Cannot restore backup from newer application version "
                f"(backup={target_version} current={current_version})",
            )

        safety = self._create_snapshot_locked(SnapshotKind.SAFETY)

        try:
            self._close_live_handles()
        except Exception as exc:  # noqa: BLE001
            raise SnapshotError(
                SnapshotErrorCode.UNKNOWN,
                f"Failed to close live database handles: {exc}",
            ) from exc

        self._replace_live_database(snapshot_path, safety)

        log_event(
            logger,
            "snapshot_restored",
            filename=filename,
            safety_snapshot=safety.filename,
            schema_version=target_version,
        )
        return {
            "success": True,
            "message": f"Database successfully restored from {filename}",
            "safety_snapshot": {"filename": safety.filename, "path": str(safety.path)},
        }

    def _replace_live_database(self, snapshot_path: Path, safety: Snapshot) -> None:
        live = self.source_db_path
        temp_path = live.with_name(live.name + ".restore.tmp")
        try:
            shutil.copyfile(snapshot_path, temp_path)
            self._discard_journal_files()
            os.replace(temp_path, live)
        except Exception as exc:  # noqa: BLE001
            _remove_quietly(temp_path)
            self._recover_from_safety(safety)
            if _is_permission_error(exc):
                raise SnapshotError(
                    SnapshotErrorCode.PERMISSION_DENIED,
                    "Permission denied during database replacement",
                ) from exc
            raise SnapshotError(SnapshotErrorCode.UNKNOWN, f"Failed to restore backup: {exc}") from exc

    def _discard_journal_files(self) -> None:
        """Remove journal sidecars of the closed live database before the swap.

        Their content is already captured by the safety snapshot and must not
        be replayed into the restored file.
        """
        for suffix in ("-wal", "-shm", "-journal"):
            sidecar = self.source_db_path.with_name(self.source_db_path.name + suffix)
            if sidecar.exists():
                sidecar.unlink()

    def _recover_from_safety(self, safety: Snapshot) -> None:
        try:
            shutil.copyfile(safety.path, self.source_db_path)
            log_event(
                logger,
                "snapshot_restore_rolled_back",
                level=logging.WARNING,
                safety_snapshot=safety.filename,
            )
        except Exception as exc:  # noqa: BLE001
            logger.critical(
                "snapshot_restore_rollback_failed | safety_snapshot=%s live=%s error=%s",
                safety.path,
                self.source_db_path,
                exc,
            )

    # -------------------------------------------------------------------- list

    def list_snapshots(self) -> List[Snapshot]:
        """Verified snapshots in the backup directory, newest first.

        Files that fail verification are left out silently.
        """
        try:
            with os.scandir(self.backup_dir) as it:
                entries = list(it)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise SnapshotError(SnapshotErrorCode.UNKNOWN, f"Failed to list backups: {exc}") from exc

        now = _ensure_tz_aware(self._clock())
        snapshots: List[Snapshot] = []
        for entry in entries:
            if not is_snapshot_candidate(entry.name):
                continue
            try:
                if not entry.is_file():
                    continue
                snapshot = self._inspect_snapshot(Path(entry.path), now)
            except Exception as exc:  # noqa: BLE001
                logger.debug("snapshot_skipped | filename=%s error=%s", entry.name, exc)
                continue
            if snapshot is not None:
                snapshots.append(snapshot)

        snapshots.sort(key=lambda s: timestamp_key(s.filename), reverse=True)
        return snapshots

    def _inspect_snapshot(self, path: Path, now: datetime) -> Optional[Snapshot]:
        stat = path.stat()
        verification = self.verifier.verify(path)
        if not verification.is_valid:
            logger.debug(
                "snapshot_unverified | filename=%s errors=%s",
                path.name,
                verification.describe_errors(),
            )
            return None

        created_at = timestamp_from_filename(path.name)
        if created_at is None:
            created_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        age_days = max(0, (now - created_at).days)

        return Snapshot(
            filename=path.name,
            path=path,
            size_bytes=stat.st_size,
            created_at=created_at,
            kind=kind_from_filename(path.name),
            schema_version=verification.schema_version or "unknown",
            verified=True,
            age_days=age_days,
        )

    def verify_snapshot(self, filename: str) -> VerificationResult:
        """Run the verifier against one file of the backup directory."""
        validate_snapshot_filename(filename)
        return self.verifier.verify(self.backup_dir / filename)

    # ------------------------------------------------------------------ delete

    def delete_snapshot(self, filename: str) -> Dict[str, Any]:
        """Delete one snapshot unless it is the last one remaining."""
        with self._lock.hold():
            validate_snapshot_filename(filename)
            path = self.backup_dir / filename

            if not path.exists():
                raise SnapshotError(SnapshotErrorCode.FILE_NOT_FOUND, f"Backup file not found: {filename}")

            if len(self.list_snapshots()) <= 1:
                raise SnapshotError(
                    SnapshotErrorCode.LAST_BACKUP_PROTECTED,
                    "Cannot delete the last remaining backup",
                )

            try:
                path.unlink()
            except PermissionError as exc:
                raise SnapshotError(
                    SnapshotErrorCode.PERMISSION_DENIED,
                    "Permission denied when deleting backup",
                ) from exc
            except OSError as exc:
                raise SnapshotError(SnapshotErrorCode.UNKNOWN, f"Failed to delete backup: {exc}") from exc

            log_event(logger, "snapshot_deleted", filename=filename)
            return {"success": True, "message": f"Backup {filename} deleted successfully"}

    # ----------------------------------------------------------------- cleanup

    def cleanup_old_snapshots(self) -> Dict[str, Any]:
        """Apply age-based retention.

        - pre-migration snapshots are always kept
        - snapshots up to `retention_days` old are kept
        - older ones are deleted, except that one always survives

        Per-file deletion failures are logged and reported under `kept`.
        """
        with self._lock.hold():
            snapshots = self.list_snapshots()
            if not snapshots:
                return {"success": True, "deleted": [], "kept": [], "count": 0}

            kept: List[str] = []
            stale: List[Snapshot] = []
            for snapshot in snapshots:
                age = snapshot.age_days or 0
                if snapshot.kind == SnapshotKind.PRE_MIGRATION or age <= self.retention_days:
                    kept.append(snapshot.filename)
                else:
                    stale.append(snapshot)

            if stale and not kept:
                stale.sort(key=lambda s: s.age_days or 0)
                survivor = stale.pop(0)
                kept.append(survivor.filename)
                logger.info("snapshot_cleanup_last_backup_kept | filename=%s", survivor.filename)

            deleted: List[str] = []
            for snapshot in stale:
                try:
                    snapshot.path.unlink()
                    deleted.append(snapshot.filename)
                except OSError as exc:
                    logger.error(
                        "snapshot_cleanup_delete_failed | filename=%s error=%s",
                        snapshot.filename,
                        exc,
                    )
                    kept.append(snapshot.filename)

            log_event(
                logger,
                "snapshot_cleanup_completed",
                deleted=len(deleted),
                kept=len(kept),
                retention_days=self.retention_days,
            )
            return {"success": True, "deleted": deleted, "kept": kept, "count": len(deleted)}


_manager: Optional[SnapshotManager] = None


def get_snapshot_manager() -> SnapshotManager:
    """Process-wide manager built from settings; shares one operation lock."""
    global _manager
    if _manager is None:
        settings = get_settings()
        _manager = SnapshotManager(
            settings.db_path,
            settings.backup_dir,
            close_live_handles=close_engine,
            retention_days=settings.retention_days,
            check_disk_space=settings.check_disk_space,
        )
    return _manager
