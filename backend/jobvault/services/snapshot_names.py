"""Snapshot filename formatting and parsing.

Filenames are the only metadata carrier on disk:

    backup_<YYYY-MM-DD>_<HH-MM-SS>-<mmm>[_<kind>].db

The timestamp is UTC with millisecond resolution. The kind suffix is omitted
for manual snapshots.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from jobvault.domain.enums import SnapshotErrorCode, SnapshotKind
from jobvault.domain.errors import SnapshotError

SNAPSHOT_PREFIX = "backup_"
SNAPSHOT_EXTENSION = ".db"

_TIMESTAMP_RE = re.compile(r"backup_(\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}-\d{3})")
_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def kind_suffix(kind: SnapshotKind) -> str:
    if kind == SnapshotKind.MANUAL:
        return ""
    return f"_{kind.value}"


def format_snapshot_filename(created_at: datetime, kind: SnapshotKind) -> str:
    """Build the filename for a snapshot taken at `created_at`."""
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc)
    millis = created_at.microsecond // 1000
    stamp = f"{created_at.strftime(_TIMESTAMP_FORMAT)}-{millis:03d}"
    return f"{SNAPSHOT_PREFIX}{stamp}{kind_suffix(kind)}{SNAPSHOT_EXTENSION}"


def kind_from_filename(filename: str) -> SnapshotKind:
    if "_pre-migration" in filename:
        return SnapshotKind.PRE_MIGRATION
    if "_safety" in filename:
        return SnapshotKind.SAFETY
    return SnapshotKind.MANUAL


def timestamp_key(filename: str) -> str:
    """Sortable timestamp text embedded in `filename`, or "" if absent."""
    match = _TIMESTAMP_RE.search(filename)
    return match.group(1) if match else ""


def timestamp_from_filename(filename: str) -> Optional[datetime]:
    """Parse the embedded UTC timestamp; None when the name does not carry one."""
    key = timestamp_key(filename)
    if not key:
        return None
    stamp, millis = key.rsplit("-", 1)
    try:
        parsed = datetime.strptime(stamp, _TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return parsed.replace(microsecond=int(millis) * 1000, tzinfo=timezone.utc)


def is_snapshot_candidate(filename: str) -> bool:
    """Non-hidden file carrying the snapshot extension."""
    return filename.endswith(SNAPSHOT_EXTENSION) and not filename.startswith(".")


def validate_snapshot_filename(filename: Optional[str]) -> str:
    """Reject names that could resolve outside the backup directory.

    Raises:
        SnapshotError: INVALID_FILENAME for empty names, path separators or `..`.
    """
    if not filename or filename.strip() == "":
        raise SnapshotError(SnapshotErrorCode.INVALID_FILENAME, "Filename cannot be empty")
    if ".." in filename or "/" in filename or "\\" in filename:
        raise SnapshotError(
            SnapshotErrorCode.INVALID_FILENAME,
            "Invalid filename: path traversal not allowed",
        )
    return filename
