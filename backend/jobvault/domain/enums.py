from __future__ import annotations

from enum import Enum


class SnapshotKind(str, Enum):
    MANUAL = "manual"
    PRE_MIGRATION = "pre-migration"
    SAFETY = "safety"


class SnapshotErrorCode(str, Enum):
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    DIRECTORY_NOT_FOUND = "DIRECTORY_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INSUFFICIENT_SPACE = "INSUFFICIENT_SPACE"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"
    NOT_SQLITE_DATABASE = "NOT_SQLITE_DATABASE"
    INTEGRITY_FAILED = "INTEGRITY_FAILED"
    MISSING_MIGRATIONS_TABLE = "MISSING_MIGRATIONS_TABLE"
    NO_MIGRATIONS_FOUND = "NO_MIGRATIONS_FOUND"
    INVALID_FILENAME = "INVALID_FILENAME"
    SCHEMA_TOO_NEW = "SCHEMA_TOO_NEW"
    LAST_BACKUP_PROTECTED = "LAST_BACKUP_PROTECTED"
    OPERATION_IN_PROGRESS = "OPERATION_IN_PROGRESS"
    UNKNOWN = "UNKNOWN"
