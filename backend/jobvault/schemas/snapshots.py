"""Schemas for snapshot endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from jobvault.domain.enums import SnapshotErrorCode, SnapshotKind


class SnapshotCreate(BaseModel):
    """Request body for creating a snapshot."""

    kind: SnapshotKind = Field(default=SnapshotKind.MANUAL, description="manual, pre-migration or safety")


class SnapshotResponse(BaseModel):
    """A verified snapshot in the backup directory."""

    filename: str = Field(..., description="Generated snapshot filename")
    path: str = Field(..., description="Absolute path inside the backup directory")
    size_bytes: int = Field(..., description="File size in bytes")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    kind: SnapshotKind = Field(..., description="Origin of the snapshot")
    schema_version: str = Field(..., description="Latest schema migration recorded in the snapshot")
    verified: bool = Field(..., description="Whether every structural check passed")
    age_days: Optional[int] = Field(None, description="Whole days since creation (listing only)")

    @classmethod
    def from_snapshot(cls, snapshot) -> "SnapshotResponse":
        return cls(
            filename=snapshot.filename,
            path=str(snapshot.path),
            size_bytes=snapshot.size_bytes,
            created_at=snapshot.created_at,
            kind=snapshot.kind,
            schema_version=snapshot.schema_version,
            verified=snapshot.verified,
            age_days=snapshot.age_days,
        )


class SafetySnapshotRef(BaseModel):
    filename: str
    path: str


class RestoreResponse(BaseModel):
    success: bool
    message: str
    safety_snapshot: Optional[SafetySnapshotRef] = Field(
        None, description="Snapshot of the database state that was replaced"
    )


class DeleteResponse(BaseModel):
    success: bool
    message: str


class CleanupResponse(BaseModel):
    success: bool
    deleted: List[str] = Field(default_factory=list, description="Filenames removed by retention")
    kept: List[str] = Field(default_factory=list, description="Filenames kept, including failed deletions")
    count: int = Field(..., description="Number of snapshots actually deleted")


class OperationStatus(BaseModel):
    operation_in_progress: bool


class VerificationResponse(BaseModel):
    filename: str
    is_valid: bool
    error_codes: List[SnapshotErrorCode] = Field(default_factory=list)
    schema_version: Optional[str] = None
    table_names: List[str] = Field(default_factory=list)
    structural_check_passed: bool = False
