"""Pydantic schemas for the HTTP API."""

from .snapshots import (  # noqa: F401
    CleanupResponse,
    DeleteResponse,
    OperationStatus,
    RestoreResponse,
    SafetySnapshotRef,
    SnapshotCreate,
    SnapshotResponse,
    VerificationResponse,
)
