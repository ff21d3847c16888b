"""Snapshot API router."""

from __future__ import annotations

from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from jobvault.domain.enums import SnapshotErrorCode
from jobvault.domain.errors import SnapshotError
from jobvault.schemas import (
    CleanupResponse,
    DeleteResponse,
    OperationStatus,
    RestoreResponse,
    SnapshotCreate,
    SnapshotResponse,
    VerificationResponse,
)
from jobvault.services.snapshots import SnapshotManager, get_snapshot_manager


router = APIRouter(prefix="/snapshots", tags=["snapshots"])

_STATUS_BY_CODE = {
    SnapshotErrorCode.INVALID_FILENAME: status.HTTP_400_BAD_REQUEST,
    SnapshotErrorCode.FILE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    SnapshotErrorCode.VERIFICATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SnapshotErrorCode.NOT_SQLITE_DATABASE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SnapshotErrorCode.INTEGRITY_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SnapshotErrorCode.MISSING_MIGRATIONS_TABLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SnapshotErrorCode.NO_MIGRATIONS_FOUND: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SnapshotErrorCode.SCHEMA_TOO_NEW: status.HTTP_409_CONFLICT,
    SnapshotErrorCode.LAST_BACKUP_PROTECTED: status.HTTP_409_CONFLICT,
    SnapshotErrorCode.OPERATION_IN_PROGRESS: status.HTTP_409_CONFLICT,
    SnapshotErrorCode.INSUFFICIENT_SPACE: status.HTTP_507_INSUFFICIENT_STORAGE,
}


def _raise_http(exc: SnapshotError) -> NoReturn:
    code = _STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(status_code=code, detail={"code": exc.code.value, "message": exc.message})


@router.get("/", response_model=List[SnapshotResponse])
def list_snapshots(manager: SnapshotManager = Depends(get_snapshot_manager)) -> List[SnapshotResponse]:
    """List verified snapshots, newest first. Corrupted files are omitted."""
    try:
        snapshots = manager.list_snapshots()
    except SnapshotError as exc:
        _raise_http(exc)
    return [SnapshotResponse.from_snapshot(s) for s in snapshots]


@router.post("/", response_model=SnapshotResponse, status_code=status.HTTP_201_CREATED)
def create_snapshot(
    payload: SnapshotCreate | None = None,
    manager: SnapshotManager = Depends(get_snapshot_manager),
) -> SnapshotResponse:
    kind = payload.kind if payload is not None else SnapshotCreate().kind
    try:
        snapshot = manager.create_snapshot(kind)
    except SnapshotError as exc:
        _raise_http(exc)
    return SnapshotResponse.from_snapshot(snapshot)


@router.get("/status", response_model=OperationStatus)
def operation_status(manager: SnapshotManager = Depends(get_snapshot_manager)) -> OperationStatus:
    return OperationStatus(operation_in_progress=manager.is_operation_in_progress())


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_snapshots(manager: SnapshotManager = Depends(get_snapshot_manager)) -> CleanupResponse:
    """Delete manual and safety snapshots older than the retention window."""
    try:
        result = manager.cleanup_old_snapshots()
    except SnapshotError as exc:
        _raise_http(exc)
    return CleanupResponse(**result)


@router.get("/{filename}/verify", response_model=VerificationResponse)
def verify_snapshot(
    filename: str,
    manager: SnapshotManager = Depends(get_snapshot_manager),
) -> VerificationResponse:
    try:
        result = manager.verify_snapshot(filename)
    except SnapshotError as exc:
        _raise_http(exc)
    return VerificationResponse(
        filename=filename,
        is_valid=result.is_valid,
        error_codes=result.error_codes,
        schema_version=result.schema_version,
        table_names=result.table_names,
        structural_check_passed=result.structural_check_passed,
    )


@router.post("/{filename}/restore", response_model=RestoreResponse)
def restore_snapshot(
    filename: str,
    manager: SnapshotManager = Depends(get_snapshot_manager),
) -> RestoreResponse:
    """Replace the live database with `filename`.

    The previous database state is kept as a safety snapshot whose name is
    returned in the response.
    """
    try:
        result = manager.restore_snapshot(filename)
    except SnapshotError as exc:
        _raise_http(exc)
    return RestoreResponse(**result)


@router.delete("/{filename}", response_model=DeleteResponse)
def delete_snapshot(
    filename: str,
    manager: SnapshotManager = Depends(get_snapshot_manager),
) -> DeleteResponse:
    try:
        result = manager.delete_snapshot(filename)
    except SnapshotError as exc:
        _raise_http(exc)
    return DeleteResponse(**result)
