"""Health check API router."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from jobvault.core.db import readonly_engine
from jobvault.services.snapshots import SnapshotManager, get_snapshot_manager

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness endpoint."""
    return {"status": "ok"}


@router.get("/ready")
def ready(manager: SnapshotManager = Depends(get_snapshot_manager)) -> JSONResponse:
    """Ready when the backup directory exists and the live database answers.

    The live file is probed through a throwaway read-only engine so the probe
    never holds a pooled handle across a restore swap. While a snapshot
    operation runs the probe is skipped altogether.
    """
    if not manager.backup_dir.is_dir():
        return JSONResponse(status_code=503, content={"status": "unavailable", "reason": "backup_dir_missing"})
    if manager.is_operation_in_progress():
        return JSONResponse(status_code=503, content={"status": "unavailable", "reason": "operation_in_progress"})

    engine = readonly_engine(manager.source_db_path)
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT count(*) FROM sqlite_master").scalar()
    except SQLAlchemyError:
        return JSONResponse(status_code=503, content={"status": "unavailable", "reason": "database_unreachable"})
    finally:
        engine.dispose()
    return JSONResponse(status_code=200, content={"status": "ready"})
