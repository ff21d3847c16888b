"""FastAPI application exposing the snapshot engine."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
import logging
from fastapi.responses import RedirectResponse

from jobvault.core.config import Settings, ensure_dir, get_settings
from jobvault.core.db import close_engine, get_engine
from jobvault.core.logging import setup_logging
from jobvault.core.scheduler import get_scheduler, schedule_snapshot_cleanup
from jobvault.services.snapshots import get_snapshot_manager


def prepare_storage(settings: Settings) -> None:
    """Make sure the backup directory exists and the live database opens."""
    logger = logging.getLogger(__name__)
    ok, reason = ensure_dir(settings.backup_dir)
    if not ok:
        logger.error("Backup directory '%s' is not usable: %s", settings.backup_dir, reason)
        raise SystemExit(1)
    get_engine(settings.db_path)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    setup_logging()
    logger = logging.getLogger(__name__)
    settings = get_settings()
    prepare_storage(settings)

    scheduler = get_scheduler(settings.scheduler_timezone)
    schedule_snapshot_cleanup(scheduler, get_snapshot_manager(), settings)
    scheduler.start()
    logger.info("APScheduler started | timezone=%s", settings.scheduler_timezone)

    yield

    # Shutdown
    scheduler.shutdown()
    close_engine()
    logger.info("APScheduler shutdown")


app = FastAPI(
    title="Jobvault Snapshot API",
    description="Backup and restore engine for the job tracker database",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

from jobvault.api import health, snapshots

# Mount health endpoints unversioned for infra probes (/health, /ready)
app.include_router(health.router)
app.include_router(snapshots.router, prefix="/api/v1")


@app.get("/")
async def root() -> RedirectResponse:
    """Redirect root to Swagger UI."""
    return RedirectResponse(url="/api/docs")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8080)
