"""APScheduler configuration for periodic snapshot cleanup.

Responsibilities:
- Provide a singleton `AsyncIOScheduler` instance
- Register the retention cleanup as a cron job
- Run the cleanup, skipping a tick when another snapshot operation is active
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from jobvault.core.config import Settings
from jobvault.core.logging import log_event
from jobvault.domain.enums import SnapshotErrorCode
from jobvault.domain.errors import SnapshotError
from jobvault.services.snapshots import SnapshotManager

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "snapshot_cleanup"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler(timezone: str = "UTC") -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(
            timezone=timezone,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
            },
        )
        log_event(logger, "scheduler_created", timezone=timezone, coalesce=True, max_instances=1)
    return _scheduler


def run_snapshot_cleanup(manager: SnapshotManager) -> Optional[Dict[str, Any]]:
    """Scheduled entry point; never raises.

    Returns the cleanup result, or None when the tick was skipped or failed.
    """
    try:
        result = manager.cleanup_old_snapshots()
    except SnapshotError as exc:
        if exc.code == SnapshotErrorCode.OPERATION_IN_PROGRESS:
            logger.info("scheduled_cleanup_skipped | reason=operation_in_progress")
        else:
            logger.error("scheduled_cleanup_failed | code=%s error=%s", exc.code.value, exc.message)
        return None
    except Exception:  # noqa: BLE001
        logger.exception("scheduled_cleanup_crashed")
        return None

    log_event(logger, "scheduled_cleanup_finished", deleted=result["count"], kept=len(result["kept"]))
    return result


def schedule_snapshot_cleanup(scheduler: Any, manager: SnapshotManager, settings: Settings) -> None:
    """Register (or replace) the cleanup cron job."""
    if not settings.cleanup_enabled:
        logger.info("scheduled_cleanup_disabled")
        return
    # In tests, a dummy scheduler may be provided without `add_job`.
    if not hasattr(scheduler, "add_job"):
        return

    try:
        trigger = CronTrigger.from_crontab(settings.cleanup_cron, timezone=settings.scheduler_timezone)
    except ValueError as exc:
        logger.error("scheduled_cleanup_invalid_cron | cron=%s error=%s", settings.cleanup_cron, exc)
        return

    scheduler.add_job(
        run_snapshot_cleanup,
        trigger=trigger,
        args=[manager],
        id=CLEANUP_JOB_ID,
        name="Snapshot retention cleanup",
        replace_existing=True,
    )
    log_event(logger, "scheduled_cleanup_registered", cron=settings.cleanup_cron, job_id=CLEANUP_JOB_ID)
