"""PINGSYNC - Scheduler Jobs.

APScheduler interval job that runs a sync pass every few minutes.
"""

from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from pingsync.config import Settings, settings as default_settings
from pingsync.core.errors import PingsyncError, SyncAbortedError
from pingsync.core.logging import get_logger
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.models.sync_models import SyncOptions

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()

SYNC_JOB_ID = "pingdom_sync"


async def sync_job(orchestrator: SyncOrchestrator, summary_only: bool = False) -> None:
    """Run one sync pass; failures are logged and the next run tries again."""
    logger.info("Scheduled sync starting...")
    try:
        report = await orchestrator.run_sync(options=SyncOptions(summary_only=summary_only))
        logger.info(f"Scheduled sync complete: {report.summary()}")
    except SyncAbortedError as e:
        logger.error(f"Scheduled sync aborted: {e}")
    except PingsyncError as e:
        logger.error(f"Scheduled sync failed: {e}")


def start_scheduler(
    orchestrator: SyncOrchestrator,
    config: Optional[Settings] = None,
    target: Optional[AsyncIOScheduler] = None,
    run_now: bool = False,
) -> AsyncIOScheduler:
    """Register the sync job and start the scheduler.

    Must be called from inside a running event loop. With ``run_now`` the
    first pass starts immediately instead of after one interval.
    """
    config = config or default_settings
    target = target or scheduler
    if not config.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return target

    extra = {"next_run_time": datetime.now(timezone.utc)} if run_now else {}
    target.add_job(
        sync_job,
        "interval",
        minutes=config.sync_interval_minutes,
        args=[orchestrator, config.sync_summary_only],
        id=SYNC_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=60,
        **extra,
    )
    target.start()
    logger.info(f"Scheduler started. Sync every {config.sync_interval_minutes} min")
    return target


def stop_scheduler(target: Optional[AsyncIOScheduler] = None) -> None:
    """Shutdown the scheduler gracefully."""
    target = target or scheduler
    if target.running:
        target.shutdown(wait=False)
        logger.info("Scheduler stopped")
