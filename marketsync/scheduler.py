"""
Scheduled stock sync.

When SYNC_SCHEDULE_ENABLED is set, an interval job runs one orchestrated sync
in SYNC_SCHEDULE_DIRECTION every SYNC_SCHEDULE_MINUTES inside the FastAPI
process.
"""

import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from marketsync.core.config import Settings, get_settings
from marketsync.core.exceptions import SyncInProgressError
from marketsync.services.sync_runner import run_standalone_sync

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def scheduled_stock_sync_task():
    """Task to run one stock sync in the configured direction"""
    settings = get_settings()
    try:
        logger.info(f"=== SCHEDULED {settings.SYNC_SCHEDULE_DIRECTION.value.upper()} STOCK SYNC STARTING ===")
        report = await run_standalone_sync(settings.SYNC_SCHEDULE_DIRECTION, settings)
        logger.info(
            f"Scheduled sync {report.sync_run_id} finished ({report.status.value}): "
            f"{report.synced}/{report.total} synced"
        )
    except SyncInProgressError:
        logger.info("Skipping scheduled sync: another run is in progress")
    except Exception as e:
        logger.exception(f"Error in scheduled sync task: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.debug(f"Job {event.job_id} executed")


def create_scheduler(settings: Optional[Settings] = None) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.SYNC_SCHEDULE_ENABLED:
        scheduler.add_job(
            scheduled_stock_sync_task,
            IntervalTrigger(minutes=settings.SYNC_SCHEDULE_MINUTES),
            id="stock_sync",
            name="Marketplace Stock Sync",
            replace_existing=True,
            max_instances=1,  # Only one sync at a time
            coalesce=True,
        )
        logger.info(
            f"Scheduled {settings.SYNC_SCHEDULE_DIRECTION.value} sync every {settings.SYNC_SCHEDULE_MINUTES} minutes"
        )
    else:
        logger.info("Scheduled sync is disabled. Set SYNC_SCHEDULE_ENABLED=true to enable")

    return scheduler


async def start_scheduler(settings: Optional[Settings] = None):
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler(settings)

    if not scheduler.running:
        scheduler.start()
        logger.info(f"Scheduler started with {len(scheduler.get_jobs())} job(s)")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None
