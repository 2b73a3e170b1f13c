"""APScheduler-based periodic feed sync."""

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from careersync.config import CareerSyncConfig
from careersync.errors import CareerSyncError
from careersync.models import SyncReport

logger = logging.getLogger(__name__)

JOB_ID = "careersync_sync"


def sync_task(config: CareerSyncConfig, engine) -> SyncReport | None:
    """Run one full sync. Same flow as the CLI sync command.

    Failures are already recorded in the run history by the orchestrator,
    so they are logged here and not re-raised into the scheduler thread.
    """
    from careersync.sync.orchestrator import SyncOrchestrator

    orchestrator = SyncOrchestrator.from_config(config, engine)
    try:
        return orchestrator.run()
    except CareerSyncError as e:
        logger.error("Scheduled sync failed: %s", e)
        return None
    finally:
        orchestrator.fetcher.close()
        orchestrator.geocoder.close()


def parse_cron(cron_expr: str) -> dict:
    """Parse a cron expression into APScheduler CronTrigger kwargs."""
    parts = cron_expr.strip().split()
    if len(parts) != 5:
        raise ValueError(f"Invalid cron expression: {cron_expr}")
    return {
        "minute": parts[0],
        "hour": parts[1],
        "day": parts[2],
        "month": parts[3],
        "day_of_week": parts[4],
    }


def start_scheduler(config: CareerSyncConfig, engine) -> BackgroundScheduler:
    """Start the background scheduler with the sync task."""
    scheduler = BackgroundScheduler()
    cron_kwargs = parse_cron(config.scheduler.cron)

    scheduler.add_job(
        sync_task,
        trigger=CronTrigger(**cron_kwargs),
        args=[config, engine],
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info("Scheduler started with cron: %s", config.scheduler.cron)
    return scheduler


def stop_scheduler(scheduler: BackgroundScheduler):
    """Shut down the scheduler gracefully."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")


def get_next_run_time(scheduler: BackgroundScheduler) -> datetime | None:
    """Get next scheduled run time."""
    job = scheduler.get_job(JOB_ID)
    if job:
        return job.next_run_time
    return None
