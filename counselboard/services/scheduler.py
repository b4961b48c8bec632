"""
APScheduler Configuration

Runs the auto-complete sweep on a fixed interval alongside the API.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from counselboard.config import AUTO_COMPLETE_INTERVAL_SECONDS
from counselboard.services.auto_complete import AutoCompleteSweeper

logger = logging.getLogger(__name__)

AUTO_COMPLETE_JOB_ID = "auto_complete_sweep"


async def run_auto_complete_sweep(sweeper: AutoCompleteSweeper):
    """
    Interval job that closes overdue counseling sessions.

    A failed tick is logged; the next tick scans the same overdue sessions
    again, so nothing is retried here.
    """
    try:
        summary = await sweeper.run_once()

        if summary["race_lost"]:
            logger.debug(
                f"Auto-complete sweep: {summary['race_lost']} session(s) closed manually first"
            )

    except Exception as e:
        logger.error(f"Auto-complete sweep failed: {e}", exc_info=True)


def configure_scheduler(
    scheduler: AsyncIOScheduler,
    sweeper: AutoCompleteSweeper,
    interval_seconds: int = AUTO_COMPLETE_INTERVAL_SECONDS,
) -> AsyncIOScheduler:
    """
    Register scheduled jobs.

    Jobs:
        - Auto-complete sweep: every interval_seconds
    """
    scheduler.add_job(
        run_auto_complete_sweep,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[sweeper],
        id=AUTO_COMPLETE_JOB_ID,
        name="Auto-complete overdue counseling sessions",
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1,  # Only one instance at a time
    )

    logger.info(f"Scheduler configured with auto-complete sweep every {interval_seconds}s")
    return scheduler


def start_scheduler(
    sweeper: AutoCompleteSweeper,
    interval_seconds: int = AUTO_COMPLETE_INTERVAL_SECONDS,
) -> AsyncIOScheduler:
    """Create, configure and start the APScheduler"""
    scheduler = configure_scheduler(AsyncIOScheduler(), sweeper, interval_seconds)
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler):
    """Stop the APScheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")
