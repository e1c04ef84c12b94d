"""
Scheduler for the missed-opportunity sweep.

Uses APScheduler to run the sweep at the configured interval.
"""

import logging
import signal
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tendertrack.config import config

logger = logging.getLogger(__name__)


def sweep_job():
    """Run one missed-opportunity sweep."""
    from tendertrack.lifecycle import sweep_missed_opportunities

    logger.info("Starting scheduled missed-opportunity sweep")
    try:
        result = sweep_missed_opportunities()
    except Exception as e:
        logger.error("Sweep error: %s", e)
        return None

    for tender in result.transitioned:
        logger.info("  Missed: #%s %s (%s)", tender.id, tender.title[:60], tender.organization)
    logger.info("Sweep complete: %d tender(s) marked missed", result.processed_count)
    return result


def build_scheduler(foreground: bool = True, interval_hours: int | None = None):
    """Create a scheduler with the sweep job registered."""
    if foreground:
        scheduler = BlockingScheduler()
    else:
        scheduler = BackgroundScheduler()

    interval_hours = interval_hours or config.sweep_interval_hours

    scheduler.add_job(
        sweep_job,
        trigger=IntervalTrigger(hours=interval_hours),
        id="missed_opportunity_sweep",
        name="Missed-opportunity sweep",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def start_scheduler(foreground: bool = True):
    """
    Start the scheduler.

    Args:
        foreground: If True, run in blocking mode. Otherwise, background.

    Returns:
        The running scheduler when started in the background.
    """
    scheduler = build_scheduler(foreground)

    if foreground:
        def shutdown(signum, frame):
            logger.info("Shutting down scheduler...")
            scheduler.shutdown(wait=False)
            sys.exit(0)

        signal.signal(signal.SIGINT, shutdown)
        signal.signal(signal.SIGTERM, shutdown)

    logger.info("Scheduler started. Sweep interval: %s hours", config.sweep_interval_hours)
    for job in scheduler.get_jobs():
        logger.info("  - %s: %s", job.name, job.trigger)

    # Run initial sweep
    sweep_job()

    scheduler.start()
    if not foreground:
        return scheduler
    return None
