"""
APScheduler Configuration

Background job scheduler started and stopped by the application lifespan.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from commerce.config import settings
from commerce.database import Database

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone='UTC'
)


async def run_fulfillment_retry(database: Database):
    """Scheduler entry point; a failing run is logged and retried next interval."""
    from commerce.jobs.fulfillment_jobs import retry_failed_fulfillments

    try:
        await retry_failed_fulfillments(database)
    except Exception as e:
        logger.error(f"Job 'retry_failed_fulfillments' failed: {e}")


def start_scheduler(database: Database):
    """Start the background job scheduler."""
    if not scheduler.running:
        # Retry paid checkout sessions whose order creation failed
        scheduler.add_job(
            run_fulfillment_retry,
            'interval',
            minutes=settings.FULFILLMENT_RETRY_INTERVAL_MINUTES,
            args=[database],
            id='retry_failed_fulfillments',
            name='Retry Failed Checkout Fulfillments',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]
