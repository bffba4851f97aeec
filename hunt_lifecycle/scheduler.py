# hunt_lifecycle/scheduler.py
"""
Background task scheduler for hunt participation cleanup.

Uses APScheduler to run:
- the expiry sweep (every CLEANUP_SWEEP_INTERVAL_MINUTES)
- a fallback pre-start waitlist purge (every PRESTART_SWEEP_INTERVAL_SECONDS)
- one-off waitlist purges, 1 second before each upcoming hunt starts
"""
import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from hunt_lifecycle import crud
from hunt_lifecycle.background_tasks.hunt_cleanup_tasks import (
    expire_stale_requests_job,
    purge_started_waitlists_job,
    purge_waitlist_job,
)
from hunt_lifecycle.core.config import settings
from hunt_lifecycle.db.session import SessionLocal
from hunt_lifecycle.utils.clock import utcnow
from hunt_lifecycle.utils.hunt_expiration import waitlist_purge_time

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def _on_job_error(event):
    """Log scheduler job errors with full context."""
    exc = event.exception
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id, exc,
        exc_info=(type(exc), exc, None) if exc else None,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def _on_job_missed(event):
    """Log when a scheduled job misses its execution window."""
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id,
        event.scheduled_run_time,
    )


def _prestart_job_id(hunt_id: str) -> str:
    return f"prestart_purge:{hunt_id}"


def schedule_prestart_purge(hunt_id: str, start_date: datetime) -> Optional[str]:
    """
    Schedule the waitlist purge of one hunt for 1 second before it starts.

    Rescheduling replaces any earlier job for the same hunt. Hunts whose purge
    time has already passed are left to the fallback sweep.

    Returns:
        The job id, or None if nothing was scheduled
    """
    if scheduler is None:
        return None

    run_at = waitlist_purge_time(start_date)
    if run_at <= utcnow():
        return None

    job_id = _prestart_job_id(hunt_id)
    scheduler.add_job(
        func=purge_waitlist_job,
        trigger=DateTrigger(run_date=run_at),
        args=[hunt_id],
        id=job_id,
        name=f"Purge Waitlist Before Start ({hunt_id})",
        replace_existing=True,
    )
    logger.info(f"Scheduled pre-start waitlist purge for hunt {hunt_id} at {run_at.isoformat()}")
    return job_id


def cancel_prestart_purge(hunt_id: str) -> None:
    if scheduler is None:
        return
    try:
        scheduler.remove_job(_prestart_job_id(hunt_id))
    except JobLookupError:
        logger.debug(f"No pre-start purge job for hunt {hunt_id}")


def _schedule_upcoming_purges() -> int:
    """Recreate one-off purge jobs for every hunt that has not started yet."""
    db = SessionLocal()
    try:
        hunts = crud.hunt.get_upcoming_hunts(db, now=utcnow())
        scheduled = 0
        for hunt in hunts:
            if schedule_prestart_purge(hunt.id, hunt.start_date):
                scheduled += 1
        return scheduled
    finally:
        db.close()


def init_scheduler():
    """
    Initialize the background scheduler with all periodic tasks.

    This is called once when the application starts up.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={
            'coalesce': True,  # Combine missed executions
            'max_instances': 1,  # Only one instance of each job at a time
            'misfire_grace_time': 60  # Allow 60 seconds grace period
        }
    )

    # Job 1: Cancel expired pending/waitlisted requests
    scheduler.add_job(
        func=expire_stale_requests_job,
        trigger=IntervalTrigger(minutes=settings.CLEANUP_SWEEP_INTERVAL_MINUTES),
        id='expire_stale_requests',
        name='Expire Stale Hunt Requests',
        replace_existing=True
    )
    logger.info(
        f"Scheduled job: expire_stale_requests (every {settings.CLEANUP_SWEEP_INTERVAL_MINUTES} minutes)"
    )

    # Job 2: Purge waitlists of hunts that started without their one-off job
    scheduler.add_job(
        func=purge_started_waitlists_job,
        trigger=IntervalTrigger(seconds=settings.PRESTART_SWEEP_INTERVAL_SECONDS),
        id='purge_started_waitlists',
        name='Purge Waitlists Of Starting Hunts',
        replace_existing=True
    )
    logger.info(
        f"Scheduled job: purge_started_waitlists (every {settings.PRESTART_SWEEP_INTERVAL_SECONDS} seconds)"
    )

    # Listen for job errors and misfires so they don't fail silently
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)

    scheduler.start()
    logger.info("Background scheduler started successfully")

    scheduled = _schedule_upcoming_purges()
    logger.info(f"Scheduled pre-start purges for {scheduled} upcoming hunt(s)")

    return scheduler


def shutdown_scheduler():
    """
    Gracefully shutdown the scheduler.

    This is called when the application shuts down.
    """
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler shutdown complete")
        scheduler = None


def get_scheduler_status():
    """
    Get the current status of all scheduled jobs.

    Returns:
        Dict with the scheduler state and its jobs' next run times
    """
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs
    }
