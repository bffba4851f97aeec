# hunt_lifecycle/background_tasks/hunt_cleanup_tasks.py
"""
Background tasks for hunt participation cleanup.

- run_expiry_sweep(): cancel pending/waitlisted requests whose window passed
  (periodic, hourly by default, or the manual cron endpoint)
- purge_waitlist_before_start(): clear a hunt's waitlist 1 second before it
  starts (one-off job per hunt)
- purge_started_waitlists(): fallback for hunts whose one-off job never ran

Every row is handled in its own transaction through the participation
service, so a failing row is logged and the rest of the batch continues.
"""
import logging
from typing import Optional

import redis
from sqlalchemy.orm import Session

from hunt_lifecycle import crud
from hunt_lifecycle.db.redis import get_redis_client
from hunt_lifecycle.db.session import SessionLocal
from hunt_lifecycle.services.hunt_participation import ParticipationCounter, ParticipationService
from hunt_lifecycle.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

EXPIRY_SWEEP_LOCK_KEY = "hunts:expiry_sweep_lock"
PRESTART_SWEEP_LOCK_KEY = "hunts:prestart_sweep_lock"
SWEEP_LOCK_TTL_SECONDS = 300


def run_expiry_sweep(
    db: Session,
    *,
    clock: Clock = utcnow,
    counter: Optional[ParticipationCounter] = None,
) -> int:
    """
    Cancel every pending or waitlisted request whose expiry has passed.

    Expiring a pending request offers the freed slot to the waitlist. Safe to
    run concurrently with user actions and with itself: a row that is no
    longer expired when its turn comes is skipped.

    Returns:
        Number of requests cancelled by this run
    """
    service = ParticipationService(db, counter=counter, clock=clock)
    now = clock()
    expired_ids = service.atomic(crud.hunt_participant.get_expired_request_ids, db, now=now)

    cleaned = 0
    for participant_id in expired_ids:
        try:
            if service.expire_participant(participant_id):
                cleaned += 1
        except Exception as e:
            logger.error(f"Failed to expire participant {participant_id}: {e}", exc_info=True)

    if expired_ids:
        logger.info(f"Expiry sweep cancelled {cleaned} of {len(expired_ids)} expired request(s)")
    return cleaned


def purge_waitlist_before_start(db: Session, hunt_id: str) -> int:
    """Cancel all waitlisted participants of one hunt. Returns the number purged."""
    return ParticipationService(db).purge_waitlist(hunt_id)


def purge_started_waitlists(db: Session, *, clock: Clock = utcnow) -> int:
    """
    Purge the waitlists of hunts that start within the cleanup buffer or have
    already started. Returns the total number of participants purged.
    """
    now = clock()
    service = ParticipationService(db, clock=clock)
    hunt_ids = service.atomic(crud.hunt.get_hunt_ids_due_for_waitlist_purge, db, now=now)

    purged = 0
    for hunt_id in hunt_ids:
        try:
            purged += service.purge_waitlist(hunt_id)
        except Exception as e:
            logger.error(f"Failed to purge waitlist of hunt {hunt_id}: {e}", exc_info=True)
    return purged


# ==================== Scheduler entry points ====================

def _acquire_lock(redis_client: redis.Redis, lock_key: str) -> bool:
    try:
        return bool(redis_client.set(lock_key, "1", nx=True, ex=SWEEP_LOCK_TTL_SECONDS))
    except redis.RedisError as e:
        # Sweeps are idempotent; the lock only avoids duplicate work
        logger.warning(f"Redis unavailable for {lock_key}, sweeping without lock: {e}")
        return True


def _release_lock(redis_client: redis.Redis, lock_key: str) -> None:
    try:
        redis_client.delete(lock_key)
    except redis.RedisError as e:
        logger.warning(f"Could not release {lock_key}: {e}")


def expire_stale_requests_job() -> int:
    """
    Scheduled job: run the expiry sweep unless another worker holds the lock.
    """
    redis_client = get_redis_client()
    if not _acquire_lock(redis_client, EXPIRY_SWEEP_LOCK_KEY):
        logger.debug("Skipping expiry sweep - already running elsewhere")
        redis_client.close()
        return 0

    db = SessionLocal()
    try:
        return run_expiry_sweep(db)
    finally:
        db.close()
        _release_lock(redis_client, EXPIRY_SWEEP_LOCK_KEY)
        redis_client.close()


def purge_started_waitlists_job() -> int:
    """Scheduled job: fallback pre-start purge across all hunts."""
    redis_client = get_redis_client()
    if not _acquire_lock(redis_client, PRESTART_SWEEP_LOCK_KEY):
        logger.debug("Skipping pre-start purge sweep - already running elsewhere")
        redis_client.close()
        return 0

    db = SessionLocal()
    try:
        return purge_started_waitlists(db)
    finally:
        db.close()
        _release_lock(redis_client, PRESTART_SWEEP_LOCK_KEY)
        redis_client.close()


def purge_waitlist_job(hunt_id: str) -> int:
    """One-off job scheduled 1 second before a hunt starts."""
    db = SessionLocal()
    try:
        return purge_waitlist_before_start(db, hunt_id)
    finally:
        db.close()
