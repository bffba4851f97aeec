# hunt_lifecycle/api/v1/endpoints/cron.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hunt_lifecycle.api import deps
from hunt_lifecycle.background_tasks.hunt_cleanup_tasks import (
    purge_started_waitlists,
    run_expiry_sweep,
)
from hunt_lifecycle.schemas.hunt import CleanupResponse
from hunt_lifecycle.services.hunt_participation import ParticipationCounter
from hunt_lifecycle.utils.clock import Clock

router = APIRouter(tags=["Cron"])
logger = logging.getLogger(__name__)


@router.post(
    "/cron/cleanup-expired",
    response_model=CleanupResponse,
    dependencies=[Depends(deps.verify_cron_secret)],
)
def cleanup_expired(
    db: Session = Depends(deps.get_db),
    counter: ParticipationCounter = Depends(deps.get_participation_counter),
    clock: Clock = Depends(deps.get_clock),
):
    """
    Run the cleanup sweeps on demand (external cron trigger).

    Requires `Authorization: Bearer <CRON_SECRET>`.
    """
    cleaned = run_expiry_sweep(db, clock=clock, counter=counter)
    purged = purge_started_waitlists(db, clock=clock)
    logger.info(f"Manual cleanup: {cleaned} expired, {purged} purged")
    return CleanupResponse(
        success=True,
        message=f"Cleaned up {cleaned} expired participant(s)",
        cleaned=cleaned,
        purged=purged,
        timestamp=clock(),
    )
