# hunt_lifecycle/utils/hunt_expiration.py
"""
Expiration policy and timing guard for hunt participation.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from hunt_lifecycle.constants.hunt import (
    JOIN_CUTOFF_BEFORE_END_MINUTES,
    PAYMENT_TIMEOUT_DAYS,
    WAITLIST_CLEANUP_BUFFER_SECONDS,
)
from hunt_lifecycle.utils.clock import utcnow


def calculate_expiration_date(
    hunt_start: datetime,
    from_date: Optional[datetime] = None,
) -> datetime:
    """
    Deadline for a pending request or waitlist entry.

    7 days from ``from_date`` or 1 second before the hunt starts, whichever
    comes first. For a hunt that has already started this is in the past,
    so the next expiry sweep cancels the request.

    Args:
        hunt_start: Hunt start timestamp
        from_date: Reference time (default: now)

    Returns:
        Expiration timestamp
    """
    if from_date is None:
        from_date = utcnow()

    seven_days_later = from_date + timedelta(days=PAYMENT_TIMEOUT_DAYS)
    start_with_buffer = waitlist_purge_time(hunt_start)

    return min(seven_days_later, start_with_buffer)


def waitlist_purge_time(hunt_start: datetime) -> datetime:
    """Moment the waitlist of a hunt is cleared (1 second before start)."""
    return hunt_start - timedelta(seconds=WAITLIST_CLEANUP_BUFFER_SECONDS)


@dataclass(frozen=True)
class TimingCheck:
    allowed: bool
    # "ended" or "too_close_to_end" when not allowed
    reason: Optional[str] = None


def can_join_based_on_timing(
    hunt_start: datetime,
    hunt_end: datetime,
    now: Optional[datetime] = None,
) -> TimingCheck:
    """
    Joining is allowed before the hunt and while it is running, but not once
    it has ended or within the last minute before it ends.
    """
    if now is None:
        now = utcnow()

    if now >= hunt_end:
        return TimingCheck(allowed=False, reason="ended")

    one_minute_before_end = hunt_end - timedelta(minutes=JOIN_CUTOFF_BEFORE_END_MINUTES)
    if now >= one_minute_before_end:
        return TimingCheck(allowed=False, reason="too_close_to_end")

    return TimingCheck(allowed=True)
