# hunt_lifecycle/utils/clock.py
"""
Time source for participation logic.

Every expiry and timing decision is taken relative to a clock callable so
tests can pin "now".
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def frozen_clock(at: datetime) -> Clock:
    """Clock that always returns ``at``."""
    return lambda: at
