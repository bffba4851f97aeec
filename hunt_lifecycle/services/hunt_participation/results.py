# hunt_lifecycle/services/hunt_participation/results.py
"""
Outcome values returned by the participation engine.

Guard failures are expected, user-facing outcomes. They travel back to the
caller as a ``ParticipationError`` inside a result object so the HTTP layer
can render a specific message per kind.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from hunt_lifecycle.models.hunt import Hunt
from hunt_lifecycle.models.hunt_participant import HuntParticipant


class ParticipationError(str, Enum):
    """Failure kinds of participation and settings operations."""
    HUNT_NOT_FOUND = "hunt_not_found"
    NOT_A_PARTICIPANT = "not_a_participant"
    HUNT_FULL = "hunt_full"
    HUNT_ENDED = "hunt_ended"
    TOO_CLOSE_TO_END = "too_close_to_end"
    ALREADY_PROCESSING = "already_processing"
    ALREADY_PAID = "already_paid"
    REJECTION_LIMIT_REACHED = "rejection_limit_reached"
    SETTINGS_BLOCKED = "settings_blocked"
    CAPACITY_TOO_LOW = "capacity_too_low"
    ALREADY_PARTICIPATING = "already_participating"
    INVALID_TRANSITION = "invalid_transition"
    NOT_HUNT_OWNER = "not_hunt_owner"
    OWNER_CANNOT_LEAVE = "owner_cannot_leave"
    NOT_A_PAID_HUNT = "not_a_paid_hunt"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    PAYMENT_ACCOUNT_REQUIRED = "payment_account_required"
    CAPACITY_CONFIRMATION_REQUIRED = "capacity_confirmation_required"


class GuardFailure(Exception):
    """
    Raised inside an open transaction to abandon it.

    Never leaves the engine: public operations catch it after the rollback and
    turn it into a result.
    """

    def __init__(self, error: ParticipationError, message: str):
        super().__init__(message)
        self.error = error
        self.message = message


@dataclass
class GuardResult:
    allowed: bool
    error: Optional[ParticipationError] = None
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "GuardResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, error: ParticipationError, reason: str) -> "GuardResult":
        return cls(allowed=False, error=error, reason=reason)

    def raise_for_failure(self) -> None:
        if not self.allowed:
            raise GuardFailure(self.error, self.reason)


@dataclass
class ParticipationResult:
    ok: bool
    message: str = ""
    error: Optional[ParticipationError] = None
    participant: Optional[HuntParticipant] = None
    # Waitlisted participant advanced as a side effect of the operation
    promoted: Optional[HuntParticipant] = None
    capacity_adjusted: bool = False
    new_capacity: Optional[int] = None
    # Set on rejection once the user can no longer rejoin
    is_blocked: bool = False

    @classmethod
    def failed(cls, failure: GuardFailure) -> "ParticipationResult":
        return cls(ok=False, error=failure.error, message=failure.message)


@dataclass
class HuntResult:
    ok: bool
    message: str = ""
    error: Optional[ParticipationError] = None
    hunt: Optional[Hunt] = None
    promoted_count: int = 0

    @classmethod
    def failed(cls, failure: GuardFailure) -> "HuntResult":
        return cls(ok=False, error=failure.error, message=failure.message)


@dataclass(frozen=True)
class CapacityCheck:
    """Whether confirming one more participant would exceed capacity."""
    would_exceed: bool
    confirmed_count: int
    current_capacity: Optional[int] = None
    new_capacity: Optional[int] = None
    warning_message: Optional[str] = None
