# hunt_lifecycle/constants/hunt.py
"""
Constants for hunt participation.

Status values are stored as plain strings on the participant row; the enums
below are the only accepted values.
"""
from enum import Enum


# Request / payment window
PAYMENT_TIMEOUT_DAYS = 7

# Waitlist is purged this many seconds before the hunt starts
WAITLIST_CLEANUP_BUFFER_SECONDS = 1

# Cannot join within this many minutes before the hunt ends
JOIN_CUTOFF_BEFORE_END_MINUTES = 1

# Rejections after which a user can no longer join the same hunt
MAX_REJECTION_COUNT = 3


class ParticipantStatus(str, Enum):
    """Participant lifecycle status."""
    PENDING = "pending"
    WAITLISTED = "waitlisted"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @classmethod
    def in_transition(cls) -> list[str]:
        """Statuses that still wait on the owner, a payment or a free slot."""
        return [cls.PENDING.value, cls.WAITLISTED.value]


class PaymentStatus(str, Enum):
    """Payment state of a participant. Only meaningful on paid hunts."""
    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    MARKED_PAID = "marked_paid"
    COMPLETED = "completed"


class HuntVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class HuntPaymentMode(str, Enum):
    PAID = "paid"
    FREE = "free"
