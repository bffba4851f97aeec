# hunt_lifecycle/models/hunt_participant.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from hunt_lifecycle.constants.hunt import ParticipantStatus, PaymentStatus
from hunt_lifecycle.db.base_class import Base
from hunt_lifecycle.db.types import UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HuntParticipant(Base):
    """
    A user's join record against one hunt.

    One row per (hunt, user). Rows are never deleted on their own: leaving,
    rejection and expiry all end in CANCELLED, and rejoining reuses the row.
    """
    __tablename__ = "hunt_participants"

    id = Column(String, primary_key=True, default=lambda: f"hpt_{uuid.uuid4().hex[:12]}")
    hunt_id = Column(String, ForeignKey("hunts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)  # No FK - users live in the auth service

    # Status
    status = Column(String(20), nullable=False)  # pending, waitlisted, confirmed, cancelled
    payment_status = Column(
        String(20), nullable=False, default=PaymentStatus.NOT_REQUIRED.value
    )  # not_required, pending, marked_paid, completed

    # Queue Management
    waitlist_position = Column(Integer, nullable=True)
    joined_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    # Request window
    request_expires_at = Column(UTCDateTime, nullable=True, index=True)

    # Payment
    is_payment_processing = Column(Boolean, nullable=False, default=False)
    paid_at = Column(UTCDateTime, nullable=True)

    # Rejections
    rejection_count = Column(Integer, nullable=False, default=0)
    last_rejected_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    hunt = relationship("Hunt", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("hunt_id", "user_id", name="unique_hunt_user"),
        CheckConstraint(
            "(status = 'waitlisted' AND waitlist_position IS NOT NULL) "
            "OR (status != 'waitlisted' AND waitlist_position IS NULL)",
            name="ck_participant_waitlist_position",
        ),
        CheckConstraint(
            "payment_status != 'completed' "
            "OR (paid_at IS NOT NULL AND status = 'confirmed')",
            name="ck_participant_completed_payment",
        ),
        CheckConstraint("rejection_count >= 0", name="ck_participant_rejection_count"),
    )

    @property
    def is_in_transition(self) -> bool:
        return self.status in ParticipantStatus.in_transition()

    @property
    def is_confirmed(self) -> bool:
        return self.status == ParticipantStatus.CONFIRMED.value
