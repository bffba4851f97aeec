# hunt_lifecycle/models/hunt.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, Text
from sqlalchemy.orm import relationship

from hunt_lifecycle.constants.hunt import HuntPaymentMode, HuntVisibility
from hunt_lifecycle.db.base_class import Base
from hunt_lifecycle.db.types import UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Hunt(Base):
    """
    An aurora hunt: a capacity-constrained event users can join.

    Mutated only through the settings guard; deleted only when no participant
    has a completed payment.
    """
    __tablename__ = "hunts"

    id = Column(String, primary_key=True, default=lambda: f"hnt_{uuid.uuid4().hex[:12]}")
    owner_id = Column(String, nullable=False, index=True)  # No FK - users live in the auth service

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    start_date = Column(UTCDateTime, nullable=False, index=True)
    end_date = Column(UTCDateTime, nullable=False)

    # Admission model
    visibility = Column(String(20), nullable=False, default=HuntVisibility.PUBLIC.value)  # public, private
    payment_mode = Column(String(20), nullable=False, default=HuntPaymentMode.FREE.value)  # paid, free
    price = Column(Integer, nullable=True)  # In cents, paid hunts only

    # Capacity
    capacity = Column(Integer, nullable=True)  # NULL = unlimited
    allow_waitlist = Column(Boolean, nullable=False, default=False)
    minimum_pax = Column(Integer, nullable=True)

    # Cached summary, recomputed after every participant transition
    has_participants_in_transition = Column(Boolean, nullable=False, default=False)

    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    participants = relationship(
        "HuntParticipant",
        back_populates="hunt",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_hunt_dates_ordered"),
        CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_hunt_capacity_non_negative"),
    )

    @property
    def is_public(self) -> bool:
        return self.visibility == HuntVisibility.PUBLIC.value

    @property
    def is_paid(self) -> bool:
        return self.payment_mode == HuntPaymentMode.PAID.value
