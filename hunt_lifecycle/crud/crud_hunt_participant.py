# hunt_lifecycle/crud/crud_hunt_participant.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import and_, func, update
from sqlalchemy.orm import Session

from hunt_lifecycle.constants.hunt import HuntPaymentMode, ParticipantStatus, PaymentStatus
from hunt_lifecycle.crud.base import CRUDBase
from hunt_lifecycle.models.hunt import Hunt
from hunt_lifecycle.models.hunt_participant import HuntParticipant


class CRUDHuntParticipant(CRUDBase[HuntParticipant, BaseModel, BaseModel]):
    """
    Participant queries: the capacity ledger (aggregate reads) and the
    FIFO waitlist queue.

    Ledger reads are meant to run inside the same transaction as the write
    that depends on them, after the hunt row has been locked.
    """

    # ==================== Lookups ====================

    def get_by_hunt_and_user(
        self,
        db: Session,
        *,
        hunt_id: str,
        user_id: str,
        for_update: bool = False,
    ) -> Optional[HuntParticipant]:
        """Get the participant row for a specific hunt and user"""
        query = db.query(self.model).filter(
            and_(
                self.model.hunt_id == hunt_id,
                self.model.user_id == user_id,
            )
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    # ==================== Capacity Ledger ====================

    def confirmed_count(self, db: Session, *, hunt_id: str) -> int:
        """Number of confirmed participants (the owner included)"""
        return db.query(func.count(self.model.id)).filter(
            and_(
                self.model.hunt_id == hunt_id,
                self.model.status == ParticipantStatus.CONFIRMED.value,
            )
        ).scalar() or 0

    def has_in_transition(self, db: Session, *, hunt_id: str) -> bool:
        """True if any participant is pending or waitlisted"""
        return db.query(self.model.id).filter(
            and_(
                self.model.hunt_id == hunt_id,
                self.model.status.in_(ParticipantStatus.in_transition()),
            )
        ).first() is not None

    def has_confirmed_payments(self, db: Session, *, hunt_id: str) -> bool:
        """
        True if any confirmed participant has a completed payment.
        Pending and marked-paid payments are not counted.
        """
        return db.query(self.model.id).filter(
            and_(
                self.model.hunt_id == hunt_id,
                self.model.status == ParticipantStatus.CONFIRMED.value,
                self.model.payment_status == PaymentStatus.COMPLETED.value,
                self.model.paid_at.isnot(None),
            )
        ).first() is not None

    def next_waitlist_position(self, db: Session, *, hunt_id: str) -> int:
        """Tail position for a new waitlist entry: 1 + current max, or 1"""
        max_position = db.query(func.max(self.model.waitlist_position)).filter(
            and_(
                self.model.hunt_id == hunt_id,
                self.model.status == ParticipantStatus.WAITLISTED.value,
            )
        ).scalar()
        return (max_position or 0) + 1

    # ==================== Waitlist Queue ====================

    def _waitlist_query(self, db: Session, hunt_id: str):
        return db.query(self.model).filter(
            and_(
                self.model.hunt_id == hunt_id,
                self.model.status == ParticipantStatus.WAITLISTED.value,
            )
        ).order_by(
            self.model.waitlist_position.asc(),  # First come first served
            self.model.joined_at.asc(),  # Tie-break on join time
        )

    def get_next_waitlisted(self, db: Session, *, hunt_id: str) -> Optional[HuntParticipant]:
        """Head of the FIFO waitlist"""
        return self._waitlist_query(db, hunt_id).first()

    def get_waitlist(
        self,
        db: Session,
        *,
        hunt_id: str,
        limit: Optional[int] = None,
    ) -> List[HuntParticipant]:
        """Waitlisted participants in FIFO order"""
        query = self._waitlist_query(db, hunt_id)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    # ==================== Sweeps ====================

    def get_expired_request_ids(self, db: Session, *, now: datetime) -> List[str]:
        """Ids of pending/waitlisted rows whose request window has passed"""
        rows = db.query(self.model.id).filter(
            and_(
                self.model.status.in_(ParticipantStatus.in_transition()),
                self.model.request_expires_at.isnot(None),
                self.model.request_expires_at <= now,
            )
        ).order_by(self.model.request_expires_at.asc()).all()
        return [row.id for row in rows]

    def cancel_waitlisted(self, db: Session, *, hunt_id: str) -> int:
        """Cancel every waitlisted row of a hunt. Returns the row count."""
        result = db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.hunt_id == hunt_id,
                    self.model.status == ParticipantStatus.WAITLISTED.value,
                )
            )
            .values(
                status=ParticipantStatus.CANCELLED.value,
                waitlist_position=None,
                request_expires_at=None,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    # ==================== Payment ====================

    def set_payment_processing(
        self,
        db: Session,
        *,
        participant_id: str,
        processing: bool,
    ) -> bool:
        """
        Flip the payment-processing flag.

        Acquiring is a conditional update (only from False) so two callers
        cannot both take it. Returns True if a row changed.
        """
        stmt = update(self.model).where(self.model.id == participant_id)
        if processing:
            stmt = stmt.where(self.model.is_payment_processing.is_(False))
        result = db.execute(
            stmt.values(is_payment_processing=processing)
            .execution_options(synchronize_session="fetch")
        )
        return (result.rowcount or 0) > 0

    def get_pending_payments_for_owner(
        self,
        db: Session,
        *,
        owner_id: str,
    ) -> List[HuntParticipant]:
        """Marked-paid participants awaiting confirmation on an owner's paid hunts"""
        return db.query(self.model).join(Hunt, Hunt.id == self.model.hunt_id).filter(
            and_(
                Hunt.owner_id == owner_id,
                Hunt.payment_mode == HuntPaymentMode.PAID.value,
                self.model.status == ParticipantStatus.PENDING.value,
                self.model.payment_status == PaymentStatus.MARKED_PAID.value,
            )
        ).order_by(Hunt.start_date.asc(), self.model.joined_at.asc()).all()


hunt_participant = CRUDHuntParticipant(HuntParticipant)
