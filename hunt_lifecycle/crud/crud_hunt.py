# hunt_lifecycle/crud/crud_hunt.py
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import and_
from sqlalchemy.orm import Session

from hunt_lifecycle.constants.hunt import ParticipantStatus, WAITLIST_CLEANUP_BUFFER_SECONDS
from hunt_lifecycle.crud.base import CRUDBase
from hunt_lifecycle.models.hunt import Hunt
from hunt_lifecycle.models.hunt_participant import HuntParticipant
from hunt_lifecycle.schemas.hunt import HuntCreate, HuntSettingsUpdate


class CRUDHunt(CRUDBase[Hunt, HuntCreate, HuntSettingsUpdate]):

    def create_with_owner(self, db: Session, *, obj_in: HuntCreate, owner_id: str) -> Hunt:
        hunt = Hunt(
            owner_id=owner_id,
            name=obj_in.name,
            description=obj_in.description,
            start_date=obj_in.start_date,
            end_date=obj_in.end_date,
            visibility=obj_in.visibility.value,
            payment_mode=obj_in.payment_mode.value,
            price=obj_in.price,
            capacity=obj_in.capacity,
            allow_waitlist=obj_in.allow_waitlist,
            minimum_pax=obj_in.minimum_pax,
        )
        db.add(hunt)
        db.flush()
        return hunt

    def get_hunt_ids_due_for_waitlist_purge(self, db: Session, *, now: datetime) -> List[str]:
        """
        Hunts that start within the cleanup buffer (or already started) and
        still have waitlisted participants.
        """
        cutoff = now + timedelta(seconds=WAITLIST_CLEANUP_BUFFER_SECONDS)
        rows = db.query(Hunt.id).join(
            HuntParticipant, HuntParticipant.hunt_id == Hunt.id
        ).filter(
            and_(
                Hunt.start_date <= cutoff,
                HuntParticipant.status == ParticipantStatus.WAITLISTED.value,
            )
        ).distinct().all()
        return [row.id for row in rows]

    def get_upcoming_hunts(self, db: Session, *, now: datetime) -> List[Hunt]:
        """Hunts that have not started yet, soonest first"""
        return db.query(Hunt).filter(Hunt.start_date > now).order_by(Hunt.start_date.asc()).all()


hunt = CRUDHunt(Hunt)
