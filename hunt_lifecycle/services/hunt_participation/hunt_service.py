# hunt_lifecycle/services/hunt_participation/hunt_service.py
"""
Hunt-level operations: creation, settings changes, cancellation and the
owner's payment review.
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from hunt_lifecycle import crud
from hunt_lifecycle.constants.hunt import HuntPaymentMode, ParticipantStatus, PaymentStatus
from hunt_lifecycle.models.hunt import Hunt
from hunt_lifecycle.models.hunt_participant import HuntParticipant
from hunt_lifecycle.schemas.hunt import HuntCreate, HuntSettingsUpdate
from hunt_lifecycle.utils.clock import Clock, utcnow

from .collaborators import ParticipationCounter, PaymentCapability
from .participation_service import ParticipationService
from .results import GuardFailure, HuntResult, ParticipationError
from .settings_guard import SettingsGuard

logger = logging.getLogger(__name__)


class HuntService:

    def __init__(
        self,
        db: Session,
        *,
        counter: Optional[ParticipationCounter] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.participation = ParticipationService(db, counter=counter, clock=clock)
        self.guard = SettingsGuard(self.participation)

    def _run(self, operation: Callable[..., HuntResult], *args) -> HuntResult:
        try:
            return self.participation.atomic(operation, *args)
        except GuardFailure as failure:
            logger.info(
                f"{operation.__name__.lstrip('_')} refused: "
                f"{failure.error.value} ({failure.message})"
            )
            return HuntResult.failed(failure)

    @staticmethod
    def _require_payment_capability(capability: Optional[PaymentCapability]) -> None:
        if capability is None or not capability.email_verified:
            raise GuardFailure(
                ParticipationError.EMAIL_NOT_VERIFIED,
                "Please verify your email before creating paid hunts",
            )
        if not capability.has_payment_account:
            raise GuardFailure(
                ParticipationError.PAYMENT_ACCOUNT_REQUIRED,
                "Connect a payment account before creating paid hunts",
            )

    # ==================== Create ====================

    def create_hunt(
        self,
        owner_id: str,
        obj_in: HuntCreate,
        *,
        capability: Optional[PaymentCapability] = None,
    ) -> HuntResult:
        """
        Create a hunt with its owner as the first confirmed participant.

        Paid hunts need an owner with a verified email and a payment account.
        """
        return self._run(self._create_hunt, owner_id, obj_in, capability)

    def _create_hunt(
        self,
        owner_id: str,
        obj_in: HuntCreate,
        capability: Optional[PaymentCapability],
    ) -> HuntResult:
        if obj_in.payment_mode == HuntPaymentMode.PAID:
            self._require_payment_capability(capability)

        hunt = crud.hunt.create_with_owner(self.db, obj_in=obj_in, owner_id=owner_id)

        # The owner takes one of the slots
        owner = HuntParticipant(
            hunt_id=hunt.id,
            user_id=owner_id,
            status=ParticipantStatus.CONFIRMED.value,
            payment_status=PaymentStatus.NOT_REQUIRED.value,
            joined_at=self.participation.clock(),
        )
        self.db.add(owner)
        self.db.flush()
        self.participation.notify_confirmed(owner_id)

        logger.info(f"User {owner_id} created hunt {hunt.id} ({hunt.visibility}, {hunt.payment_mode})")
        return HuntResult(ok=True, message="Hunt created", hunt=hunt)

    # ==================== Settings ====================

    def update_hunt_settings(
        self,
        hunt_id: str,
        owner_id: str,
        changes: HuntSettingsUpdate,
        *,
        capability: Optional[PaymentCapability] = None,
    ) -> HuntResult:
        """
        Apply an owner's settings change.

        Visibility and payment-mode changes are refused while anyone is still
        pending or waitlisted. A capacity decrease may not go below the
        confirmed count; an increase promotes from the waitlist in the same
        transaction.
        """
        return self._run(self._update_hunt_settings, hunt_id, owner_id, changes, capability)

    def _update_hunt_settings(
        self,
        hunt_id: str,
        owner_id: str,
        changes: HuntSettingsUpdate,
        capability: Optional[PaymentCapability],
    ) -> HuntResult:
        hunt = self.participation.lock_hunt(hunt_id)
        self.participation.require_owner(hunt, owner_id)

        if changes.changes_admission_model:
            self.guard.check_settings_change(hunt, changes).raise_for_failure()
            if changes.payment_mode == HuntPaymentMode.PAID and not hunt.is_paid:
                self._require_payment_capability(capability)

        if changes.changes_capacity and changes.capacity is not None:
            self.guard.check_capacity_decrease(hunt, changes.capacity).raise_for_failure()

        update_data = changes.model_dump(exclude_unset=True)
        for field in ("visibility", "payment_mode"):
            if update_data.get(field) is not None:
                update_data[field] = update_data[field].value
        crud.hunt.update(self.db, db_obj=hunt, obj_in=update_data)

        if hunt.is_paid and not hunt.price:
            raise GuardFailure(ParticipationError.INVALID_TRANSITION, "Paid hunts need a price")

        promoted_count = 0
        if changes.changes_capacity:
            promoted_count = self.guard.promote_for_capacity(hunt, changes.capacity)
        self.participation.refresh_transition_flag(hunt)

        logger.info(f"Owner {owner_id} updated hunt {hunt.id}: {sorted(update_data)}")
        return HuntResult(ok=True, message="Hunt updated", hunt=hunt, promoted_count=promoted_count)

    # ==================== Cancel ====================

    def cancel_hunt(self, hunt_id: str, owner_id: str) -> HuntResult:
        """Delete a hunt and its participant rows, unless someone has paid."""
        return self._run(self._cancel_hunt, hunt_id, owner_id)

    def _cancel_hunt(self, hunt_id: str, owner_id: str) -> HuntResult:
        hunt = self.participation.lock_hunt(hunt_id)
        self.participation.require_owner(hunt, owner_id)
        self.guard.check_cancel(hunt).raise_for_failure()

        crud.hunt.remove(self.db, db_obj=hunt)
        logger.info(f"Owner {owner_id} cancelled hunt {hunt_id}")
        return HuntResult(ok=True, message="Hunt cancelled")

    # ==================== Reads ====================

    def get_pending_payments(self, owner_id: str) -> List[Tuple[Hunt, List[HuntParticipant]]]:
        """
        Marked payments waiting for the owner's confirmation, grouped by hunt
        (soonest hunt first, oldest request first).
        """
        def load() -> List[Tuple[Hunt, List[HuntParticipant]]]:
            grouped: Dict[str, Tuple[Hunt, List[HuntParticipant]]] = {}
            for participant in crud.hunt_participant.get_pending_payments_for_owner(
                self.db, owner_id=owner_id
            ):
                entry = grouped.setdefault(participant.hunt_id, (participant.hunt, []))
                entry[1].append(participant)
            return list(grouped.values())

        return self.participation.atomic(load)

    def meets_minimum_pax(self, hunt_id: str) -> bool:
        """
        Did the hunt reach its minimum number of participants?

        Only confirmed participants count; pending and waitlisted users do not.
        """
        def check() -> bool:
            hunt = crud.hunt.get(self.db, hunt_id)
            if hunt is None:
                return False
            if hunt.minimum_pax is None:
                return True
            confirmed_count = crud.hunt_participant.confirmed_count(self.db, hunt_id=hunt.id)
            return confirmed_count >= hunt.minimum_pax

        return self.participation.atomic(check)
