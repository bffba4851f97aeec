# hunt_lifecycle/services/hunt_participation/settings_guard.py
"""
Rules for owner-initiated changes to a hunt.

The ``can_*`` methods take a hunt id and run in their own transaction. The
``check_*`` variants take an already locked hunt and are used from inside a
larger unit of work, such as a settings update.
"""
import logging
from typing import Callable, Optional

from hunt_lifecycle import crud
from hunt_lifecycle.constants.hunt import HuntPaymentMode
from hunt_lifecycle.models.hunt import Hunt
from hunt_lifecycle.schemas.hunt import HuntSettingsUpdate

from .participation_service import ParticipationService
from .results import GuardResult, ParticipationError

logger = logging.getLogger(__name__)


class SettingsGuard:

    def __init__(self, participation: ParticipationService):
        # Promotions go through the state machine so counters and flags stay in step
        self.participation = participation
        self.db = participation.db

    # ==================== Checks on a loaded hunt ====================

    def check_settings_change(self, hunt: Hunt, changes: HuntSettingsUpdate) -> GuardResult:
        if crud.hunt_participant.has_in_transition(self.db, hunt_id=hunt.id):
            return GuardResult.deny(
                ParticipationError.SETTINGS_BLOCKED,
                "Cannot change hunt settings while users are in pending or waitlisted "
                "states. All users must leave first.",
            )

        if (
            hunt.is_paid
            and changes.payment_mode == HuntPaymentMode.FREE
            and crud.hunt_participant.has_confirmed_payments(self.db, hunt_id=hunt.id)
        ):
            return GuardResult.deny(
                ParticipationError.SETTINGS_BLOCKED,
                "Cannot change from paid to unpaid when participants have already paid.",
            )

        return GuardResult.allow()

    def check_cancel(self, hunt: Hunt) -> GuardResult:
        if crud.hunt_participant.has_confirmed_payments(self.db, hunt_id=hunt.id):
            return GuardResult.deny(
                ParticipationError.SETTINGS_BLOCKED,
                "Cannot cancel hunt with confirmed payments. Please contact support.",
            )
        return GuardResult.allow()

    def check_capacity_decrease(self, hunt: Hunt, new_capacity: int) -> GuardResult:
        confirmed_count = crud.hunt_participant.confirmed_count(self.db, hunt_id=hunt.id)
        if new_capacity < confirmed_count:
            return GuardResult.deny(
                ParticipationError.CAPACITY_TOO_LOW,
                f"Cannot decrease capacity to {new_capacity} as there are already "
                f"{confirmed_count} confirmed participants (including owner).",
            )
        return GuardResult.allow()

    def promote_for_capacity(self, hunt: Hunt, new_capacity: Optional[int]) -> int:
        """
        Fill newly available slots from the waitlist in FIFO order.

        ``new_capacity`` of None means unlimited, which admits the whole
        waitlist. Private hunts keep their waitlist untouched. Returns the
        number of participants promoted.
        """
        if not hunt.is_public:
            logger.info(f"Capacity of private hunt {hunt.id} changed; waitlist left for the owner")
            return 0

        self.db.flush()
        limit = None
        if new_capacity is not None:
            confirmed_count = crud.hunt_participant.confirmed_count(self.db, hunt_id=hunt.id)
            limit = max(0, new_capacity - confirmed_count)
            if limit == 0:
                return 0

        now = self.participation.clock()
        promoted = 0
        for participant in crud.hunt_participant.get_waitlist(self.db, hunt_id=hunt.id, limit=limit):
            if self.participation.promote_waitlisted(hunt, participant, now):
                promoted += 1

        if promoted:
            self.participation.refresh_transition_flag(hunt)
            logger.info(f"Capacity change on hunt {hunt.id} promoted {promoted} waitlisted participant(s)")
        return promoted

    # ==================== Standalone checks ====================

    def _check(self, hunt_id: str, check: Callable[..., GuardResult], *args) -> GuardResult:
        def run() -> GuardResult:
            hunt = crud.hunt.get(self.db, hunt_id)
            if hunt is None:
                return GuardResult.deny(ParticipationError.HUNT_NOT_FOUND, "Hunt not found")
            return check(hunt, *args)

        return self.participation.atomic(run)

    def can_change_hunt_settings(self, hunt_id: str, changes: HuntSettingsUpdate) -> GuardResult:
        """
        Refused while anyone is pending or waitlisted, and for a paid -> free
        switch once any participant has a completed payment.
        """
        return self._check(hunt_id, self.check_settings_change, changes)

    def can_cancel_hunt(self, hunt_id: str) -> GuardResult:
        """Refused once any confirmed participant has a completed payment."""
        return self._check(hunt_id, self.check_cancel)

    def can_decrease_capacity(self, hunt_id: str, new_capacity: int) -> GuardResult:
        """Refused when the new capacity is below the confirmed count."""
        return self._check(hunt_id, self.check_capacity_decrease, new_capacity)

    def handle_capacity_increase(self, hunt_id: str, new_capacity: Optional[int]) -> int:
        """
        Set the hunt's capacity and promote waitlisted participants into the
        room it made, in one transaction.

        A capacity below the confirmed count is refused and leaves the hunt
        unchanged. Returns the number of participants promoted.
        """
        def run() -> int:
            hunt = crud.hunt.get_for_update(self.db, hunt_id)
            if hunt is None:
                return 0
            if new_capacity is not None:
                guard = self.check_capacity_decrease(hunt, new_capacity)
                if not guard.allowed:
                    logger.warning(f"Capacity change on hunt {hunt.id} refused: {guard.reason}")
                    return 0
            hunt.capacity = new_capacity
            self.db.add(hunt)
            return self.promote_for_capacity(hunt, new_capacity)

        return self.participation.atomic(run)
