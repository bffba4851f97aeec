# hunt_lifecycle/services/hunt_participation/participation_service.py
"""
Participation state machine.

Every transition is a read-decide-write sequence run inside one transaction
that starts by locking the hunt row, so writers on the same hunt (the
joining user, the owner and the cleanup jobs) are serialised while different
hunts proceed in parallel.

Participant lifecycle:
- join: confirmed (public free hunt with space), pending (private or paid
  hunt with space), waitlisted (full, waitlist enabled), or refused
- approve / confirm payment: pending or waitlisted -> confirmed
- reject, leave, expiry, pre-start purge: -> cancelled
- a vacated confirmed slot advances the head of the waitlist
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from hunt_lifecycle import crud
from hunt_lifecycle.constants.hunt import (
    MAX_REJECTION_COUNT,
    ParticipantStatus,
    PaymentStatus,
)
from hunt_lifecycle.db.session import transaction
from hunt_lifecycle.models.hunt import Hunt
from hunt_lifecycle.models.hunt_participant import HuntParticipant
from hunt_lifecycle.utils.clock import Clock, utcnow
from hunt_lifecycle.utils.hunt_expiration import (
    calculate_expiration_date,
    can_join_based_on_timing,
)

from .collaborators import NullParticipationCounter, ParticipationCounter
from .results import (
    CapacityCheck,
    GuardFailure,
    GuardResult,
    ParticipationError,
    ParticipationResult,
)

logger = logging.getLogger(__name__)

# Attempts for a join that loses a storage-level race
JOIN_ATTEMPTS = 2


class ParticipationService:
    """
    Guarded transitions of hunt participants.

    Args:
        db: Session the service works in. Each public operation commits or
            rolls back its own unit of work.
        counter: Cached joined-hunts counter, told about confirmations and
            departures once they are committed.
        clock: Source of "now" for every timing decision.
    """

    def __init__(
        self,
        db: Session,
        *,
        counter: Optional[ParticipationCounter] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.counter = counter or NullParticipationCounter()
        self.clock = clock
        self._after_commit: List[Callable[[], None]] = []

    # ==================== Unit of work ====================

    def atomic(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run ``operation`` in one transaction, then fire the collaborator
        calls it queued. Queued calls are dropped if the transaction fails.
        """
        self._after_commit = []
        try:
            with transaction(self.db):
                outcome = operation(*args, **kwargs)
        except Exception:
            self._after_commit = []
            raise

        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                # The transition is already committed; the counter is a cache
                logger.error(f"Participation counter update failed: {e}", exc_info=True)
        return outcome

    def _run(self, operation: Callable[..., ParticipationResult], *args) -> ParticipationResult:
        try:
            return self.atomic(operation, *args)
        except GuardFailure as failure:
            logger.info(
                f"{operation.__name__.lstrip('_')} refused: "
                f"{failure.error.value} ({failure.message})"
            )
            return ParticipationResult.failed(failure)

    def _save(self, *objs) -> None:
        for obj in objs:
            self.db.add(obj)
        self.db.flush()

    def notify_confirmed(self, user_id: str) -> None:
        self._after_commit.append(lambda: self.counter.increment(user_id))

    def _notify_left(self, user_id: str) -> None:
        self._after_commit.append(lambda: self.counter.decrement(user_id))

    # ==================== Lookups ====================

    def lock_hunt(self, hunt_id: str) -> Hunt:
        """Load and lock a hunt for the rest of the transaction."""
        hunt = crud.hunt.get_for_update(self.db, hunt_id)
        if hunt is None:
            raise GuardFailure(ParticipationError.HUNT_NOT_FOUND, "Hunt not found")
        return hunt

    def require_owner(self, hunt: Hunt, actor_id: str) -> None:
        if hunt.owner_id != actor_id:
            logger.warning(f"User {actor_id} attempted an owner-only action on hunt {hunt.id}")
            raise GuardFailure(
                ParticipationError.NOT_HUNT_OWNER,
                "Only the hunt owner can do this",
            )

    def _lock_participant(self, hunt_id: str, user_id: str) -> HuntParticipant:
        participant = crud.hunt_participant.get_by_hunt_and_user(
            self.db, hunt_id=hunt_id, user_id=user_id, for_update=True
        )
        if participant is None or participant.status == ParticipantStatus.CANCELLED.value:
            raise GuardFailure(
                ParticipationError.NOT_A_PARTICIPANT,
                "Not a participant of this hunt",
            )
        return participant

    def refresh_transition_flag(self, hunt: Hunt) -> None:
        """Recompute the hunt's cached "has pending or waitlisted" flag."""
        self.db.flush()
        hunt.has_participants_in_transition = crud.hunt_participant.has_in_transition(
            self.db, hunt_id=hunt.id
        )
        self._save(hunt)

    # ==================== Join ====================

    def join(self, hunt_id: str, user_id: str, *, email_verified: bool = True) -> ParticipationResult:
        """
        Join a hunt.

        The confirmed count is re-read under the hunt lock, so of two users
        racing for the last slot exactly one is confirmed. A join that still
        loses at the storage level (duplicate insert, lock timeout) is rolled
        back and decided again against the then-current state; losing twice
        is reported as a full hunt.

        Joining a hunt that is under way is allowed, but a pending or
        waitlisted row created then expires at the hunt start and is
        cancelled by the next expiry sweep.

        Args:
            hunt_id: Hunt to join
            user_id: Joining user
            email_verified: Eligibility of the user, required for paid hunts

        Returns:
            ParticipationResult with the participant row on success
        """
        for attempt in range(1, JOIN_ATTEMPTS + 1):
            try:
                return self._run(self._join, hunt_id, user_id, email_verified)
            except (IntegrityError, OperationalError) as e:
                logger.warning(
                    f"Join conflict for user {user_id} on hunt {hunt_id} "
                    f"(attempt {attempt}/{JOIN_ATTEMPTS}): {e}"
                )

        return ParticipationResult(
            ok=False,
            error=ParticipationError.HUNT_FULL,
            message="This hunt is full",
        )

    def _join(self, hunt_id: str, user_id: str, email_verified: bool) -> ParticipationResult:
        now = self.clock()
        hunt = self.lock_hunt(hunt_id)

        existing = crud.hunt_participant.get_by_hunt_and_user(
            self.db, hunt_id=hunt.id, user_id=user_id, for_update=True
        )
        if existing is not None:
            if existing.rejection_count >= MAX_REJECTION_COUNT:
                raise GuardFailure(
                    ParticipationError.REJECTION_LIMIT_REACHED,
                    "You have been rejected from this hunt too many times and can no longer join",
                )
            if existing.status != ParticipantStatus.CANCELLED.value:
                raise GuardFailure(
                    ParticipationError.ALREADY_PARTICIPATING,
                    "You are already part of this hunt",
                )

        timing = can_join_based_on_timing(hunt.start_date, hunt.end_date, now)
        if not timing.allowed:
            if timing.reason == "ended":
                raise GuardFailure(
                    ParticipationError.HUNT_ENDED,
                    "This hunt has already ended. You cannot join.",
                )
            raise GuardFailure(
                ParticipationError.TOO_CLOSE_TO_END,
                "This hunt is ending in less than a minute. You cannot join.",
            )

        if hunt.is_paid and not email_verified:
            raise GuardFailure(
                ParticipationError.EMAIL_NOT_VERIFIED,
                "Please verify your email before joining a paid hunt",
            )

        # Rejoining reuses the cancelled row and goes to the back of any queue
        participant = existing or HuntParticipant(hunt_id=hunt.id, user_id=user_id)
        participant.joined_at = now
        participant.payment_status = (
            PaymentStatus.PENDING.value if hunt.is_paid else PaymentStatus.NOT_REQUIRED.value
        )
        participant.paid_at = None
        participant.is_payment_processing = False
        participant.waitlist_position = None
        participant.request_expires_at = None

        confirmed_count = crud.hunt_participant.confirmed_count(self.db, hunt_id=hunt.id)
        has_space = hunt.capacity is None or confirmed_count < hunt.capacity

        if has_space and hunt.is_public and not hunt.is_paid:
            participant.status = ParticipantStatus.CONFIRMED.value
            message = "You have joined the hunt"
        elif has_space:
            participant.status = ParticipantStatus.PENDING.value
            participant.request_expires_at = calculate_expiration_date(hunt.start_date, now)
            if hunt.is_paid:
                message = "Spot reserved. Complete your payment before the request expires."
            else:
                message = "Join request sent to the hunt owner"
        elif hunt.allow_waitlist:
            position = crud.hunt_participant.next_waitlist_position(self.db, hunt_id=hunt.id)
            participant.status = ParticipantStatus.WAITLISTED.value
            participant.waitlist_position = position
            participant.request_expires_at = calculate_expiration_date(hunt.start_date, now)
            message = f"This hunt is full. You are number {position} on the waitlist."
        else:
            raise GuardFailure(ParticipationError.HUNT_FULL, "This hunt is full")

        self._save(participant)
        if participant.status == ParticipantStatus.CONFIRMED.value:
            self.notify_confirmed(user_id)
        self.refresh_transition_flag(hunt)

        logger.info(f"User {user_id} joined hunt {hunt.id} as {participant.status}")
        return ParticipationResult(ok=True, message=message, participant=participant)

    # ==================== Leave ====================

    def leave(self, hunt_id: str, user_id: str) -> ParticipationResult:
        """Leave a hunt from any active state. A freed confirmed slot is offered to the waitlist."""
        return self._run(self._leave, hunt_id, user_id)

    def _leave(self, hunt_id: str, user_id: str) -> ParticipationResult:
        now = self.clock()
        hunt = self.lock_hunt(hunt_id)
        if hunt.owner_id == user_id:
            raise GuardFailure(
                ParticipationError.OWNER_CANNOT_LEAVE,
                "The hunt owner cannot leave their own hunt",
            )

        participant = self._lock_participant(hunt.id, user_id)
        was_confirmed = participant.is_confirmed
        previous_status = participant.status

        participant.status = ParticipantStatus.CANCELLED.value
        participant.waitlist_position = None
        participant.request_expires_at = None
        if participant.payment_status == PaymentStatus.COMPLETED.value:
            # A completed payment belongs to a confirmed seat; paid_at stays as history
            participant.payment_status = PaymentStatus.NOT_REQUIRED.value
        self._save(participant)

        promoted = None
        if was_confirmed:
            self._notify_left(user_id)
            promoted = self._promote_next_waitlisted(hunt, now)
        self.refresh_transition_flag(hunt)

        logger.info(f"User {user_id} left hunt {hunt.id} (was {previous_status})")
        return ParticipationResult(
            ok=True,
            message="You have left the hunt",
            participant=participant,
            promoted=promoted,
        )

    # ==================== Owner decisions ====================

    def check_capacity_for_acceptance(self, hunt_id: str) -> Optional[CapacityCheck]:
        """
        Would confirming one more participant exceed the hunt's capacity?

        Used to show the owner the capacity-raise prompt before approving.
        Returns None if the hunt does not exist.
        """
        def check() -> Optional[CapacityCheck]:
            hunt = crud.hunt.get(self.db, hunt_id)
            if hunt is None:
                return None
            return self._capacity_check(hunt)

        return self.atomic(check)

    def _capacity_check(self, hunt: Hunt) -> CapacityCheck:
        confirmed_count = crud.hunt_participant.confirmed_count(self.db, hunt_id=hunt.id)
        if hunt.capacity is None or confirmed_count < hunt.capacity:
            return CapacityCheck(
                would_exceed=False,
                confirmed_count=confirmed_count,
                current_capacity=hunt.capacity,
            )

        new_capacity = confirmed_count + 1
        return CapacityCheck(
            would_exceed=True,
            confirmed_count=confirmed_count,
            current_capacity=hunt.capacity,
            new_capacity=new_capacity,
            warning_message=(
                f"This hunt is at capacity ({confirmed_count}/{hunt.capacity}). "
                f"Accepting will increase the capacity to {new_capacity}."
            ),
        )

    def _confirm(self, hunt: Hunt, participant: HuntParticipant, allow_over_capacity: bool) -> bool:
        """
        Confirm a participant, raising capacity in the same transaction when
        the hunt is full. Returns True if capacity was raised.
        """
        check = self._capacity_check(hunt)
        if check.would_exceed:
            if not allow_over_capacity:
                raise GuardFailure(
                    ParticipationError.CAPACITY_CONFIRMATION_REQUIRED,
                    check.warning_message,
                )
            logger.info(
                f"Raising capacity of hunt {hunt.id} from {hunt.capacity} to "
                f"{check.new_capacity} to confirm user {participant.user_id}"
            )
            hunt.capacity = check.new_capacity

        participant.status = ParticipantStatus.CONFIRMED.value
        participant.waitlist_position = None
        participant.request_expires_at = None
        self._save(hunt, participant)
        self.notify_confirmed(participant.user_id)
        return check.would_exceed

    def approve(
        self,
        hunt_id: str,
        owner_id: str,
        user_id: str,
        *,
        allow_over_capacity: bool = False,
    ) -> ParticipationResult:
        """
        Owner accepts a pending or waitlisted participant.

        On a full hunt this needs ``allow_over_capacity``, after which the
        confirmation and the capacity raise are committed together.
        """
        return self._run(self._approve, hunt_id, owner_id, user_id, allow_over_capacity)

    def _approve(
        self,
        hunt_id: str,
        owner_id: str,
        user_id: str,
        allow_over_capacity: bool,
    ) -> ParticipationResult:
        now = self.clock()
        hunt = self.lock_hunt(hunt_id)
        self.require_owner(hunt, owner_id)

        participant = self._lock_participant(hunt.id, user_id)
        if not participant.is_in_transition:
            raise GuardFailure(
                ParticipationError.INVALID_TRANSITION,
                "Only pending or waitlisted participants can be approved",
            )

        capacity_adjusted = self._confirm(hunt, participant, allow_over_capacity)

        # Approving a marked payment also settles it
        if hunt.is_paid and participant.payment_status == PaymentStatus.MARKED_PAID.value:
            participant.payment_status = PaymentStatus.COMPLETED.value
            participant.paid_at = now
            self._save(participant)
        self.refresh_transition_flag(hunt)

        logger.info(f"Owner {owner_id} approved user {user_id} on hunt {hunt.id}")
        return ParticipationResult(
            ok=True,
            message="Participant approved",
            participant=participant,
            capacity_adjusted=capacity_adjusted,
            new_capacity=hunt.capacity,
        )

    def reject(self, hunt_id: str, owner_id: str, user_id: str) -> ParticipationResult:
        """
        Owner turns down a pending or waitlisted participant.

        Rejections accumulate per (hunt, user) and are never reset; at
        MAX_REJECTION_COUNT the user is blocked from rejoining.
        """
        return self._run(self._reject, hunt_id, owner_id, user_id)

    def _reject(self, hunt_id: str, owner_id: str, user_id: str) -> ParticipationResult:
        now = self.clock()
        hunt = self.lock_hunt(hunt_id)
        self.require_owner(hunt, owner_id)

        participant = self._lock_participant(hunt.id, user_id)
        if not participant.is_in_transition:
            raise GuardFailure(
                ParticipationError.INVALID_TRANSITION,
                "Only pending or waitlisted participants can be rejected",
            )

        participant.status = ParticipantStatus.CANCELLED.value
        participant.waitlist_position = None
        participant.request_expires_at = None
        participant.rejection_count = (participant.rejection_count or 0) + 1
        participant.last_rejected_at = now
        self._save(participant)

        promoted = self._promote_next_waitlisted(hunt, now)
        self.refresh_transition_flag(hunt)

        is_blocked = participant.rejection_count >= MAX_REJECTION_COUNT
        logger.info(
            f"Owner {owner_id} rejected user {user_id} on hunt {hunt.id} "
            f"(rejection {participant.rejection_count}/{MAX_REJECTION_COUNT})"
        )
        message = "Participant rejected"
        if is_blocked:
            message = "Participant rejected and blocked from rejoining this hunt"
        return ParticipationResult(
            ok=True,
            message=message,
            participant=participant,
            promoted=promoted,
            is_blocked=is_blocked,
        )

    # ==================== Payment ====================

    def _payment_guard(self, participant: HuntParticipant) -> GuardResult:
        if participant.is_payment_processing:
            return GuardResult.deny(
                ParticipationError.ALREADY_PROCESSING,
                "Payment is already being processed. Please wait or refresh the page.",
            )
        if participant.paid_at is not None:
            return GuardResult.deny(
                ParticipationError.ALREADY_PAID,
                "You have already paid for this hunt",
            )
        return GuardResult.allow()

    def can_process_payment(self, hunt_id: str, user_id: str) -> GuardResult:
        """Double-payment guard: refuses while a payment is in flight or after one completed."""
        def check() -> GuardResult:
            participant = crud.hunt_participant.get_by_hunt_and_user(
                self.db, hunt_id=hunt_id, user_id=user_id
            )
            if participant is None or participant.status == ParticipantStatus.CANCELLED.value:
                return GuardResult.deny(
                    ParticipationError.NOT_A_PARTICIPANT,
                    "Not a participant of this hunt",
                )
            return self._payment_guard(participant)

        return self.atomic(check)

    def _acquire_payment_processing(
        self, hunt_id: str, user_id: str
    ) -> Tuple[GuardResult, Optional[str]]:
        participant = crud.hunt_participant.get_by_hunt_and_user(
            self.db, hunt_id=hunt_id, user_id=user_id, for_update=True
        )
        if participant is None or participant.status == ParticipantStatus.CANCELLED.value:
            return GuardResult.deny(
                ParticipationError.NOT_A_PARTICIPANT,
                "Not a participant of this hunt",
            ), None

        guard = self._payment_guard(participant)
        if not guard.allowed:
            return guard, None

        acquired = crud.hunt_participant.set_payment_processing(
            self.db, participant_id=participant.id, processing=True
        )
        if not acquired:
            return GuardResult.deny(
                ParticipationError.ALREADY_PROCESSING,
                "Payment is already being processed. Please wait or refresh the page.",
            ), None
        return guard, participant.id

    @contextmanager
    def payment_processing(self, hunt_id: str, user_id: str) -> Iterator[GuardResult]:
        """
        Hold the payment-processing flag around an external payment call.

        Yields the guard result. When it is not ``allowed`` nothing was
        acquired and no payment must be started. Otherwise the flag is
        cleared on every exit path, including exceptions from the block.

        Example:
            with service.payment_processing(hunt_id, user_id) as guard:
                if not guard.allowed:
                    return guard.reason
                charge_card(...)
        """
        guard, participant_id = self.atomic(self._acquire_payment_processing, hunt_id, user_id)
        if not guard.allowed:
            yield guard
            return

        logger.info(f"Payment processing started for user {user_id} on hunt {hunt_id}")
        try:
            yield guard
        except Exception:
            # Discard whatever the failed block left in the session before releasing
            self.db.rollback()
            raise
        finally:
            self.atomic(
                crud.hunt_participant.set_payment_processing,
                self.db,
                participant_id=participant_id,
                processing=False,
            )
            logger.info(f"Payment processing released for user {user_id} on hunt {hunt_id}")

    def mark_paid(self, hunt_id: str, user_id: str) -> ParticipationResult:
        """Participant declares that they paid the owner for a pending request."""
        return self._run(self._mark_paid, hunt_id, user_id)

    def _mark_paid(self, hunt_id: str, user_id: str) -> ParticipationResult:
        hunt = self.lock_hunt(hunt_id)
        if not hunt.is_paid:
            raise GuardFailure(
                ParticipationError.NOT_A_PAID_HUNT,
                "This hunt does not require payment",
            )

        participant = self._lock_participant(hunt.id, user_id)
        self._payment_guard(participant).raise_for_failure()
        if (
            participant.status != ParticipantStatus.PENDING.value
            or participant.payment_status != PaymentStatus.PENDING.value
        ):
            raise GuardFailure(
                ParticipationError.INVALID_TRANSITION,
                "Payment can only be marked for a pending request",
            )

        participant.payment_status = PaymentStatus.MARKED_PAID.value
        self._save(participant)

        logger.info(f"User {user_id} marked payment for hunt {hunt.id}")
        return ParticipationResult(
            ok=True,
            message="Payment marked. The hunt owner will confirm it.",
            participant=participant,
        )

    def confirm_payment(
        self,
        hunt_id: str,
        owner_id: str,
        user_id: str,
        *,
        allow_over_capacity: bool = False,
    ) -> ParticipationResult:
        """Owner confirms a marked payment, which confirms the participant."""
        return self._run(self._confirm_payment, hunt_id, owner_id, user_id, allow_over_capacity)

    def _confirm_payment(
        self,
        hunt_id: str,
        owner_id: str,
        user_id: str,
        allow_over_capacity: bool,
    ) -> ParticipationResult:
        now = self.clock()
        hunt = self.lock_hunt(hunt_id)
        self.require_owner(hunt, owner_id)
        if not hunt.is_paid:
            raise GuardFailure(
                ParticipationError.NOT_A_PAID_HUNT,
                "This hunt does not require payment",
            )

        participant = self._lock_participant(hunt.id, user_id)
        if (
            participant.status != ParticipantStatus.PENDING.value
            or participant.payment_status != PaymentStatus.MARKED_PAID.value
        ):
            raise GuardFailure(
                ParticipationError.INVALID_TRANSITION,
                "Only payments marked as paid can be confirmed",
            )

        capacity_adjusted = self._confirm(hunt, participant, allow_over_capacity)
        participant.payment_status = PaymentStatus.COMPLETED.value
        participant.paid_at = now
        self._save(participant)
        self.refresh_transition_flag(hunt)

        logger.info(f"Owner {owner_id} confirmed payment of user {user_id} on hunt {hunt.id}")
        return ParticipationResult(
            ok=True,
            message="Payment confirmed",
            participant=participant,
            capacity_adjusted=capacity_adjusted,
            new_capacity=hunt.capacity,
        )

    # ==================== Expiry & purge ====================

    def expire_participant(self, participant_id: str) -> bool:
        """
        Cancel one pending or waitlisted row whose request window has passed.

        Re-checked under the hunt lock, so a row that was approved, cancelled
        or re-timed in the meantime is left alone. Returns True if the row was
        cancelled by this call.
        """
        return self.atomic(self._expire, participant_id)

    def _expire(self, participant_id: str) -> bool:
        now = self.clock()
        participant = crud.hunt_participant.get(self.db, participant_id)
        if participant is None:
            return False

        hunt = self.lock_hunt(participant.hunt_id)
        participant = crud.hunt_participant.get_for_update(self.db, participant_id)
        if (
            participant is None
            or not participant.is_in_transition
            or participant.request_expires_at is None
            or participant.request_expires_at > now
        ):
            return False

        was_pending = participant.status == ParticipantStatus.PENDING.value
        user_id = participant.user_id

        participant.status = ParticipantStatus.CANCELLED.value
        participant.waitlist_position = None
        participant.request_expires_at = None
        self._save(participant)

        if was_pending:
            self._promote_next_waitlisted(hunt, now)
        self.refresh_transition_flag(hunt)

        logger.info(f"Expired request of user {user_id} on hunt {hunt.id}")
        return True

    def purge_waitlist(self, hunt_id: str) -> int:
        """
        Cancel every waitlisted participant of a hunt that is about to start.
        No promotion and no payment window. Returns the number cancelled.
        """
        def purge() -> int:
            hunt = crud.hunt.get_for_update(self.db, hunt_id)
            if hunt is None:
                return 0
            purged = crud.hunt_participant.cancel_waitlisted(self.db, hunt_id=hunt.id)
            if purged:
                self.refresh_transition_flag(hunt)
                logger.info(f"Purged {purged} waitlisted participant(s) from hunt {hunt.id} before start")
            return purged

        return self.atomic(purge)

    # ==================== Promotion ====================

    def promote_waitlisted(self, hunt: Hunt, participant: HuntParticipant, now: datetime) -> bool:
        """
        Advance one waitlisted participant. The caller holds the hunt lock and
        has checked there is room.

        Public free hunts confirm directly; paid hunts reopen a payment
        window. Private hunts are never advanced automatically: the row stays
        waitlisted until the owner approves it. Returns True if promoted.
        """
        if not hunt.is_public:
            return False

        participant.waitlist_position = None
        if hunt.is_paid:
            participant.status = ParticipantStatus.PENDING.value
            participant.payment_status = PaymentStatus.PENDING.value
            participant.request_expires_at = calculate_expiration_date(hunt.start_date, now)
        else:
            participant.status = ParticipantStatus.CONFIRMED.value
            participant.request_expires_at = None
            self.notify_confirmed(participant.user_id)
        self._save(participant)

        logger.info(
            f"Promoted user {participant.user_id} from the waitlist of hunt {hunt.id} "
            f"to {participant.status}"
        )
        return True

    def _promote_next_waitlisted(self, hunt: Hunt, now: datetime) -> Optional[HuntParticipant]:
        if not hunt.is_public:
            logger.info(f"Hunt {hunt.id} is private; the waitlist waits for the owner")
            return None

        self.db.flush()
        confirmed_count = crud.hunt_participant.confirmed_count(self.db, hunt_id=hunt.id)
        if hunt.capacity is not None and confirmed_count >= hunt.capacity:
            return None

        head = crud.hunt_participant.get_next_waitlisted(self.db, hunt_id=hunt.id)
        if head is None:
            return None

        self.promote_waitlisted(hunt, head, now)
        return head
