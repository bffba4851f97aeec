"""
Tests for joining a hunt: admission outcome per hunt type, timing guard,
rejection limit and rejoin behaviour.
"""
from datetime import timedelta

import pytest

from hunt_lifecycle.background_tasks.hunt_cleanup_tasks import run_expiry_sweep
from hunt_lifecycle.constants.hunt import (
    HuntPaymentMode,
    HuntVisibility,
    ParticipantStatus,
    PaymentStatus,
)
from hunt_lifecycle.services.hunt_participation import ParticipationError, ParticipationService
from hunt_lifecycle.utils.clock import frozen_clock
from tests.utils.hunts import (
    NOW,
    add_participant,
    add_waitlisted,
    create_hunt,
    get_hunt,
    get_participant,
)


@pytest.fixture
def service(db, counter, clock):
    return ParticipationService(db, counter=counter, clock=clock)


class TestJoinOutcome:

    def test_public_free_hunt_confirms_directly(self, db, service, counter):
        hunt = create_hunt(db, capacity=5)

        result = service.join(hunt.id, "user_1")

        assert result.ok
        assert result.participant.status == ParticipantStatus.CONFIRMED.value
        assert result.participant.request_expires_at is None
        assert result.participant.payment_status == PaymentStatus.NOT_REQUIRED.value
        counter.increment.assert_called_once_with("user_1")

    def test_unlimited_capacity_confirms(self, db, service):
        hunt = create_hunt(db, capacity=None)
        for i in range(10):
            assert service.join(hunt.id, f"user_{i}").participant.status == "confirmed"

    def test_private_hunt_needs_approval(self, db, service, counter):
        hunt = create_hunt(db, visibility=HuntVisibility.PRIVATE, capacity=5)

        result = service.join(hunt.id, "user_1")

        assert result.participant.status == ParticipantStatus.PENDING.value
        assert result.participant.request_expires_at == hunt.start_date - timedelta(seconds=1)
        assert get_hunt(db, hunt.id).has_participants_in_transition
        counter.increment.assert_not_called()

    def test_paid_hunt_opens_payment_window(self, db, service):
        hunt = create_hunt(db, payment_mode=HuntPaymentMode.PAID, capacity=5)

        result = service.join(hunt.id, "user_1")

        assert result.participant.status == ParticipantStatus.PENDING.value
        assert result.participant.payment_status == PaymentStatus.PENDING.value
        assert result.participant.request_expires_at is not None

    def test_payment_window_is_seven_days_for_distant_hunts(self, db, service):
        hunt = create_hunt(db, payment_mode=HuntPaymentMode.PAID, start_date=NOW + timedelta(days=30))

        result = service.join(hunt.id, "user_1")

        assert result.participant.request_expires_at == NOW + timedelta(days=7)

    def test_full_hunt_with_waitlist(self, db, service):
        hunt = create_hunt(db, capacity=2, allow_waitlist=True)
        add_participant(db, hunt, "user_1")
        add_waitlisted(db, hunt, "user_2", 1)

        result = service.join(hunt.id, "user_3")

        assert result.ok
        assert result.participant.status == ParticipantStatus.WAITLISTED.value
        assert result.participant.waitlist_position == 2
        assert "number 2" in result.message

    def test_full_hunt_without_waitlist(self, db, service):
        hunt = create_hunt(db, capacity=2)
        add_participant(db, hunt, "user_1")

        result = service.join(hunt.id, "user_2")

        assert not result.ok
        assert result.error == ParticipationError.HUNT_FULL
        assert get_participant(db, hunt.id, "user_2") is None

    def test_unknown_hunt(self, service):
        result = service.join("hnt_missing", "user_1")
        assert result.error == ParticipationError.HUNT_NOT_FOUND

    def test_already_participating(self, db, service):
        hunt = create_hunt(db, capacity=5)
        service.join(hunt.id, "user_1")

        result = service.join(hunt.id, "user_1")

        assert result.error == ParticipationError.ALREADY_PARTICIPATING

    def test_paid_hunt_requires_verified_email(self, db, service):
        hunt = create_hunt(db, payment_mode=HuntPaymentMode.PAID, capacity=5)

        result = service.join(hunt.id, "user_1", email_verified=False)

        assert result.error == ParticipationError.EMAIL_NOT_VERIFIED

    def test_free_hunt_does_not_require_verified_email(self, db, service):
        hunt = create_hunt(db, capacity=5)
        assert service.join(hunt.id, "user_1", email_verified=False).ok


class TestJoinTiming:

    def test_join_61_seconds_before_end_succeeds(self, db, service):
        hunt = create_hunt(
            db,
            start_date=NOW - timedelta(hours=2),
            end_date=NOW + timedelta(seconds=61),
            capacity=5,
        )

        result = service.join(hunt.id, "user_1")

        assert result.ok
        assert result.participant.status == ParticipantStatus.CONFIRMED.value

    def test_join_30_seconds_before_end_fails(self, db, service):
        hunt = create_hunt(
            db,
            start_date=NOW - timedelta(hours=2),
            end_date=NOW + timedelta(seconds=30),
            capacity=5,
        )

        result = service.join(hunt.id, "user_1")

        assert not result.ok
        assert result.error == ParticipationError.TOO_CLOSE_TO_END

    def test_join_after_end_fails(self, db, service):
        hunt = create_hunt(
            db,
            start_date=NOW - timedelta(hours=6),
            end_date=NOW - timedelta(minutes=5),
            capacity=5,
        )

        assert service.join(hunt.id, "user_1").error == ParticipationError.HUNT_ENDED

    def test_pending_request_on_started_hunt_is_already_expired(self, db, service, clock, counter):
        hunt = create_hunt(
            db,
            visibility=HuntVisibility.PRIVATE,
            start_date=NOW - timedelta(hours=1),
            end_date=NOW + timedelta(hours=3),
            capacity=5,
        )

        result = service.join(hunt.id, "user_1")

        assert result.participant.status == ParticipantStatus.PENDING.value
        assert result.participant.request_expires_at == hunt.start_date - timedelta(seconds=1)
        assert result.participant.request_expires_at < NOW

        assert run_expiry_sweep(db, clock=clock, counter=counter) == 1
        assert get_participant(db, hunt.id, "user_1").status == ParticipantStatus.CANCELLED.value


class TestRejoin:

    def test_rejoin_goes_to_back_of_waitlist(self, db, service):
        hunt = create_hunt(db, capacity=1, allow_waitlist=True)
        add_waitlisted(db, hunt, "user_1", 1)
        add_waitlisted(db, hunt, "user_2", 2)

        assert service.leave(hunt.id, "user_1").ok
        result = service.join(hunt.id, "user_1")

        assert result.participant.status == ParticipantStatus.WAITLISTED.value
        assert result.participant.waitlist_position == 3
        assert result.participant.joined_at == NOW

    def test_rejoin_reuses_the_row(self, db, service):
        hunt = create_hunt(db, capacity=5)
        first = service.join(hunt.id, "user_1").participant.id
        service.leave(hunt.id, "user_1")

        result = service.join(hunt.id, "user_1")

        assert result.participant.id == first
        assert result.participant.status == ParticipantStatus.CONFIRMED.value

    def test_rejection_limit_blocks_rejoin(self, db, service):
        hunt = create_hunt(db, visibility=HuntVisibility.PRIVATE, capacity=5)
        add_participant(db, hunt, "user_1", status=ParticipantStatus.CANCELLED, rejection_count=3)

        result = service.join(hunt.id, "user_1")

        assert result.error == ParticipationError.REJECTION_LIMIT_REACHED

    def test_two_rejections_still_allow_rejoin(self, db, service):
        hunt = create_hunt(db, visibility=HuntVisibility.PRIVATE, capacity=5)
        add_participant(db, hunt, "user_1", status=ParticipantStatus.CANCELLED, rejection_count=2)

        result = service.join(hunt.id, "user_1")

        assert result.ok
        assert result.participant.rejection_count == 2

    def test_later_clock_moves_expiry(self, db, counter):
        hunt = create_hunt(db, payment_mode=HuntPaymentMode.PAID, start_date=NOW + timedelta(days=30))
        later = NOW + timedelta(days=1)
        service = ParticipationService(db, counter=counter, clock=frozen_clock(later))

        result = service.join(hunt.id, "user_1")

        assert result.participant.request_expires_at == later + timedelta(days=7)
