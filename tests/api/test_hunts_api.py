"""
HTTP-level tests for the hunt and cron endpoints.
"""
from datetime import timedelta
from unittest.mock import MagicMock

from jose import jwt

from hunt_lifecycle.api import deps
from hunt_lifecycle.constants.hunt import HuntPaymentMode, HuntVisibility, ParticipantStatus, PaymentStatus
from hunt_lifecycle.core.config import settings
from hunt_lifecycle.main import app
from hunt_lifecycle.services.hunt_participation import PaymentCapability
from tests.utils.hunts import NOW, OWNER_ID, add_participant, create_hunt, get_participant

API = "/api/v1"


def _new_hunt_payload(**overrides):
    payload = {
        "name": "Aurora Ridge",
        "start_date": (NOW + timedelta(days=2)).isoformat(),
        "end_date": (NOW + timedelta(days=2, hours=4)).isoformat(),
        "capacity": 4,
    }
    payload.update(overrides)
    return payload


def test_root(test_client):
    response = test_client.get("/")
    assert response.status_code == 200


def test_create_hunt(test_client, counter):
    response = test_client.post(f"{API}/hunts", json=_new_hunt_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["owner_id"] == OWNER_ID
    assert body["capacity"] == 4
    counter.increment.assert_called_once_with(OWNER_ID)


def test_create_paid_hunt_requires_payment_account(test_client):
    checker = MagicMock()
    checker.check.return_value = PaymentCapability(email_verified=True, has_payment_account=False)
    app.dependency_overrides[deps.get_payment_capability_checker] = lambda: checker

    response = test_client.post(
        f"{API}/hunts", json=_new_hunt_payload(payment_mode="paid", price=3000)
    )

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "payment_account_required"
    profile = checker.check.call_args.args[0]
    assert profile.user_id == OWNER_ID
    assert profile.email_verified is True


def test_create_hunt_with_invalid_dates(test_client):
    response = test_client.post(
        f"{API}/hunts",
        json=_new_hunt_payload(end_date=(NOW + timedelta(days=1)).isoformat()),
    )
    assert response.status_code == 422


def test_join_and_leave(db, test_client, current_user, counter):
    hunt = create_hunt(db, capacity=5)
    hunt_id = hunt.id
    current_user.sub = "user_1"

    joined = test_client.post(f"{API}/hunts/{hunt_id}/join")
    assert joined.status_code == 200
    assert joined.json()["participant"]["status"] == "confirmed"
    counter.increment.assert_called_once_with("user_1")

    again = test_client.post(f"{API}/hunts/{hunt_id}/join")
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "already_participating"

    left = test_client.post(f"{API}/hunts/{hunt_id}/leave")
    assert left.status_code == 200
    assert get_participant(db, hunt_id, "user_1").status == ParticipantStatus.CANCELLED.value
    counter.decrement.assert_called_once_with("user_1")


def test_join_full_hunt_without_waitlist(db, test_client, current_user):
    hunt = create_hunt(db, capacity=1)
    current_user.sub = "user_1"

    response = test_client.post(f"{API}/hunts/{hunt.id}/join")

    assert response.status_code == 409
    assert response.json()["detail"] == {"error": "hunt_full", "message": "This hunt is full"}


def test_join_unknown_hunt(test_client, current_user):
    current_user.sub = "user_1"
    response = test_client.post(f"{API}/hunts/hnt_missing/join")
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "hunt_not_found"


def test_owner_cannot_leave(db, test_client):
    hunt = create_hunt(db, capacity=5)

    response = test_client.post(f"{API}/hunts/{hunt.id}/leave")

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "owner_cannot_leave"


def test_over_capacity_approval_needs_consent(db, test_client):
    hunt = create_hunt(db, visibility=HuntVisibility.PRIVATE, capacity=2)
    hunt_id = hunt.id
    add_participant(db, hunt, "user_1")
    add_participant(db, hunt, "user_2", status=ParticipantStatus.PENDING)

    check = test_client.get(f"{API}/hunts/{hunt_id}/capacity-check")
    assert check.json()["would_exceed"] is True
    assert check.json()["new_capacity"] == 3

    refused = test_client.post(f"{API}/hunts/{hunt_id}/participants/user_2/approve")
    assert refused.status_code == 409
    assert refused.json()["detail"]["error"] == "capacity_confirmation_required"

    approved = test_client.post(
        f"{API}/hunts/{hunt_id}/participants/user_2/approve",
        json={"allow_over_capacity": True},
    )
    assert approved.status_code == 200
    assert approved.json()["capacity_adjusted"] is True
    assert approved.json()["new_capacity"] == 3


def test_only_owner_can_approve(db, test_client, current_user):
    hunt = create_hunt(db, visibility=HuntVisibility.PRIVATE, capacity=5)
    add_participant(db, hunt, "user_2", status=ParticipantStatus.PENDING)
    current_user.sub = "user_1"

    response = test_client.post(f"{API}/hunts/{hunt.id}/participants/user_2/approve")

    assert response.status_code == 403


def test_reject(db, test_client):
    hunt = create_hunt(db, visibility=HuntVisibility.PRIVATE, capacity=5)
    add_participant(db, hunt, "user_2", status=ParticipantStatus.PENDING)

    response = test_client.post(f"{API}/hunts/{hunt.id}/participants/user_2/reject")

    assert response.status_code == 200
    assert response.json()["participant"]["rejection_count"] == 1
    assert response.json()["is_blocked"] is False


def test_payment_flow(db, test_client, current_user):
    hunt = create_hunt(db, payment_mode=HuntPaymentMode.PAID, capacity=5)
    hunt_id = hunt.id
    add_participant(db, hunt, "user_1", status=ParticipantStatus.PENDING, payment_status=PaymentStatus.PENDING)

    current_user.sub = "user_1"
    marked = test_client.post(f"{API}/hunts/{hunt_id}/mark-paid")
    assert marked.status_code == 200
    assert marked.json()["participant"]["payment_status"] == "marked_paid"

    current_user.sub = OWNER_ID
    pending = test_client.get(f"{API}/hunts/pending-payments")
    assert [p["user_id"] for p in pending.json()[0]["pending_payments"]] == ["user_1"]

    confirmed = test_client.post(f"{API}/hunts/{hunt_id}/confirm-payment", json={"user_id": "user_1"})
    assert confirmed.status_code == 200
    assert confirmed.json()["participant"]["status"] == "confirmed"
    assert confirmed.json()["participant"]["payment_status"] == "completed"

    current_user.sub = "user_1"
    twice = test_client.post(f"{API}/hunts/{hunt_id}/mark-paid")
    assert twice.status_code == 409
    assert twice.json()["detail"]["error"] == "already_paid"


def test_update_settings_and_cancel(db, test_client):
    hunt = create_hunt(db, capacity=3)
    hunt_id = hunt.id

    updated = test_client.patch(f"{API}/hunts/{hunt_id}", json={"capacity": 6, "name": "Bigger hunt"})
    assert updated.status_code == 200
    assert updated.json()["hunt"]["capacity"] == 6

    cancelled = test_client.delete(f"{API}/hunts/{hunt_id}")
    assert cancelled.status_code == 204

    missing = test_client.delete(f"{API}/hunts/{hunt_id}")
    assert missing.status_code == 404


def test_update_with_null_name_is_rejected(db, test_client):
    hunt = create_hunt(db, capacity=3)
    hunt_id = hunt.id

    response = test_client.patch(f"{API}/hunts/{hunt_id}", json={"name": None})

    assert response.status_code == 422
    assert test_client.patch(f"{API}/hunts/{hunt_id}", json={}).json()["hunt"]["name"] == "Test Hunt"


def test_cron_cleanup_requires_secret(test_client):
    assert test_client.post(f"{API}/cron/cleanup-expired").status_code == 401

    wrong = test_client.post(
        f"{API}/cron/cleanup-expired", headers={"Authorization": "Bearer wrong"}
    )
    assert wrong.status_code == 401


def test_cron_cleanup(db, test_client):
    hunt = create_hunt(db, visibility=HuntVisibility.PRIVATE, capacity=5)
    hunt_id = hunt.id
    add_participant(
        db, hunt, "user_1",
        status=ParticipantStatus.PENDING,
        request_expires_at=NOW - timedelta(minutes=1),
    )

    response = test_client.post(
        f"{API}/cron/cleanup-expired",
        headers={"Authorization": f"Bearer {settings.CRON_SECRET}"},
    )

    assert response.status_code == 200
    assert response.json()["cleaned"] == 1
    assert response.json()["purged"] == 0
    assert get_participant(db, hunt_id, "user_1").status == ParticipantStatus.CANCELLED.value


def test_requests_need_a_valid_token(test_client):
    app.dependency_overrides.pop(deps.get_current_user)

    assert test_client.post(f"{API}/hunts/hnt_1/join").status_code == 401
    response = test_client.post(
        f"{API}/hunts/hnt_1/join", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


def test_token_claims_reach_the_service(db, test_client):
    hunt = create_hunt(db, payment_mode=HuntPaymentMode.PAID, capacity=5)
    app.dependency_overrides.pop(deps.get_current_user)
    token = jwt.encode(
        {"sub": "user_1", "email_verified": False, "exp": 4102444800},
        settings.JWT_SECRET,
        algorithm="HS256",
    )

    response = test_client.post(
        f"{API}/hunts/{hunt.id}/join", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "email_not_verified"
