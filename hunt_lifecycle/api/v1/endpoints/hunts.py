# hunt_lifecycle/api/v1/endpoints/hunts.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from hunt_lifecycle.api import deps
from hunt_lifecycle.constants.hunt import HuntPaymentMode
from hunt_lifecycle.schemas.hunt import (
    ApproveRequest,
    CapacityCheckResponse,
    ConfirmPaymentRequest,
    HuntCreate,
    HuntParticipantResponse,
    HuntResponse,
    HuntSettingsUpdate,
    ParticipationResponse,
    PendingPaymentHunt,
    SettingsUpdateResponse,
)
from hunt_lifecycle.schemas.token import TokenPayload
from hunt_lifecycle.scheduler import cancel_prestart_purge, schedule_prestart_purge
from hunt_lifecycle.services.hunt_participation import (
    HuntResult,
    HuntService,
    OwnerPaymentProfile,
    ParticipationError,
    ParticipationResult,
    ParticipationService,
    PaymentCapability,
    PaymentCapabilityChecker,
)

router = APIRouter(tags=["Hunts"])
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ParticipationError.HUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ParticipationError.NOT_A_PARTICIPANT: status.HTTP_404_NOT_FOUND,
    ParticipationError.NOT_HUNT_OWNER: status.HTTP_403_FORBIDDEN,
    ParticipationError.REJECTION_LIMIT_REACHED: status.HTTP_403_FORBIDDEN,
    ParticipationError.EMAIL_NOT_VERIFIED: status.HTTP_403_FORBIDDEN,
    ParticipationError.PAYMENT_ACCOUNT_REQUIRED: status.HTTP_403_FORBIDDEN,
    ParticipationError.HUNT_FULL: status.HTTP_409_CONFLICT,
    ParticipationError.ALREADY_PROCESSING: status.HTTP_409_CONFLICT,
    ParticipationError.ALREADY_PAID: status.HTTP_409_CONFLICT,
    ParticipationError.ALREADY_PARTICIPATING: status.HTTP_409_CONFLICT,
    ParticipationError.CAPACITY_CONFIRMATION_REQUIRED: status.HTTP_409_CONFLICT,
}


def _raise_for_failure(result) -> None:
    """Translate a failed HuntResult/ParticipationResult into an HTTP error."""
    if result.ok:
        return
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(result.error, status.HTTP_400_BAD_REQUEST),
        detail={"error": result.error.value, "message": result.message},
    )


def _participation_response(result: ParticipationResult) -> ParticipationResponse:
    _raise_for_failure(result)
    participant = None
    if result.participant is not None:
        participant = HuntParticipantResponse.model_validate(result.participant)
    return ParticipationResponse(
        success=True,
        message=result.message,
        participant=participant,
        promoted_user_id=result.promoted.user_id if result.promoted is not None else None,
        capacity_adjusted=result.capacity_adjusted,
        new_capacity=result.new_capacity,
        is_blocked=result.is_blocked,
    )


def _payment_capability(
    current_user: TokenPayload,
    checker: PaymentCapabilityChecker,
) -> PaymentCapability:
    return checker.check(
        OwnerPaymentProfile(
            user_id=current_user.user_id,
            email_verified=current_user.email_verified,
            stripe_account_id=current_user.stripe_account_id,
        )
    )


# ==================== Hunts ====================

@router.post("/hunts", response_model=HuntResponse, status_code=status.HTTP_201_CREATED)
def create_hunt(
    hunt_in: HuntCreate,
    service: HuntService = Depends(deps.get_hunt_service),
    checker: PaymentCapabilityChecker = Depends(deps.get_payment_capability_checker),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Create a hunt. The creator becomes its first confirmed participant.

    Paid hunts require a verified email and a connected payment account.
    """
    capability: Optional[PaymentCapability] = None
    if hunt_in.payment_mode == HuntPaymentMode.PAID:
        capability = _payment_capability(current_user, checker)

    result: HuntResult = service.create_hunt(current_user.user_id, hunt_in, capability=capability)
    _raise_for_failure(result)

    schedule_prestart_purge(result.hunt.id, result.hunt.start_date)
    return result.hunt


@router.patch("/hunts/{hunt_id}", response_model=SettingsUpdateResponse)
def update_hunt_settings(
    hunt_id: str,
    changes: HuntSettingsUpdate,
    service: HuntService = Depends(deps.get_hunt_service),
    checker: PaymentCapabilityChecker = Depends(deps.get_payment_capability_checker),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Change hunt settings (owner only).

    Visibility and payment changes are refused while participants are
    pending or waitlisted. Raising the capacity promotes from the waitlist.
    """
    capability: Optional[PaymentCapability] = None
    if changes.payment_mode == HuntPaymentMode.PAID:
        capability = _payment_capability(current_user, checker)

    result = service.update_hunt_settings(
        hunt_id, current_user.user_id, changes, capability=capability
    )
    _raise_for_failure(result)
    return SettingsUpdateResponse(
        hunt=HuntResponse.model_validate(result.hunt),
        promoted_count=result.promoted_count,
    )


@router.delete("/hunts/{hunt_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_hunt(
    hunt_id: str,
    service: HuntService = Depends(deps.get_hunt_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Cancel (delete) a hunt. Refused once any participant has paid."""
    result = service.cancel_hunt(hunt_id, current_user.user_id)
    _raise_for_failure(result)
    cancel_prestart_purge(hunt_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/hunts/pending-payments", response_model=List[PendingPaymentHunt])
def list_pending_payments(
    service: HuntService = Depends(deps.get_hunt_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Marked payments on the current user's hunts that await confirmation."""
    return [
        PendingPaymentHunt(
            hunt=HuntResponse.model_validate(hunt),
            pending_payments=[HuntParticipantResponse.model_validate(p) for p in participants],
        )
        for hunt, participants in service.get_pending_payments(current_user.user_id)
    ]


# ==================== Participation ====================

@router.post("/hunts/{hunt_id}/join", response_model=ParticipationResponse)
def join_hunt(
    hunt_id: str,
    service: ParticipationService = Depends(deps.get_participation_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Join a hunt.

    Depending on the hunt the user is confirmed, left pending owner approval
    or payment, or added to the waitlist.
    """
    result = service.join(hunt_id, current_user.user_id, email_verified=current_user.email_verified)
    return _participation_response(result)


@router.post("/hunts/{hunt_id}/leave", response_model=ParticipationResponse)
def leave_hunt(
    hunt_id: str,
    service: ParticipationService = Depends(deps.get_participation_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    result = service.leave(hunt_id, current_user.user_id)
    return _participation_response(result)


@router.get("/hunts/{hunt_id}/capacity-check", response_model=CapacityCheckResponse)
def check_capacity(
    hunt_id: str,
    service: ParticipationService = Depends(deps.get_participation_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Tell the owner whether accepting one more participant raises the capacity."""
    check = service.check_capacity_for_acceptance(hunt_id)
    if check is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hunt not found")
    return CapacityCheckResponse(
        would_exceed=check.would_exceed,
        current_capacity=check.current_capacity,
        confirmed_count=check.confirmed_count,
        new_capacity=check.new_capacity,
        warning_message=check.warning_message,
    )


@router.post("/hunts/{hunt_id}/participants/{user_id}/approve", response_model=ParticipationResponse)
def approve_participant(
    hunt_id: str,
    user_id: str,
    body: ApproveRequest = ApproveRequest(),
    service: ParticipationService = Depends(deps.get_participation_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Approve a pending or waitlisted participant (owner only).

    On a full hunt the request must carry ``allow_over_capacity`` once the
    owner has agreed to raise the capacity; otherwise 409 is returned.
    """
    result = service.approve(
        hunt_id,
        current_user.user_id,
        user_id,
        allow_over_capacity=body.allow_over_capacity,
    )
    return _participation_response(result)


@router.post("/hunts/{hunt_id}/participants/{user_id}/reject", response_model=ParticipationResponse)
def reject_participant(
    hunt_id: str,
    user_id: str,
    service: ParticipationService = Depends(deps.get_participation_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    result = service.reject(hunt_id, current_user.user_id, user_id)
    return _participation_response(result)


@router.post("/hunts/{hunt_id}/mark-paid", response_model=ParticipationResponse)
def mark_paid(
    hunt_id: str,
    service: ParticipationService = Depends(deps.get_participation_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Participant reports that they paid; the owner confirms it later."""
    result = service.mark_paid(hunt_id, current_user.user_id)
    return _participation_response(result)


@router.post("/hunts/{hunt_id}/confirm-payment", response_model=ParticipationResponse)
def confirm_payment(
    hunt_id: str,
    body: ConfirmPaymentRequest,
    service: ParticipationService = Depends(deps.get_participation_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    result = service.confirm_payment(
        hunt_id,
        current_user.user_id,
        body.user_id,
        allow_over_capacity=body.allow_over_capacity,
    )
    return _participation_response(result)
