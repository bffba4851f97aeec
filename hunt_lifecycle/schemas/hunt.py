# hunt_lifecycle/schemas/hunt.py
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from hunt_lifecycle.constants.hunt import (
    HuntPaymentMode,
    HuntVisibility,
    ParticipantStatus,
    PaymentStatus,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive datetimes from clients are read as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class HuntCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, json_schema_extra={"example": "Tromsø Fjord Chase"})
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    visibility: HuntVisibility = HuntVisibility.PUBLIC
    payment_mode: HuntPaymentMode = HuntPaymentMode.FREE
    price: Optional[int] = Field(None, ge=0, description="Price in cents for paid hunts")
    capacity: Optional[int] = Field(None, ge=1, description="NULL means unlimited")
    allow_waitlist: bool = False
    minimum_pax: Optional[int] = Field(None, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalise_dates(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_dates_and_price(self) -> "HuntCreate":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.payment_mode == HuntPaymentMode.PAID and not self.price:
            raise ValueError("Paid hunts need a price")
        return self


class HuntSettingsUpdate(BaseModel):
    """
    Owner-proposed hunt changes. Only the fields that were sent are applied;
    an explicit ``capacity: null`` makes the hunt unlimited.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: Optional[HuntVisibility] = None
    payment_mode: Optional[HuntPaymentMode] = None
    price: Optional[int] = Field(None, ge=0)
    capacity: Optional[int] = Field(None, ge=1)
    allow_waitlist: Optional[bool] = None
    minimum_pax: Optional[int] = Field(None, ge=1)

    @field_validator("name", "visibility", "payment_mode", "allow_waitlist")
    @classmethod
    def not_null(cls, value):
        # These columns are NOT NULL; leave the field out to keep the current value
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @property
    def changes_admission_model(self) -> bool:
        """True when visibility or payment mode is part of the proposal."""
        fields = self.model_fields_set
        return "visibility" in fields or "payment_mode" in fields

    @property
    def changes_capacity(self) -> bool:
        return "capacity" in self.model_fields_set


class HuntResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    visibility: HuntVisibility
    payment_mode: HuntPaymentMode
    price: Optional[int] = None
    capacity: Optional[int] = None
    allow_waitlist: bool
    minimum_pax: Optional[int] = None
    has_participants_in_transition: bool

    model_config = {"from_attributes": True}


class HuntParticipantResponse(BaseModel):
    id: str
    hunt_id: str
    user_id: str
    status: ParticipantStatus
    payment_status: PaymentStatus
    waitlist_position: Optional[int] = None
    joined_at: datetime
    request_expires_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    rejection_count: int

    model_config = {"from_attributes": True}


class ApproveRequest(BaseModel):
    # Set once the owner has confirmed the capacity-raise prompt
    allow_over_capacity: bool = False


class ConfirmPaymentRequest(BaseModel):
    user_id: str
    allow_over_capacity: bool = False


class ParticipationResponse(BaseModel):
    success: bool
    message: str
    participant: Optional[HuntParticipantResponse] = None
    promoted_user_id: Optional[str] = None
    capacity_adjusted: bool = False
    new_capacity: Optional[int] = None
    is_blocked: bool = False


class CapacityCheckResponse(BaseModel):
    would_exceed: bool
    current_capacity: Optional[int] = None
    confirmed_count: int
    new_capacity: Optional[int] = None
    warning_message: Optional[str] = None


class SettingsUpdateResponse(BaseModel):
    hunt: HuntResponse
    promoted_count: int = 0


class PendingPaymentHunt(BaseModel):
    hunt: HuntResponse
    pending_payments: List[HuntParticipantResponse]


class CleanupResponse(BaseModel):
    success: bool
    message: str
    cleaned: int
    purged: int
    timestamp: datetime
