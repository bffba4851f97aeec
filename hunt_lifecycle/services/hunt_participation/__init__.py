# hunt_lifecycle/services/hunt_participation/__init__.py
from .collaborators import (
    NullParticipationCounter,
    OwnerPaymentProfile,
    ParticipationCounter,
    PaymentCapability,
    PaymentCapabilityChecker,
)
from .hunt_service import HuntService
from .participation_service import ParticipationService
from .results import (
    CapacityCheck,
    GuardResult,
    HuntResult,
    ParticipationError,
    ParticipationResult,
)
from .settings_guard import SettingsGuard

__all__ = [
    "CapacityCheck",
    "GuardResult",
    "HuntResult",
    "HuntService",
    "NullParticipationCounter",
    "OwnerPaymentProfile",
    "ParticipationCounter",
    "ParticipationError",
    "ParticipationResult",
    "ParticipationService",
    "PaymentCapability",
    "PaymentCapabilityChecker",
    "SettingsGuard",
]
