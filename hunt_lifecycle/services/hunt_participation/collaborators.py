# hunt_lifecycle/services/hunt_participation/collaborators.py
"""
Interfaces to capabilities owned outside this service.

The engine calls these; it never stores what they manage.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class ParticipationCounter(ABC):
    """
    Cached per-user "hunts joined" bookkeeping.

    ``increment`` is called whenever a user becomes confirmed and
    ``decrement`` when a confirmed user leaves. Both run after the
    transition has been committed.
    """

    @abstractmethod
    def increment(self, user_id: str) -> None:
        pass

    @abstractmethod
    def decrement(self, user_id: str) -> None:
        pass


class NullParticipationCounter(ParticipationCounter):
    """Counter used when no user service is wired in."""

    def increment(self, user_id: str) -> None:
        logger.debug(f"Joined-hunts counter +1 for user {user_id} (no counter configured)")

    def decrement(self, user_id: str) -> None:
        logger.debug(f"Joined-hunts counter -1 for user {user_id} (no counter configured)")


@dataclass
class OwnerPaymentProfile:
    """What the auth service knows about a hunt owner."""
    user_id: str
    email_verified: bool
    stripe_account_id: Optional[str] = None


@dataclass(frozen=True)
class PaymentCapability:
    email_verified: bool
    has_payment_account: bool

    @property
    def can_host_paid_hunts(self) -> bool:
        return self.email_verified and self.has_payment_account


class PaymentCapabilityChecker(ABC):
    """Decides whether an owner may create paid hunts."""

    @abstractmethod
    def check(self, profile: OwnerPaymentProfile) -> PaymentCapability:
        pass
