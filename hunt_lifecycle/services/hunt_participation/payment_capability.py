# hunt_lifecycle/services/hunt_participation/payment_capability.py
"""
Stripe-backed check of whether an owner can host paid hunts.
"""
import logging

import stripe

from hunt_lifecycle.core.config import settings

from .collaborators import OwnerPaymentProfile, PaymentCapability, PaymentCapabilityChecker

logger = logging.getLogger(__name__)


class StripePaymentCapabilityChecker(PaymentCapabilityChecker):
    """
    An owner has a payment account when their connected Stripe account can
    accept charges.
    """

    def __init__(self):
        if not stripe.api_key:
            stripe.api_key = settings.STRIPE_SECRET_KEY

    def check(self, profile: OwnerPaymentProfile) -> PaymentCapability:
        if not profile.stripe_account_id:
            return PaymentCapability(
                email_verified=profile.email_verified,
                has_payment_account=False,
            )

        try:
            account = stripe.Account.retrieve(profile.stripe_account_id)
        except stripe.StripeError as e:
            # Treated as "no account": the owner can retry once Stripe answers
            logger.error(f"Stripe error retrieving account for user {profile.user_id}: {e}")
            return PaymentCapability(
                email_verified=profile.email_verified,
                has_payment_account=False,
            )

        return PaymentCapability(
            email_verified=profile.email_verified,
            has_payment_account=bool(account.charges_enabled),
        )
