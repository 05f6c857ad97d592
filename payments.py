"""Payment gateway adapter.

Integrates with Stripe PaymentIntents. The server creates the intent and
hands the client_secret to the browser; the browser confirms the card
payment and the resulting intent id comes back as the order's
transactionId, which is checked here before the order is accepted.
"""
import logging

import stripe

import config
from errors import PaymentError, PaymentNotCompletedError

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


def _configure():
    if not config.STRIPE_SECRET_KEY:
        raise PaymentError("Payment gateway is not configured")
    stripe.api_key = config.STRIPE_SECRET_KEY


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def create_payment_intent(amount: float, metadata: dict | None = None) -> str:
    """Create a PaymentIntent for `amount` and return its client secret."""
    _configure()
    try:
        intent = stripe.PaymentIntent.create(
            amount=to_minor_units(amount),
            currency=config.STRIPE_CURRENCY,
            automatic_payment_methods={"enabled": True},
            metadata=metadata or {},
        )
    except stripe.StripeError as exc:
        logger.error("Stripe refused payment intent for %s: %s", amount, exc)
        raise PaymentError(f"Payment gateway error: {exc.user_message or exc}") from exc
    logger.info("Created payment intent %s for %s", intent.id, amount)
    return intent.client_secret


def ensure_succeeded(transaction_id: str, amount: float, plant_id: str):
    """Raise unless the referenced PaymentIntent succeeded for this exact purchase.

    The intent must have charged `amount` and been created for `plant_id`.
    """
    if not transaction_id:
        raise PaymentNotCompletedError("")
    _configure()
    try:
        intent = stripe.PaymentIntent.retrieve(transaction_id)
    except stripe.StripeError as exc:
        logger.error("Could not retrieve payment intent %s: %s", transaction_id, exc)
        raise PaymentError(f"Payment gateway error: {exc.user_message or exc}") from exc
    if intent.status != SUCCEEDED:
        raise PaymentNotCompletedError(transaction_id, intent.status)
    if intent.amount != to_minor_units(amount):
        logger.warning("Payment %s charged %s, order needs %s", transaction_id, intent.amount,
                       to_minor_units(amount))
        raise PaymentNotCompletedError(transaction_id, "amount mismatch")
    metadata = intent.metadata or {}
    if metadata.get("plantId") != plant_id:
        logger.warning("Payment %s was made for plant %s, not %s", transaction_id,
                       metadata.get("plantId"), plant_id)
        raise PaymentNotCompletedError(transaction_id, "plant mismatch")
