# layofftracker/services/checkout.py
"""
Trial / subscription checkout flow.

A checkout lives in the Flask session under ``checkout`` as
``{"mode": "trial" | "subscription", "intent_id": "..."}``:

- trial: a SetupIntent saves the card, nothing is charged
- subscription: a PaymentIntent charges the plan amount now

``start_trial`` always starts over. ``switch_to_subscription`` only moves
forward (trial -> subscription). Each transition forgets the previous intent
before talking to Stripe, so a failed call leaves no stale client secret behind.
Client secrets are handed back to the caller and never stored in the session.
"""

from typing import Optional

from flask import current_app, session

from layofftracker import db
from layofftracker.models import utcnow
from layofftracker.services.stripe_service import (
    GatewayError,
    GatewayUnavailable,
    cancel_subscription,
    create_payment_intent,
    create_setup_intent,
    create_subscription,
    get_or_create_stripe_customer,
    get_subscription,
)

SESSION_KEY = "checkout"
TRIAL = "trial"
SUBSCRIPTION = "subscription"


class CheckoutError(Exception):
    pass


class CheckoutSetupError(CheckoutError):
    """Creating the intent failed; the user can retry."""


class CheckoutTransitionError(CheckoutError):
    """The requested move is not allowed from the current state."""


class NoSubscription(CheckoutError):
    pass


def current_checkout() -> Optional[dict]:
    return session.get(SESSION_KEY)


def reset_checkout() -> None:
    session.pop(SESSION_KEY, None)
    session.modified = True


def _remember(mode: str, intent_id: str) -> None:
    session[SESSION_KEY] = {"mode": mode, "intent_id": intent_id}
    session.modified = True


def ensure_customer(user) -> str:
    """Resolve the user's Stripe customer and store the id if it changed."""
    customer_id = get_or_create_stripe_customer(user)
    if user.stripe_customer_id != customer_id:
        user.stripe_customer_id = customer_id
        db.session.commit()
    return customer_id


def _client_secret(intent, what: str) -> str:
    secret = getattr(intent, "client_secret", None)
    if not secret:
        raise CheckoutSetupError(f"No client secret received for {what} {getattr(intent, 'id', '?')}")
    return secret


def start_trial(user) -> str:
    """
    Enter the trial state: save a card without charging.

    Returns:
        SetupIntent client secret for the card form

    Raises:
        CheckoutSetupError: Stripe failed; the session holds no checkout
    """
    reset_checkout()
    try:
        customer_id = ensure_customer(user)
        intent = create_setup_intent(customer_id)
    except (GatewayError, GatewayUnavailable) as e:
        current_app.logger.error(f"Trial setup failed for user {user.id}: {e}", exc_info=True)
        raise CheckoutSetupError("Failed to initialize payment setup") from e

    secret = _client_secret(intent, "setup intent")
    _remember(TRIAL, intent.id)
    current_app.logger.info(f"Trial checkout started for user {user.id} (setup intent {intent.id})")
    return secret


def switch_to_subscription(user) -> str:
    """
    Skip the trial and pay now.

    Allowed from the trial state, or from an empty state after a failed setup.

    Returns:
        PaymentIntent client secret for the configured plan amount

    Raises:
        CheckoutTransitionError: already in the subscription state
        CheckoutSetupError: Stripe failed; the session holds no checkout
    """
    state = current_checkout()
    if state and state.get("mode") == SUBSCRIPTION:
        raise CheckoutTransitionError("Checkout is already in the subscription state")

    reset_checkout()
    amount = current_app.config.get("SUBSCRIPTION_AMOUNT", 19.00)
    currency = current_app.config.get("SUBSCRIPTION_CURRENCY", "usd")
    try:
        customer_id = ensure_customer(user)
        intent = create_payment_intent(amount, customer_id, currency=currency)
    except (GatewayError, GatewayUnavailable) as e:
        current_app.logger.error(f"Payment intent failed for user {user.id}: {e}", exc_info=True)
        raise CheckoutSetupError("Failed to initialize payment setup") from e

    secret = _client_secret(intent, "payment intent")
    _remember(SUBSCRIPTION, intent.id)
    current_app.logger.info(f"Subscription checkout started for user {user.id} (payment intent {intent.id})")
    return secret


# ===== Recurring subscription =====

def _mirror(user, subscription) -> None:
    user.stripe_subscription_id = subscription.id
    user.subscription_status = subscription.status
    if subscription.status in ("active", "trialing"):
        user.subscription_plan = "pro"
    elif subscription.status == "canceled":
        user.subscription_plan = "free"
    user.updated_at = utcnow()
    db.session.commit()


def subscribe(user, payment_method_id: Optional[str] = None):
    """
    Create the monthly subscription for ``user`` and mirror it on the user row.

    Gateway errors propagate unchanged.
    """
    price_id = current_app.config.get("STRIPE_PRICE_ID")
    if not price_id:
        raise ValueError("STRIPE_PRICE_ID not configured")

    customer_id = ensure_customer(user)
    subscription = create_subscription(customer_id, price_id, payment_method_id)
    _mirror(user, subscription)
    return subscription


def fetch_subscription(user):
    if not user.stripe_subscription_id:
        raise NoSubscription(f"User {user.id} has no subscription")
    subscription = get_subscription(user.stripe_subscription_id)
    if subscription.status != user.subscription_status:
        _mirror(user, subscription)
    return subscription


def cancel(user):
    if not user.stripe_subscription_id:
        raise NoSubscription(f"User {user.id} has no subscription")
    subscription = cancel_subscription(user.stripe_subscription_id)
    _mirror(user, subscription)
    return subscription
