# layofftracker/services/stripe_service.py
"""
Thin wrapper around the Stripe SDK.

Provides:
- Customer lookup/creation (one gateway customer per user)
- Setup intents for trials (save a card, charge later)
- One-time payment intents
- Subscription creation, cancellation and retrieval
- One-off creation of the monthly "Layoff Proof Pro" price

Nothing here retries or swallows gateway errors: ``stripe.StripeError`` reaches
the caller as raised by the SDK. Persisting ids on the user is the caller's job.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple, Union

import stripe
from flask import current_app

# Every remote failure (network, auth, validation) surfaces as this type.
GatewayError = stripe.StripeError


class GatewayUnavailable(Exception):
    """Customer lookup failed for a reason other than "no such customer"."""


PRO_PRODUCT_NAME = "Layoff Proof Pro"
PRO_PRODUCT_DESCRIPTION = "Complete career resilience platform with AI-powered tools"
PRO_UNIT_AMOUNT = 1900  # $19.00 in cents


def get_stripe_client() -> stripe:
    """Get configured Stripe client."""
    api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not api_key:
        raise ValueError("STRIPE_SECRET_KEY not configured")
    stripe.api_key = api_key
    return stripe


def to_minor_units(amount: Union[int, float, str, Decimal]) -> int:
    """
    Convert a major-unit amount (19.00) to integer minor units (1900).

    Rounds half-up so 0.005 becomes 1 rather than banker's-rounding to 0.
    """
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if cents <= 0:
        raise ValueError(f"Amount must be positive, got {amount!r}")
    return int(cents)


def _is_missing_customer(exc: stripe.StripeError) -> bool:
    return isinstance(exc, stripe.InvalidRequestError) and (
        exc.http_status == 404 or exc.code == "resource_missing"
    )


def get_or_create_stripe_customer(user) -> str:
    """
    Return a Stripe customer id for ``user``, creating one when needed.

    Args:
        user: object with ``id``, ``email``, ``first_name``, ``last_name`` and
            an optional ``stripe_customer_id``

    Returns:
        The stored id if it still resolves in Stripe, otherwise the id of a
        newly created customer. A stale stored id is never returned.

    Raises:
        GatewayUnavailable: the lookup failed for another reason (auth, network...)
    """
    get_stripe_client()

    existing_id = getattr(user, "stripe_customer_id", None)
    if existing_id:
        try:
            customer = stripe.Customer.retrieve(existing_id)
        except stripe.StripeError as e:
            if not _is_missing_customer(e):
                raise GatewayUnavailable(f"Could not verify Stripe customer {existing_id}") from e
            current_app.logger.warning(
                f"Stripe customer {existing_id} not found for user {user.id}, creating a new one"
            )
        else:
            if not getattr(customer, "deleted", False):
                return existing_id
            current_app.logger.warning(
                f"Stripe customer {existing_id} was deleted for user {user.id}, creating a new one"
            )

    first, last = getattr(user, "first_name", None), getattr(user, "last_name", None)
    customer = stripe.Customer.create(
        email=user.email,
        name=f"{first} {last}" if first and last else None,
        metadata={"user_id": str(user.id)},
    )

    current_app.logger.info(f"Created Stripe customer {customer.id} for user {user.id}")
    return customer.id


def create_setup_intent(customer_id: str):
    """Create a setup intent so a trial user can save a card for off-session charges."""
    get_stripe_client()
    return stripe.SetupIntent.create(
        customer=customer_id,
        usage="off_session",
        payment_method_types=["card"],
        metadata={"type": "trial_setup"},
    )


def create_subscription(customer_id: str, price_id: str, payment_method_id: Optional[str] = None):
    """
    Create a monthly subscription.

    With ``payment_method_id`` the method becomes the default and Stripe tries to
    activate immediately. Without it the subscription starts ``incomplete`` and the
    client confirms the expanded ``latest_invoice.payment_intent``.
    """
    get_stripe_client()

    params = {
        "customer": customer_id,
        "items": [{"price": price_id}],
        "expand": ["latest_invoice.payment_intent"],
        "metadata": {"type": "monthly_subscription"},
    }
    if payment_method_id:
        params["default_payment_method"] = payment_method_id
    else:
        params["payment_behavior"] = "default_incomplete"

    subscription = stripe.Subscription.create(**params)
    current_app.logger.info(
        f"Created subscription {subscription.id} for customer {customer_id}, status={subscription.status}"
    )
    return subscription


def create_payment_intent(amount, customer_id: str, currency: str = "usd"):
    """
    Create a one-time payment intent.

    Args:
        amount: amount in major units (19.00 for $19)
        customer_id: Stripe customer id
        currency: ISO currency code

    Raises:
        ValueError: amount is not positive (checked before calling Stripe)
    """
    minor = to_minor_units(amount)
    get_stripe_client()
    return stripe.PaymentIntent.create(
        amount=minor,
        currency=currency,
        customer=customer_id,
        automatic_payment_methods={"enabled": True},
        metadata={"type": "one_time_payment"},
    )


def cancel_subscription(subscription_id: str):
    """Cancel a subscription immediately (terminal)."""
    get_stripe_client()
    subscription = stripe.Subscription.cancel(subscription_id)
    current_app.logger.info(f"Subscription {subscription_id} canceled")
    return subscription


def get_subscription(subscription_id: str):
    get_stripe_client()
    return stripe.Subscription.retrieve(subscription_id, expand=["latest_invoice.payment_intent"])


def latest_payment_intent_secret(subscription) -> Optional[str]:
    """Client secret of the subscription's latest invoice payment intent, if expanded."""
    invoice = getattr(subscription, "latest_invoice", None)
    intent = getattr(invoice, "payment_intent", None) if invoice else None
    return getattr(intent, "client_secret", None) if intent else None


def create_pro_price() -> Tuple[str, str]:
    """
    Create the "Layoff Proof Pro" product and its $19/month price.

    Only needed once per Stripe account/mode.

    Returns:
        Tuple of (product id, price id)
    """
    get_stripe_client()
    product = stripe.Product.create(
        name=PRO_PRODUCT_NAME,
        description=PRO_PRODUCT_DESCRIPTION,
        metadata={"type": "subscription"},
    )
    price = stripe.Price.create(
        product=product.id,
        unit_amount=PRO_UNIT_AMOUNT,
        currency="usd",
        recurring={"interval": "month"},
        metadata={"plan": "pro"},
    )
    current_app.logger.info(f"Created product {product.id} with price {price.id}")
    return product.id, price.id
