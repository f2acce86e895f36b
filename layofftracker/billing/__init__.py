# layofftracker/billing/__init__.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from layofftracker.forms import json_payload
from layofftracker.services import checkout
from layofftracker.services.stripe_service import GatewayError, GatewayUnavailable, latest_payment_intent_secret

billing_bp = Blueprint("billing_bp", __name__, url_prefix="/api/stripe")

SETUP_ERROR = "Failed to initialize payment setup. Please try again."
GATEWAY_ERROR = "Payment provider error. Please try again."


@billing_bp.errorhandler(checkout.CheckoutSetupError)
def _setup_failed(e):
    return jsonify({"message": SETUP_ERROR}), 502


@billing_bp.errorhandler(GatewayError)
@billing_bp.errorhandler(GatewayUnavailable)
def _gateway_failed(e):
    current_app.logger.exception(f"Stripe call failed: {e}")
    return jsonify({"message": GATEWAY_ERROR}), 502


@billing_bp.errorhandler(checkout.NoSubscription)
def _no_subscription(e):
    return jsonify({"message": "No subscription found"}), 404


def _subscription_json(subscription) -> dict:
    return {
        "subscriptionId": subscription.id,
        "status": subscription.status,
        "clientSecret": latest_payment_intent_secret(subscription),
    }


# ----------------------------- checkout -----------------------------

@billing_bp.post("/start-trial")
@login_required
def start_trial():
    secret = checkout.start_trial(current_user)
    return jsonify({"clientSecret": secret, "type": checkout.TRIAL})


@billing_bp.post("/create-payment-intent")
@login_required
def create_payment_intent():
    # Amount is the configured plan price; anything the client sends is ignored
    try:
        secret = checkout.switch_to_subscription(current_user)
    except checkout.CheckoutTransitionError as e:
        return jsonify({"message": str(e)}), 409
    return jsonify({"clientSecret": secret, "type": checkout.SUBSCRIPTION})


@billing_bp.get("/checkout")
@login_required
def checkout_state():
    state = checkout.current_checkout()
    if not state:
        return jsonify({"type": None})
    return jsonify({"type": state["mode"], "intentId": state["intent_id"]})


# --------------------------- subscription ---------------------------

@billing_bp.post("/create-subscription")
@login_required
def create_subscription():
    if not current_app.config.get("STRIPE_PRICE_ID"):
        return jsonify({"message": "Subscriptions are not configured"}), 503

    payload = json_payload()
    payment_method_id = payload.get("paymentMethodId") if payload is not None else None
    if payload is None or (payment_method_id is not None and not isinstance(payment_method_id, str)):
        return jsonify({"message": "paymentMethodId must be a string"}), 400

    subscription = checkout.subscribe(current_user, payment_method_id or None)
    return jsonify(_subscription_json(subscription))


@billing_bp.get("/subscription")
@login_required
def get_subscription():
    return jsonify(_subscription_json(checkout.fetch_subscription(current_user)))


@billing_bp.post("/subscription/cancel")
@login_required
def cancel_subscription():
    subscription = checkout.cancel(current_user)
    return jsonify({"subscriptionId": subscription.id, "status": subscription.status})


@billing_bp.get("/config")
def stripe_config():
    return jsonify({"publishableKey": current_app.config.get("STRIPE_PUBLISHABLE_KEY", "")})
