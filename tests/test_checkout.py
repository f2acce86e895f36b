import pytest
import stripe

from layofftracker import db
from layofftracker.models import User


def test_checkout_requires_login(client, fake_stripe):
    r = client.post("/api/stripe/start-trial")
    assert r.status_code == 401
    assert r.get_json() == {"message": "Authentication required"}
    assert fake_stripe.calls == []


def test_start_trial_returns_setup_secret(auth_client, user, fake_stripe):
    r = auth_client.post("/api/stripe/start-trial")
    assert r.status_code == 200
    body = r.get_json()
    assert body["type"] == "trial"
    assert body["clientSecret"].startswith("seti_")

    # customer id persisted for reuse
    assert db.session.get(User, user.id).stripe_customer_id.startswith("cus_")

    state = auth_client.get("/api/stripe/checkout").get_json()
    assert state["type"] == "trial"
    assert body["clientSecret"].startswith(state["intentId"])


def test_customer_is_reused_across_trials(auth_client, fake_stripe):
    auth_client.post("/api/stripe/start-trial")
    auth_client.post("/api/stripe/start-trial")
    assert len(fake_stripe.named("Customer.create")) == 1
    assert len(fake_stripe.named("SetupIntent.create")) == 2


def test_switch_to_subscription_replaces_trial_secret(auth_client, fake_stripe):
    trial = auth_client.post("/api/stripe/start-trial").get_json()

    r = auth_client.post("/api/stripe/create-payment-intent", json={"amount": 1})
    assert r.status_code == 200
    body = r.get_json()
    assert body["type"] == "subscription"
    assert body["clientSecret"] != trial["clientSecret"]

    # server-side amount, client value ignored
    assert fake_stripe.named("PaymentIntent.create")[0]["amount"] == 1900

    state = auth_client.get("/api/stripe/checkout").get_json()
    assert state["type"] == "subscription"
    assert not trial["clientSecret"].startswith(state["intentId"])


def test_switch_twice_is_rejected(auth_client, fake_stripe):
    auth_client.post("/api/stripe/start-trial")
    assert auth_client.post("/api/stripe/create-payment-intent").status_code == 200
    r = auth_client.post("/api/stripe/create-payment-intent")
    assert r.status_code == 409
    assert len(fake_stripe.named("PaymentIntent.create")) == 1


def test_trial_can_restart_after_subscription(auth_client, fake_stripe):
    auth_client.post("/api/stripe/start-trial")
    auth_client.post("/api/stripe/create-payment-intent")
    r = auth_client.post("/api/stripe/start-trial")
    assert r.status_code == 200
    assert auth_client.get("/api/stripe/checkout").get_json()["type"] == "trial"


def test_failed_setup_leaves_no_checkout(auth_client, fake_stripe):
    fake_stripe.intent_error = stripe.APIConnectionError("timeout")
    r = auth_client.post("/api/stripe/start-trial")
    assert r.status_code == 502
    assert r.get_json()["message"] == "Failed to initialize payment setup. Please try again."
    assert auth_client.get("/api/stripe/checkout").get_json() == {"type": None}


def test_failed_switch_forgets_previous_trial(auth_client, fake_stripe):
    auth_client.post("/api/stripe/start-trial")
    fake_stripe.intent_error = stripe.CardError("declined", "card", "card_declined")
    assert auth_client.post("/api/stripe/create-payment-intent").status_code == 502
    assert auth_client.get("/api/stripe/checkout").get_json() == {"type": None}

    # retry from the empty state is allowed
    fake_stripe.intent_error = None
    assert auth_client.post("/api/stripe/create-payment-intent").status_code == 200


def test_customer_lookup_outage_is_a_setup_error(auth_client, user, fake_stripe):
    user.stripe_customer_id = "cus_existing"
    db.session.commit()
    fake_stripe.retrieve_error = stripe.AuthenticationError("bad key")

    r = auth_client.post("/api/stripe/start-trial")
    assert r.status_code == 502
    assert fake_stripe.named("Customer.create") == []
    assert db.session.get(User, user.id).stripe_customer_id == "cus_existing"


# ---- recurring subscription ------------------------------------------------

def test_create_subscription_mirrors_status(auth_client, user, fake_stripe):
    r = auth_client.post("/api/stripe/create-subscription", json={"paymentMethodId": "pm_card"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["status"] == "active"
    assert body["clientSecret"] == f"pi_for_{body['subscriptionId']}_secret"

    u = db.session.get(User, user.id)
    assert u.stripe_subscription_id == body["subscriptionId"]
    assert u.subscription_plan == "pro"


def test_create_subscription_needs_price(app, auth_client, fake_stripe):
    app.config["STRIPE_PRICE_ID"] = ""
    r = auth_client.post("/api/stripe/create-subscription")
    assert r.status_code == 503
    assert fake_stripe.calls == []


@pytest.mark.parametrize("payload", [["pm_card"], {"paymentMethodId": 5}, {"paymentMethodId": {"id": "pm"}}])
def test_create_subscription_rejects_malformed_body(auth_client, user, fake_stripe, payload):
    r = auth_client.post("/api/stripe/create-subscription", json=payload)
    assert r.status_code == 400
    assert fake_stripe.calls == []
    assert db.session.get(User, user.id).stripe_subscription_id is None


def test_subscription_lookup_and_cancel(auth_client, user, fake_stripe):
    assert auth_client.get("/api/stripe/subscription").status_code == 404

    sub_id = auth_client.post("/api/stripe/create-subscription").get_json()["subscriptionId"]
    assert auth_client.get("/api/stripe/subscription").get_json()["status"] == "active"

    r = auth_client.post("/api/stripe/subscription/cancel")
    assert r.get_json() == {"subscriptionId": sub_id, "status": "canceled"}
    u = db.session.get(User, user.id)
    assert u.subscription_plan == "free"
    assert u.subscription_status == "canceled"


def test_publishable_key(client):
    assert client.get("/api/stripe/config").get_json() == {"publishableKey": "pk_test_123"}
