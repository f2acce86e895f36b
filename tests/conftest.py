import re
from types import SimpleNamespace

import pytest
import stripe

from layofftracker import create_app, db
from layofftracker.models import User

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "WTF_CSRF_ENABLED": False,
    "RATELIMIT_ENABLED": False,
    "SESSION_COOKIE_SECURE": False,
    "BASE_URL": "http://localhost",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_PUBLISHABLE_KEY": "pk_test_123",
    "STRIPE_PRICE_ID": "price_pro",
    "SUBSCRIPTION_AMOUNT": 19.00,
    # no real mail transport in tests
    "SENDGRID_API_KEY": "",
    "GMAIL_USER": "",
    "SMTP_HOST": "",
    "RESEND_API_KEY": "",
    "SENTRY_DSN": "",
}


@pytest.fixture()
def make_app(tmp_path):
    apps = []

    def _make(**overrides):
        cfg = dict(TEST_CONFIG, APP_ERROR_LOG=str(tmp_path / "app.log"))
        cfg.update(overrides)
        app = create_app(cfg)
        ctx = app.app_context()
        ctx.push()
        db.create_all()
        apps.append(ctx)
        return app

    yield _make

    for ctx in reversed(apps):
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def user(app):
    u = User(email="pat@example.com", first_name="Pat", last_name="Doe")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture()
def auth_client(client, user):
    with client.session_transaction() as sess:
        sess["_user_id"] = user.id
        sess["_fresh"] = True
    return client


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeMailer:
    """Stands in for the app's EmailService; records magic links instead of sending."""

    provider = "fake"

    def __init__(self, ok=True):
        self.ok = ok
        self.links = []

    def send_magic_link(self, email, url):
        self.links.append((email, url))
        return self.ok

    @property
    def last_token(self):
        _, url = self.links[-1]
        m = re.search(r"token=([^&]+)", url)
        return m.group(1) if m else None


@pytest.fixture()
def mailer(app):
    fake = FakeMailer()
    app.extensions["email_service"] = fake
    return fake


class FakeStripe:
    """Records Stripe SDK calls and returns SimpleNamespace objects."""

    def __init__(self):
        self.calls = []
        self.customers = {}
        self.retrieve_error = None
        self.intent_error = None
        self._n = 0

    def _next(self, prefix):
        self._n += 1
        return f"{prefix}_{self._n}"

    # Customer
    def customer_retrieve(self, customer_id, **kw):
        self.calls.append(("Customer.retrieve", customer_id))
        if self.retrieve_error is not None:
            raise self.retrieve_error
        if customer_id not in self.customers:
            raise stripe.InvalidRequestError(
                f"No such customer: '{customer_id}'", "id", code="resource_missing", http_status=404
            )
        return self.customers[customer_id]

    def customer_create(self, **params):
        self.calls.append(("Customer.create", params))
        cid = self._next("cus")
        self.customers[cid] = SimpleNamespace(id=cid, deleted=False, **params)
        return self.customers[cid]

    # Intents
    def setup_intent_create(self, **params):
        self.calls.append(("SetupIntent.create", params))
        if self.intent_error is not None:
            raise self.intent_error
        sid = self._next("seti")
        return SimpleNamespace(id=sid, client_secret=f"{sid}_secret")

    def payment_intent_create(self, **params):
        self.calls.append(("PaymentIntent.create", params))
        if self.intent_error is not None:
            raise self.intent_error
        pid = self._next("pi")
        return SimpleNamespace(id=pid, client_secret=f"{pid}_secret")

    # Subscriptions
    def _subscription(self, sid, status):
        pi = SimpleNamespace(id=f"pi_for_{sid}", client_secret=f"pi_for_{sid}_secret")
        return SimpleNamespace(id=sid, status=status, latest_invoice=SimpleNamespace(payment_intent=pi))

    def subscription_create(self, **params):
        self.calls.append(("Subscription.create", params))
        status = "active" if params.get("default_payment_method") else "incomplete"
        return self._subscription(self._next("sub"), status)

    def subscription_retrieve(self, sid, **kw):
        self.calls.append(("Subscription.retrieve", sid))
        return self._subscription(sid, "active")

    def subscription_cancel(self, sid, **kw):
        self.calls.append(("Subscription.cancel", sid))
        return SimpleNamespace(id=sid, status="canceled", latest_invoice=None)

    def named(self, name):
        return [c[1] for c in self.calls if c[0] == name]


@pytest.fixture()
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe.Customer, "retrieve", fake.customer_retrieve)
    monkeypatch.setattr(stripe.Customer, "create", fake.customer_create)
    monkeypatch.setattr(stripe.SetupIntent, "create", fake.setup_intent_create)
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake.payment_intent_create)
    monkeypatch.setattr(stripe.Subscription, "create", fake.subscription_create)
    monkeypatch.setattr(stripe.Subscription, "retrieve", fake.subscription_retrieve)
    monkeypatch.setattr(stripe.Subscription, "cancel", fake.subscription_cancel)
    return fake
