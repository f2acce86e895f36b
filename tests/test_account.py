from datetime import timedelta

import pytest

from layofftracker import db
from layofftracker.models import Notification, User, utcnow
from layofftracker.models_companies import Company, CompanySubscription


@pytest.fixture()
def companies(app):
    rows = [
        Company(name="Acme Corp", industry="Manufacturing"),
        Company(name="Globex", industry="Energy", status="monitoring"),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/user/profile"),
        ("put", "/api/user/profile"),
        ("post", "/api/user/select-company"),
        ("get", "/api/user/subscriptions"),
        ("post", "/api/subscription/update"),
        ("get", "/api/notifications"),
    ],
)
def test_account_routes_require_login(client, method, path):
    assert getattr(client, method)(path).status_code == 401


# ---- profile ---------------------------------------------------------------

def test_get_profile(auth_client, user):
    body = auth_client.get("/api/user/profile").get_json()
    assert body["email"] == "pat@example.com"
    assert body["firstName"] == "Pat"
    assert body["subscriptionPlan"] == "free"


def test_partial_profile_update(auth_client, user):
    r = auth_client.put("/api/user/profile", json={"firstName": "  Sam ", "smsNotifications": True})
    assert r.status_code == 200
    body = r.get_json()
    assert body["firstName"] == "Sam"
    assert body["lastName"] == "Doe"
    assert body["smsNotifications"] is True
    assert body["emailNotifications"] is True


def test_profile_rejects_bad_phone(auth_client, user):
    r = auth_client.put("/api/user/profile", json={"phoneNumber": "call me"})
    assert r.status_code == 400
    assert "phone_number" in r.get_json()["errors"]
    assert db.session.get(User, user.id).phone_number is None


def test_email_change_resets_verification(auth_client, user):
    user.is_email_verified = True
    db.session.commit()

    r = auth_client.put("/api/user/profile", json={"email": "Pat.New@Example.com"})
    assert r.status_code == 200
    assert r.get_json()["email"] == "pat.new@example.com"
    assert r.get_json()["isEmailVerified"] is False


def test_email_already_taken(auth_client, user):
    db.session.add(User(email="taken@example.com"))
    db.session.commit()
    r = auth_client.put("/api/user/profile", json={"email": "taken@example.com"})
    assert r.status_code == 409
    assert db.session.get(User, user.id).email == "pat@example.com"


def test_profile_scalars_are_taken_as_text(auth_client, user):
    r = auth_client.put("/api/user/profile", json={"firstName": 123, "phoneNumber": 5551234567})
    assert r.status_code == 200
    assert r.get_json()["firstName"] == "123"
    assert db.session.get(User, user.id).phone_number == "5551234567"


def test_profile_false_flag_is_false(auth_client, user):
    r = auth_client.put("/api/user/profile", json={"emailNotifications": False})
    assert r.status_code == 200
    assert r.get_json()["emailNotifications"] is False


def test_profile_rejects_nested_values(auth_client, user):
    r = auth_client.put("/api/user/profile", json={"firstName": ["x"]})
    assert r.status_code == 400
    assert "first_name" in r.get_json()["errors"]
    assert db.session.get(User, user.id).first_name == "Pat"


@pytest.mark.parametrize(
    "path,method",
    [
        ("/api/user/profile", "put"),
        ("/api/user/select-company", "post"),
        ("/api/subscription/update", "post"),
    ],
)
@pytest.mark.parametrize("payload", [["x"], "pat@example.com"])
def test_non_object_body_is_rejected(auth_client, path, method, payload):
    r = getattr(auth_client, method)(path, json=payload)
    assert r.status_code == 400
    assert r.get_json()["message"] == "Request body must be a JSON object"


def test_select_company(auth_client, user, companies):
    assert auth_client.post("/api/user/select-company", json={}).status_code == 400
    assert auth_client.post("/api/user/select-company", json={"companyId": "nope"}).status_code == 404
    assert auth_client.post("/api/user/select-company", json={"companyId": [companies[0].id]}).status_code == 400

    r = auth_client.post("/api/user/select-company", json={"companyId": companies[0].id})
    assert r.status_code == 200
    assert db.session.get(User, user.id).selected_company_id == companies[0].id


# ---- watch list ------------------------------------------------------------

def test_update_watch_list_replaces_previous(auth_client, user, companies):
    acme, globex = companies
    auth_client.post("/api/subscription/update", json={"companies": [acme.id]})
    r = auth_client.post(
        "/api/subscription/update",
        json={"companies": [globex.id], "phoneNumber": "+1 555 0100", "smsNotifications": True},
    )
    assert r.status_code == 200
    assert r.get_json()["success"] is True

    watched = auth_client.get("/api/user/subscriptions").get_json()
    assert [c["name"] for c in watched] == ["Globex"]

    u = db.session.get(User, user.id)
    assert u.phone_number == "+1 555 0100"
    assert u.sms_notifications is True


def test_watch_list_rejects_unknown_company(auth_client, user, companies):
    auth_client.post("/api/subscription/update", json={"companies": [companies[0].id]})
    r = auth_client.post("/api/subscription/update", json={"companies": [companies[1].id, "missing"]})
    assert r.status_code == 400
    assert r.get_json()["companies"] == ["missing"]
    # previous list untouched
    assert CompanySubscription.query.filter_by(user_id=user.id).count() == 1


def test_watch_list_must_be_a_list(auth_client, companies):
    r = auth_client.post("/api/subscription/update", json={"companies": companies[0].id})
    assert r.status_code == 400
    r = auth_client.post("/api/subscription/update", json={"companies": [{"id": companies[0].id}]})
    assert r.status_code == 400


def test_empty_watch_list_clears(auth_client, user, companies):
    auth_client.post("/api/subscription/update", json={"companies": [c.id for c in companies]})
    auth_client.post("/api/subscription/update", json={"companies": []})
    assert auth_client.get("/api/user/subscriptions").get_json() == []


# ---- notifications ---------------------------------------------------------

def test_notifications_newest_first_and_mark_read(auth_client, user):
    other = User(email="other@example.com")
    db.session.add(other)
    db.session.flush()
    now = utcnow()
    older = Notification(user_id=user.id, title="Old", message="m", created_at=now - timedelta(days=1))
    newer = Notification(user_id=user.id, title="New", message="m", type="warning", created_at=now)
    foreign = Notification(user_id=other.id, title="Theirs", message="m")
    db.session.add_all([older, newer, foreign])
    db.session.commit()

    body = auth_client.get("/api/notifications").get_json()
    assert [n["title"] for n in body] == ["New", "Old"]

    assert auth_client.post(f"/api/notifications/{foreign.id}/read").status_code == 404
    assert auth_client.post(f"/api/notifications/{older.id}/read").status_code == 200
    assert db.session.get(Notification, older.id).is_read is True
