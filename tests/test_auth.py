import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import FakeEndpoint, auth_headers, make_settings, register
from core.webhook import EventWebhook
from main import app
from recovery.deps import get_event_webhook
from models.audit_log import AuditLog
from models.user import User


def test_first_account_is_admin_and_later_ones_are_clients(client):
    first = register(client, email="first@example.com")
    second = register(client, email="second@example.com")

    assert first["user"]["role"] == "admin"
    assert second["user"]["role"] == "client"
    assert first["token_type"] == "bearer"


def test_register_never_returns_secrets(client):
    user = register(client)["user"]

    assert "password" not in user
    assert "reset_token" not in user
    assert user["status"] == "active"


def test_register_rejects_duplicate_email(client):
    register(client)
    resp = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "other-pass", "name": "A2"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Email already registered"}


def test_register_rejects_duplicate_external_id(client):
    register(client, email="a@example.com", external_id="wa-1")
    resp = client.post(
        "/api/auth/register",
        json={"email": "b@example.com", "password": "other-pass", "name": "B", "external_id": "wa-1"},
    )
    assert resp.status_code == 400


def test_register_accepts_camel_case_external_id(client, db_session):
    session = register(client, externalId="wa-77")

    assert session["user"]["external_id"] == "wa-77"
    assert db_session.query(User).filter(User.email == "alice@example.com").one().external_id == "wa-77"


def test_blank_external_ids_do_not_collide(client, db_session):
    register(client, email="a@example.com", external_id="")
    register(client, email="b@example.com", external_id="  ")

    assert db_session.query(User).filter(User.external_id.is_(None)).count() == 2


def test_register_validates_body(client):
    resp = client.post("/api/auth/register", json={"email": "bad", "password": "123", "name": ""})

    assert resp.status_code == 400
    assert "error" in resp.json()


def test_unconfigured_event_webhook_stays_silent(client, events):
    register(client)
    assert events.requests == []


def _use_event_webhook(endpoint, url="https://hooks.nexus.test/events"):
    webhook = EventWebhook(
        make_settings(global_webhook_url=url, global_api_key="shared"),
        httpx.Client(transport=httpx.MockTransport(endpoint)),
    )
    app.dependency_overrides[get_event_webhook] = lambda: webhook
    return webhook


def test_register_event_is_posted_when_configured(client, events):
    _use_event_webhook(events)

    register(client)

    [request] = events.requests
    body = json.loads(request.content)
    assert body["event"] == "user.registered"
    assert body["data"]["email"] == "alice@example.com"
    assert "timestamp" in body
    assert request.headers["X-API-Key"] == "shared"


def test_password_reset_event_is_posted(client, db_session, events):
    _use_event_webhook(events)
    register(client)
    user = db_session.query(User).filter(User.email == "alice@example.com").one()
    user.set_reset_token("c" * 64, datetime.now(timezone.utc) + timedelta(hours=1))
    db_session.commit()

    client.post("/api/auth/reset-password", json={"token": "c" * 64, "password": "brand-new-pass"})

    body = json.loads(events.requests[-1].content)
    assert body["event"] == "password.reset"
    assert body["data"] == {"id": user.id, "email": "alice@example.com"}


@pytest.mark.parametrize(
    "endpoint",
    [FakeEndpoint(status_code=500), FakeEndpoint(exc=httpx.ConnectError("connection refused"))],
    ids=["server-error", "unreachable"],
)
def test_failing_event_webhook_does_not_affect_responses(client, db_session, endpoint):
    _use_event_webhook(endpoint)

    session = register(client)
    assert session["user"]["email"] == "alice@example.com"

    user = db_session.query(User).filter(User.email == "alice@example.com").one()
    user.set_reset_token("d" * 64, datetime.now(timezone.utc) + timedelta(hours=1))
    db_session.commit()
    resp = client.post("/api/auth/reset-password", json={"token": "d" * 64, "password": "brand-new-pass"})

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert len(endpoint.requests) == 2


def test_event_webhook_with_malformed_url_reports_failure(events):
    webhook = EventWebhook(
        make_settings(global_webhook_url="http://hooks.nexus.test:abc/events", global_api_key="shared"),
        httpx.Client(transport=httpx.MockTransport(events)),
    )

    result = webhook.send("user.created", {"id": "1"})

    assert result.ok is False
    assert events.requests == []


def test_login_returns_token(client, db_session):
    register(client)

    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})

    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "alice@example.com"
    assert db_session.query(AuditLog).filter(AuditLog.action == "user_login").count() == 1


def test_login_failures_are_indistinguishable(client):
    register(client)

    wrong_password = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
    no_user = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope-nope"})

    assert wrong_password.status_code == no_user.status_code == 401
    assert wrong_password.json() == no_user.json() == {"error": "Invalid email or password"}


def test_inactive_user_cannot_log_in(client, db_session):
    register(client)
    user = db_session.query(User).filter(User.email == "alice@example.com").one()
    user.status = "inactive"
    db_session.commit()

    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
    assert resp.status_code == 401


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_me_returns_profile(client):
    session = register(client, celular="+5511988887777")

    resp = client.get("/api/auth/me", headers=auth_headers(session))

    assert resp.status_code == 200
    assert resp.json()["user"]["celular"] == "+5511988887777"


def test_logout_is_audited(client, db_session):
    session = register(client)

    resp = client.post("/api/auth/logout", headers=auth_headers(session))

    assert resp.json() == {"success": True}
    assert db_session.query(AuditLog).filter(AuditLog.action == "user_logout").count() == 1


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
