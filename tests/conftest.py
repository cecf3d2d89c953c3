"""
Shared fixtures.

The app runs against a private in-memory SQLite database (one per test) and
never touches the network: the recovery dispatcher and the event webhook are
replaced with instances built on ``httpx.MockTransport`` and a recording mail
transport.
"""

import os
import smtplib

# Settings are read at import time – pin a hermetic environment first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["APP_URL"] = "https://nexus.test"
for _name in (
    "SMTP_HOST",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "ACCOUNT_RECOVER_WA_ENDPOINT",
    "GLOBAL_API_KEY",
    "GLOBAL_WEBHOOK_URL",
):
    os.environ[_name] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.config import settings  # noqa: E402
from core.webhook import EventWebhook  # noqa: E402
from database import Base, get_db  # noqa: E402
from main import app  # noqa: E402
import models.user  # noqa: F401, E402
import models.audit_log  # noqa: F401, E402
import models.conversation  # noqa: F401, E402
from recovery.deps import get_dispatcher, get_event_webhook, get_token_service  # noqa: E402
from recovery.dispatcher import RecoveryDispatcher  # noqa: E402
from recovery.tokens import TokenService  # noqa: E402

SMTP_SETTINGS = {
    "smtp_host": "smtp.nexus.test",
    "smtp_username": "mailer",
    "smtp_password": "mailer-password",
}
WA_ENDPOINT = "https://wa-proxy.nexus.test/recover"


class RecordingMailTransport:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send(self, message):
        if self.fail:
            raise smtplib.SMTPException("relay refused")
        self.sent.append(message)


class FakeEndpoint:
    """``httpx.MockTransport`` handler that records every request."""

    def __init__(self, status_code: int = 200, json=None, content: bytes = None, exc: Exception = None):
        self.status_code = status_code
        self.json = json
        self.content = content
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json if self.json is not None else {})


def make_settings(**overrides):
    return settings.model_copy(update=overrides)


def make_dispatcher(endpoint: FakeEndpoint = None, mail: RecordingMailTransport = None, **overrides):
    endpoint = endpoint or FakeEndpoint()
    http = httpx.Client(transport=httpx.MockTransport(endpoint))
    return RecoveryDispatcher(make_settings(**overrides), http, mail or RecordingMailTransport())


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def events():
    return FakeEndpoint()


@pytest.fixture
def client(db_session, events):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_token_service] = lambda: TokenService(settings)
    app.dependency_overrides[get_dispatcher] = lambda: make_dispatcher()
    app.dependency_overrides[get_event_webhook] = lambda: EventWebhook(
        make_settings(), httpx.Client(transport=httpx.MockTransport(events))
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def use_dispatcher():
    """Install a dispatcher for the app; returns it for assertions."""

    def _install(endpoint: FakeEndpoint = None, mail: RecordingMailTransport = None, **overrides):
        dispatcher = make_dispatcher(endpoint, mail, **overrides)
        app.dependency_overrides[get_dispatcher] = lambda: dispatcher
        return dispatcher

    return _install


def register(client, email="alice@example.com", password="s3cret-pass", name="Alice", **extra):
    resp = client.post("/api/auth/register", json={"email": email, "password": password, "name": name, **extra})
    assert resp.status_code == 200, resp.text
    return resp.json()


def auth_headers(session: dict) -> dict:
    return {"Authorization": f"Bearer {session['access_token']}"}


@pytest.fixture
def admin(client):
    """First registered account – becomes admin."""
    return register(client, email="admin@example.com", name="Admin")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
