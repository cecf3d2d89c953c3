import io

import pytest
from openpyxl import load_workbook

from conftest import auth_headers, register
from core.config import settings
from models.audit_log import AuditLog
from users.router import EXPORT_HEADERS


def _create(client, headers, **fields):
    body = {"email": "bob@example.com", "password": "bob-pass", "name": "Bob"}
    body.update(fields)
    resp = client.post("/api/users", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(settings, "global_api_key", "integration-key")
    return "integration-key"


def test_client_role_is_forbidden(client, admin):
    session = register(client, email="carol@example.com")
    resp = client.get("/api/users", headers=auth_headers(session))
    assert resp.status_code == 403


def test_anonymous_is_unauthorized(client):
    assert client.get("/api/users").status_code == 401


def test_api_key_via_header_or_bearer(client, api_key):
    assert client.get("/api/users", headers={"X-API-Key": api_key}).status_code == 200
    assert client.get("/api/users", headers={"Authorization": f"Bearer {api_key}"}).status_code == 200
    assert client.get("/api/users", headers={"X-API-Key": "wrong"}).status_code == 401


def test_api_key_disabled_when_not_configured(client):
    assert client.get("/api/users", headers={"X-API-Key": ""}).status_code == 401


def test_create_and_get_user(client, admin_headers, db_session):
    created = _create(client, admin_headers, celular="+5511977776666", role="admin")

    assert created["role"] == "admin"
    fetched = client.get(f"/api/users/{created['id']}", headers=admin_headers).json()
    assert fetched["email"] == "bob@example.com"
    assert db_session.query(AuditLog).filter(AuditLog.action == "create_user").count() == 1


def test_create_rejects_duplicates(client, admin_headers):
    _create(client, admin_headers, external_id="wa-9")

    dup_email = client.post(
        "/api/users", json={"email": "bob@example.com", "password": "xxxxxx", "name": "B"}, headers=admin_headers
    )
    dup_ext = client.post(
        "/api/users",
        json={"email": "bob2@example.com", "password": "xxxxxx", "name": "B", "external_id": "wa-9"},
        headers=admin_headers,
    )
    assert dup_email.status_code == dup_ext.status_code == 409


def test_create_and_update_accept_camel_case_external_id(client, admin_headers):
    bob = _create(client, admin_headers, externalId="wa-10")
    assert bob["external_id"] == "wa-10"

    resp = client.put(f"/api/users/{bob['id']}", json={"externalId": "wa-11"}, headers=admin_headers)
    assert resp.json()["external_id"] == "wa-11"


def test_create_rejects_invalid_role(client, admin_headers):
    resp = client.post(
        "/api/users",
        json={"email": "x@example.com", "password": "xxxxxx", "name": "X", "role": "root"},
        headers=admin_headers,
    )
    assert resp.status_code == 400


def test_list_search_filter_and_paginate(client, admin_headers):
    _create(client, admin_headers, email="bob@example.com", name="Bob")
    _create(client, admin_headers, email="bea@example.com", name="Beatriz", role="admin")
    _create(client, admin_headers, email="zed@example.com", name="Zed", status="inactive")

    everyone = client.get("/api/users", headers=admin_headers).json()
    assert everyone["total"] == 4  # includes the admin fixture

    by_search = client.get("/api/users", params={"search": "BEA"}, headers=admin_headers).json()
    assert [u["email"] for u in by_search["users"]] == ["bea@example.com"]

    clients = client.get("/api/users", params={"role": "client"}, headers=admin_headers).json()
    assert {u["email"] for u in clients["users"]} == {"bob@example.com", "zed@example.com"}

    inactive = client.get("/api/users", params={"status": "inactive"}, headers=admin_headers).json()
    assert [u["name"] for u in inactive["users"]] == ["Zed"]

    page2 = client.get("/api/users", params={"page": 2, "page_size": 3}, headers=admin_headers).json()
    assert page2["total"] == 4
    assert page2["page"] == 2
    assert [u["name"] for u in page2["users"]] == ["Zed"]


def test_update_user_fields_and_password(client, admin_headers):
    bob = _create(client, admin_headers)

    resp = client.put(
        f"/api/users/{bob['id']}",
        json={"name": "Robert", "status": "inactive", "password": "new-bob-pass"},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    assert resp.json()["name"] == "Robert"
    assert resp.json()["status"] == "inactive"

    client.put(f"/api/users/{bob['id']}", json={"status": "active"}, headers=admin_headers)
    login = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "new-bob-pass"})
    assert login.status_code == 200


def test_update_email_conflict(client, admin_headers):
    bob = _create(client, admin_headers)
    resp = client.put(f"/api/users/{bob['id']}", json={"email": "admin@example.com"}, headers=admin_headers)
    assert resp.status_code == 409


def test_admin_cannot_demote_or_deactivate_self(client, admin, admin_headers):
    me = admin["user"]["id"]
    assert client.put(f"/api/users/{me}", json={"role": "client"}, headers=admin_headers).status_code == 400
    assert client.put(f"/api/users/{me}", json={"status": "inactive"}, headers=admin_headers).status_code == 400
    assert client.put(f"/api/users/{me}", json={"name": "Boss"}, headers=admin_headers).status_code == 200


def test_delete_user(client, admin_headers):
    bob = _create(client, admin_headers)

    assert client.delete(f"/api/users/{bob['id']}", headers=admin_headers).json() == {"success": True}
    assert client.get(f"/api/users/{bob['id']}", headers=admin_headers).status_code == 404


def test_admin_cannot_delete_self(client, admin, admin_headers):
    resp = client.delete(f"/api/users/{admin['user']['id']}", headers=admin_headers)
    assert resp.status_code == 400


def test_unknown_user_is_404(client, admin_headers):
    assert client.get("/api/users/does-not-exist", headers=admin_headers).status_code == 404
    assert client.put("/api/users/does-not-exist", json={}, headers=admin_headers).status_code == 404


def test_export_xlsx(client, admin_headers):
    _create(client, admin_headers, celular="+5511900000000")

    resp = client.get("/api/users/export", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/vnd.openxmlformats")
    ws = load_workbook(io.BytesIO(resp.content)).active
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == EXPORT_HEADERS
    assert {r[1] for r in rows[1:]} == {"admin@example.com", "bob@example.com"}


def test_audit_log_listing(client, admin_headers):
    bob = _create(client, admin_headers)
    client.delete(f"/api/users/{bob['id']}", headers=admin_headers)

    logs = client.get("/api/users/audit-logs", headers=admin_headers).json()["logs"]

    assert logs[0]["action"] == "delete_user"
    assert logs[0]["actor_email"] == "admin@example.com"
    created = client.get("/api/users/audit-logs", params={"action": "create_user"}, headers=admin_headers).json()
    assert len(created["logs"]) == 1
