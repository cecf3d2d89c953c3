from datetime import datetime, timezone

import pytest

from conftest import auth_headers, register
from core.config import settings


def _open(client, headers, **fields):
    body = {"client_name": "Maria Silva", "channel": "whatsapp", "priority": "high", "subject": "Order status"}
    body.update(fields)
    resp = client.post("/api/conversations", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_requires_authentication(client):
    assert client.get("/api/conversations").status_code == 401


def test_protocols_are_sequential_per_year(client, admin_headers):
    first = _open(client, admin_headers)
    second = _open(client, admin_headers, client_name="Joao")

    year = datetime.now(timezone.utc).year
    assert first["protocol"] == f"ATD-{year}-000001"
    assert second["protocol"] == f"ATD-{year}-000002"
    assert first["status"] == "open"


def test_list_filters(client, admin_headers):
    _open(client, admin_headers, client_name="Maria", channel="whatsapp")
    _open(client, admin_headers, client_name="Joao", channel="web", subject="Billing")
    closed = _open(client, admin_headers, client_name="Ana", channel="telegram")
    client.put(f"/api/conversations/{closed['id']}", json={"status": "closed"}, headers=admin_headers)

    def names(**params):
        resp = client.get("/api/conversations", params=params, headers=admin_headers)
        return {c["client_name"] for c in resp.json()["conversations"]}

    assert names() == {"Maria", "Joao", "Ana"}
    assert names(status="open") == {"Maria", "Joao"}
    assert names(channel="web") == {"Joao"}
    assert names(search="billing") == {"Joao"}


def test_unknown_client_reference_is_rejected(client, admin_headers):
    resp = client.post(
        "/api/conversations", json={"client_name": "X", "client_id": "nope"}, headers=admin_headers
    )
    assert resp.status_code == 400


def test_close_and_reopen(client, admin_headers):
    conv = _open(client, admin_headers)

    closed = client.put(f"/api/conversations/{conv['id']}", json={"status": "closed"}, headers=admin_headers).json()
    assert closed["closed_at"] is not None

    reopened = client.put(f"/api/conversations/{conv['id']}", json={"status": "pending"}, headers=admin_headers).json()
    assert reopened["status"] == "pending"
    assert reopened["closed_at"] is None


def test_messages_from_signed_in_attendant(client, admin, admin_headers):
    conv = _open(client, admin_headers)

    resp = client.post(
        f"/api/conversations/{conv['id']}/messages", json={"content": "Hello Maria!"}, headers=admin_headers
    )

    assert resp.status_code == 201
    message = resp.json()
    assert message["sender_type"] == "attendant"
    assert message["sender_name"] == "Admin"
    assert message["sender_id"] == admin["user"]["id"]
    assert message["is_read"] is False


def test_messages_from_gateway_need_sender_name(client, monkeypatch, admin_headers):
    monkeypatch.setattr(settings, "global_api_key", "gateway-key")
    gateway = {"X-API-Key": "gateway-key"}
    conv = _open(client, gateway)

    missing = client.post(f"/api/conversations/{conv['id']}/messages", json={"content": "hi"}, headers=gateway)
    ok = client.post(
        f"/api/conversations/{conv['id']}/messages",
        json={"content": "hi", "sender_name": "Maria Silva"},
        headers=gateway,
    )

    assert missing.status_code == 400
    assert ok.status_code == 201
    assert ok.json()["sender_type"] == "client"


def test_detail_lists_messages_in_order_and_read_marks_them(client, admin_headers):
    conv = _open(client, admin_headers)
    for text in ("first", "second", "third"):
        client.post(f"/api/conversations/{conv['id']}/messages", json={"content": text}, headers=admin_headers)

    detail = client.get(f"/api/conversations/{conv['id']}", headers=admin_headers).json()
    assert [m["content"] for m in detail["messages"]] == ["first", "second", "third"]

    assert client.put(f"/api/conversations/{conv['id']}/read", headers=admin_headers).json() == {"updated": 3}
    assert client.put(f"/api/conversations/{conv['id']}/read", headers=admin_headers).json() == {"updated": 0}


def test_cannot_post_to_closed_conversation(client, admin_headers):
    conv = _open(client, admin_headers)
    client.put(f"/api/conversations/{conv['id']}", json={"status": "closed"}, headers=admin_headers)

    resp = client.post(f"/api/conversations/{conv['id']}/messages", json={"content": "late"}, headers=admin_headers)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Conversation is closed"}


def test_delete_conversation(client, admin_headers):
    conv = _open(client, admin_headers)
    client.post(f"/api/conversations/{conv['id']}/messages", json={"content": "x"}, headers=admin_headers)

    assert client.delete(f"/api/conversations/{conv['id']}", headers=admin_headers).json() == {"success": True}
    assert client.get(f"/api/conversations/{conv['id']}", headers=admin_headers).status_code == 404


@pytest.mark.parametrize("field,value", [("channel", "fax"), ("priority", "whenever")])
def test_rejects_unknown_enum_values(client, admin_headers, field, value):
    resp = client.post("/api/conversations", json={"client_name": "X", field: value}, headers=admin_headers)
    assert resp.status_code == 400


def test_clients_can_use_inbox(client, admin):
    session = register(client, email="carol@example.com", name="Carol")
    assert client.get("/api/conversations", headers=auth_headers(session)).status_code == 200
