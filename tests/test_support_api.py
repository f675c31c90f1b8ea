import uuid

import pytest

from app import dependencies
from tests.utils.auth import api_headers, register_user


@pytest.fixture
def admin(client, monkeypatch):
    email = f"Admin-{uuid.uuid4().hex[:8]}@ChartDesk.example"
    user = register_user(client, email=email)
    monkeypatch.setattr(
        dependencies.settings, "admin_emails", f"ops@chartdesk.example, {email.lower()}"
    )
    return user


def test_anonymous_ticket(client):
    resp = client.post(
        "/v1/support",
        headers=api_headers(),
        json={
            "email": "guest@example.com",
            "reason": "Technical Issue",
            "subject": "URGENT: cannot log in",
            "message": "The login button does nothing.",
        },
    )
    assert resp.status_code == 200
    ticket = resp.json()["ticket"]
    assert ticket["priority"] == "urgent"
    assert ticket["status"] == "open"


def test_ticket_missing_fields(client):
    resp = client.post(
        "/v1/support",
        headers=api_headers(),
        json={"email": "guest@example.com", "reason": "Billing"},
    )
    assert resp.status_code == 400
    assert "Missing required fields" in resp.json()["detail"]["message"]


def test_admin_lists_and_updates(client, admin):
    user = register_user(client)
    created = client.post(
        "/v1/support",
        headers=api_headers(user["id"]),
        json={
            "email": user["email"],
            "reason": "Feature Request",
            "subject": "Export to CSV",
            "message": "Please.",
        },
    ).json()["ticket"]
    assert created["priority"] == "low"

    headers = api_headers(admin["id"])
    resp = client.get("/v1/support?status=open", headers=headers)
    assert resp.status_code == 200
    ids = [t["id"] for t in resp.json()["tickets"]]
    assert created["id"] in ids

    resp = client.patch(
        f"/v1/support/{created['id']}", headers=headers, json={"status": "closed"}
    )
    assert resp.status_code == 200
    assert resp.json()["ticket"]["status"] == "closed"
    assert resp.json()["ticket"]["priority"] == "low"

    resp = client.patch(
        f"/v1/support/{created['id']}", headers=headers, json={"status": "done"}
    )
    assert resp.status_code == 400
    resp = client.patch("/v1/support/987654", headers=headers, json={"status": "open"})
    assert resp.status_code == 404


def test_non_admin_forbidden(client, admin):
    user = register_user(client)
    resp = client.get("/v1/support", headers=api_headers(user["id"]))
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "FORBIDDEN"


def test_ticket_from_unknown_principal_is_stored_anonymously(client, admin):
    resp = client.post(
        "/v1/support",
        headers=api_headers("no-such-user"),
        json={
            "email": "stranger@example.com",
            "reason": "Account Problem",
            "subject": "lost access",
            "message": "My account vanished.",
        },
    )
    assert resp.status_code == 200
    ticket_id = resp.json()["ticket"]["id"]

    listing = client.get("/v1/support", headers=api_headers(admin["id"])).json()
    stored = next(t for t in listing["tickets"] if t["id"] == ticket_id)
    assert stored["user_id"] is None
    assert stored["priority"] == "high"
