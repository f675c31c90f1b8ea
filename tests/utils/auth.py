from __future__ import annotations

import uuid

from app.config import Settings


def api_headers(
    user_id: str | None = None,
    *,
    api_key: str | None = None,
    api_ver: str | None = "v1",
    forwarded_for: str | None = None,
) -> dict[str, str]:
    headers = {"X-API-Key": api_key or Settings().api_key}
    if api_ver is not None:
        headers["X-API-Ver"] = api_ver
    if user_id is not None:
        headers["X-User-ID"] = str(user_id)
    if forwarded_for is not None:
        headers["X-Forwarded-For"] = forwarded_for
    return headers


def register_user(client, email: str | None = None, name: str | None = None) -> dict:
    """Register a fresh account through the API and return its JSON."""
    payload = {"email": email or f"trader-{uuid.uuid4().hex[:10]}@example.com"}
    if name is not None:
        payload["name"] = name
    resp = client.post("/v1/users/register", headers=api_headers(), json=payload)
    assert resp.status_code == 200, resp.text
    return resp.json()["user"]
