from app.services import quota
from app.services.clock import FixedClock
from tests.utils.auth import api_headers, register_user


def _value(body: str, name: str) -> float:
    for line in body.splitlines():
        if line.startswith(name + " "):
            return float(line.split()[1])
    return 0.0


def test_quota_metrics(client, monkeypatch):
    monkeypatch.setattr(quota.usage_store, "clock", FixedClock("2025-02-02"))
    user = register_user(client)
    headers = api_headers(user["id"])
    before = client.get("/metrics").text

    for i in range(4):
        client.post(
            "/v1/analyses",
            headers=headers,
            json={"image_name": f"m{i}.png", "trading_style": "day"},
        )

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text
    assert _value(body, "analysis_requests_total") - _value(
        before, "analysis_requests_total"
    ) == 4
    assert _value(body, "quota_reject_total") - _value(before, "quota_reject_total") == 1


def test_support_and_billing_metrics(client):
    client.post(
        "/v1/support",
        headers=api_headers(),
        json={
            "email": "m@example.com",
            "reason": "Feature Request",
            "subject": "metrics",
            "message": "m",
        },
    )
    client.post("/v1/billing/webhook", content=b"{}")

    body = client.get("/metrics").text
    assert 'support_tickets_total{priority="low"}' in body
    assert "webhook_forbidden_total" in body
    assert "http_requests_total" in body
