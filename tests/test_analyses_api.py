import pytest

from app.services import quota
from app.services.clock import FixedClock
from tests.utils.auth import api_headers, register_user

MODEL_OUTPUT = """Here is the read-out:
{"pattern": "Bull Flag", "confidence": "High", "timeframe": "4H",
 "trend": "Bullish", "entryPoint": "$101.5", "stopLoss": 97,
 "target": "110", "riskReward": "1:2", "explanation": "Tight consolidation."}
"""


@pytest.fixture
def pinned_day(monkeypatch):
    clock = FixedClock("2024-06-03")
    monkeypatch.setattr(quota.usage_store, "clock", clock)
    return clock


def _analysis(name="chart.png", **extra):
    return {"image_name": name, "trading_style": "swing", **extra}


def test_create_analysis_parses_model_output(client, pinned_day):
    user = register_user(client)
    resp = client.post(
        "/v1/analyses",
        headers=api_headers(user["id"]),
        json=_analysis(full_analysis=MODEL_OUTPUT, image_size=2048),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    analysis = body["analysis"]
    assert analysis["pattern"] == "Bull Flag"
    assert analysis["entry_point"] == 101.5
    assert analysis["stop_loss"] == 97.0
    assert analysis["risk_reward"] == "1:2"
    assert body["usage"] == {
        "remaining": 2,
        "analyses_used": 1,
        "is_premium": False,
        "reason": "within_limit",
    }


def test_free_user_denied_after_three(client, pinned_day):
    user = register_user(client)
    headers = api_headers(user["id"])
    for i in range(3):
        resp = client.post("/v1/analyses", headers=headers, json=_analysis(f"c{i}.png"))
        assert resp.status_code == 200
        assert resp.json()["usage"]["analyses_used"] == i + 1

    resp = client.post("/v1/analyses", headers=headers, json=_analysis("c4.png"))
    assert resp.status_code == 402
    detail = resp.json()["detail"]
    assert detail["code"] == "USAGE_LIMIT_EXCEEDED"
    assert detail["daily_limit"] == 3
    assert detail["remaining"] == 0
    assert detail["reset_at"].startswith("2024-06-04T00:00:00")

    listing = client.get("/v1/analyses", headers=headers).json()
    assert listing["pagination"]["total"] == 3


def test_new_day_allows_again(client, monkeypatch, pinned_day):
    user = register_user(client)
    headers = api_headers(user["id"])
    for i in range(3):
        client.post("/v1/analyses", headers=headers, json=_analysis(f"d{i}.png"))

    monkeypatch.setattr(quota.usage_store, "clock", FixedClock("2024-06-04"))
    resp = client.post("/v1/analyses", headers=headers, json=_analysis("next.png"))
    assert resp.status_code == 200
    assert resp.json()["usage"]["analyses_used"] == 1
    assert resp.json()["usage"]["remaining"] == 2


def test_premium_user_not_limited(client, pinned_day):
    user = register_user(client)
    quota.usage_store.set_premium(user["id"], True)
    headers = api_headers(user["id"])
    for i in range(5):
        resp = client.post("/v1/analyses", headers=headers, json=_analysis(f"p{i}.png"))
        assert resp.status_code == 200
    usage = resp.json()["usage"]
    assert usage["reason"] == "premium"
    assert usage["remaining"] == 999
    assert usage["analyses_used"] == 5


def test_validation_errors(client, pinned_day):
    user = register_user(client)
    headers = api_headers(user["id"])
    assert client.post("/v1/analyses", headers=headers, json={}).status_code == 400
    resp = client.post(
        "/v1/analyses", headers=headers, json=_analysis(trading_style="crypto-moon")
    )
    assert resp.status_code == 400
    resp = client.post(
        "/v1/analyses", headers=headers, json=_analysis(image_size=50 * 1024 * 1024)
    )
    assert resp.status_code == 400
    # rejected requests are not counted
    usage = client.get("/v1/users/me/usage", headers=headers).json()
    assert usage["analyses_used"] == 0


def test_unknown_user_cannot_analyze(client, pinned_day):
    resp = client.post("/v1/analyses", headers=api_headers("ghost"), json=_analysis())
    assert resp.status_code == 404


def test_list_filters_by_style(client, pinned_day):
    user = register_user(client)
    quota.usage_store.set_premium(user["id"], True)
    headers = api_headers(user["id"])
    client.post("/v1/analyses", headers=headers, json=_analysis("a.png"))
    client.post(
        "/v1/analyses", headers=headers, json=_analysis("b.png", trading_style="day")
    )

    swing = client.get("/v1/analyses?trading_style=swing", headers=headers).json()
    assert [a["image_name"] for a in swing["analyses"]] == ["a.png"]
    everything = client.get("/v1/analyses?trading_style=all", headers=headers).json()
    assert everything["pagination"]["total"] == 2
