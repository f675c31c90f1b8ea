from datetime import date, timedelta

import pytest

from app.services.entitlement import (
    FREE_DAILY_LIMIT,
    PREMIUM_DAILY_LIMIT,
    UNLIMITED,
    daily_limit_for,
    evaluate,
    summarize,
)
from app.services.errors import InvalidInput

TODAY = date(2024, 1, 2)
YESTERDAY = TODAY - timedelta(days=1)


def test_fresh_free_user_allowed():
    d = evaluate(False, 0, TODAY, TODAY, FREE_DAILY_LIMIT)
    assert d.allowed
    assert d.effective_used == 0
    assert d.remaining == 3
    assert not d.reset_needed


def test_free_user_at_limit_denied():
    d = evaluate(False, 3, "2024-01-02", "2024-01-02", 3)
    assert not d.allowed
    assert d.remaining == 0
    assert d.effective_used == 3


def test_stale_counter_counts_as_zero():
    d = evaluate(False, 3, "2024-01-01", "2024-01-02", 3)
    assert d.allowed
    assert d.reset_needed
    assert d.effective_used == 0
    assert d.remaining == 3


def test_missing_reset_date_is_stale():
    d = evaluate(False, 2, None, TODAY, 3)
    assert d.reset_needed
    assert d.effective_used == 0


def test_premium_always_allowed():
    d = evaluate(True, 10_000, TODAY, TODAY, PREMIUM_DAILY_LIMIT)
    assert d.allowed
    assert d.remaining == PREMIUM_DAILY_LIMIT


def test_legacy_date_string_matches_iso():
    d = evaluate(False, 2, "Tue Jan 02 2024", "2024-01-02", 3)
    assert not d.reset_needed
    assert d.effective_used == 2
    assert d.remaining == 1


@pytest.mark.parametrize("used", [0, 1, 2, 3, 4, 7])
@pytest.mark.parametrize("last", [TODAY, YESTERDAY, None])
def test_free_decision_properties(used, last):
    d = evaluate(False, used, last, TODAY, 3)
    assert 0 <= d.remaining <= 3
    assert d.allowed == (d.effective_used < 3)
    assert d.reset_needed == (last != TODAY)
    if d.reset_needed:
        assert d.effective_used == 0
    else:
        assert d.effective_used == used


def test_evaluate_is_pure():
    args = (False, 2, YESTERDAY, TODAY, 3)
    assert evaluate(*args) == evaluate(*args)


@pytest.mark.parametrize("used", [-1, None])
def test_invalid_counter_rejected(used):
    with pytest.raises(InvalidInput):
        evaluate(False, used, TODAY, TODAY, 3)


def test_negative_limit_rejected():
    with pytest.raises(InvalidInput):
        evaluate(False, 0, TODAY, TODAY, -1)


def test_unparseable_date_rejected():
    with pytest.raises(InvalidInput):
        evaluate(False, 0, "not a date", TODAY, 3)


def test_daily_limit_for_defaults():
    assert daily_limit_for(False) == 3
    assert daily_limit_for(True) == 999


def test_summarize_free_and_premium():
    free = summarize(evaluate(False, 3, TODAY, TODAY, 3), False)
    assert free["daily"] == {"used": 3, "limit": 3, "remaining": 0}
    assert "reached" in free["message"]

    premium = summarize(evaluate(True, 5, TODAY, TODAY, 999), True)
    assert premium["daily"]["limit"] == UNLIMITED
    assert premium["daily"]["remaining"] == UNLIMITED
    assert premium["message"] == "Premium - Unlimited analyses"
