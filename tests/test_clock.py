from datetime import date, datetime, timezone

import pytest

from app.services.clock import Clock, FixedClock, to_day
from app.services.errors import InvalidInput


@pytest.mark.parametrize(
    "value",
    [
        date(2024, 1, 2),
        datetime(2024, 1, 2, 23, 59),
        "2024-01-02",
        "2024-01-02T08:30:00Z",
        "Tue Jan 02 2024",
    ],
)
def test_to_day_accepts_known_shapes(value):
    assert to_day(value) == date(2024, 1, 2)


def test_to_day_converts_aware_datetimes():
    clock = Clock("America/New_York")
    # 03:00 UTC is still the previous evening in New York
    assert clock.to_day(datetime(2024, 1, 2, 3, 0, tzinfo=timezone.utc)) == date(2024, 1, 1)


@pytest.mark.parametrize("value", ["", "02/01/2024", 42])
def test_to_day_rejects_garbage(value):
    with pytest.raises(InvalidInput):
        to_day(value)


def test_unknown_timezone():
    with pytest.raises(InvalidInput):
        Clock("Mars/Olympus_Mons")


def test_fixed_clock_and_next_reset():
    clock = FixedClock("2024-01-02", "UTC")
    assert clock.today() == date(2024, 1, 2)
    reset = clock.next_reset()
    assert reset == datetime(2024, 1, 3, tzinfo=clock.tz)


@pytest.mark.parametrize("value", ["2024-01-01garbage", "2024-01-01 xx", "2024-13-01"])
def test_to_day_rejects_trailing_junk(value):
    with pytest.raises(InvalidInput):
        to_day(value)
