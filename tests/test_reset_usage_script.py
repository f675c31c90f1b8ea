import uuid
from datetime import date

import pytest

from app import db as db_module
from app.models import User
from scripts.reset_usage import main


def _make_user(used: int, day: date) -> str:
    with db_module.SessionLocal() as db:
        user = User(
            email=f"cli-{uuid.uuid4().hex[:10]}@example.com",
            analyses_used=used,
            last_reset_date=day,
        )
        db.add(user)
        db.commit()
        return user.id


def _used(user_id: str) -> int:
    with db_module.SessionLocal() as db:
        return db.get(User, user_id).analyses_used


def test_reset_single_user(capsys):
    uid = _make_user(3, date(2031, 1, 1))
    assert main(["--user-id", uid, "--day", "2031-01-01"]) == 0
    assert capsys.readouterr().out.strip() == uid
    assert _used(uid) == 0


def test_reset_stale_counters(capsys):
    stale = _make_user(2, date(2031, 1, 1))
    fresh = _make_user(2, date(2031, 1, 2))
    assert main(["--stale", "--day", "2031-01-02"]) == 0
    assert int(capsys.readouterr().out.strip()) >= 1
    assert _used(stale) == 0
    assert _used(fresh) == 2


def test_unknown_user_exit_code():
    assert main(["--user-id", "nope"]) == 1


def test_invalid_day_is_rejected(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--stale", "--day", "2031-02-30"])
    assert exc.value.code == 2
    assert "--day" in capsys.readouterr().err
