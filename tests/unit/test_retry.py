import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.errors import ConflictRetryExhausted, InvalidAmount
from app.services.retry import calculate_delay, run_transaction


class FakeSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def test_delay_grows_and_is_capped():
    assert calculate_delay(1, 0.1, 1.0, jitter=False) == pytest.approx(0.1)
    assert calculate_delay(3, 0.1, 1.0, jitter=False) == pytest.approx(0.4)
    assert calculate_delay(10, 0.1, 1.0, jitter=False) == pytest.approx(1.0)


def test_jitter_stays_within_half_to_full_delay():
    for _ in range(50):
        d = calculate_delay(2, 0.1, 1.0)
        assert 0.1 <= d <= 0.2


async def test_success_commits_and_returns_events():
    db = FakeSession()

    async def work(events):
        events.append("evt")
        return 42

    result, events = await run_transaction(db, "op", work)
    assert result == 42
    assert events == ["evt"]
    assert db.commits == 1


async def test_conflict_is_retried_with_fresh_event_list():
    db = FakeSession()
    calls = []

    async def work(events):
        calls.append(list(events))
        events.append(len(calls))
        if len(calls) < 3:
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        return "ok"

    result, events = await run_transaction(db, "op", work, max_attempts=4)
    assert result == "ok"
    assert events == [3]
    assert calls == [[], [], []]
    assert db.rollbacks == 2
    assert db.commits == 1


async def test_exhaustion_raises_typed_error():
    db = FakeSession()

    async def work(events):
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(ConflictRetryExhausted) as exc:
        await run_transaction(db, "op", work, max_attempts=3)
    assert exc.value.status_code == 503
    assert db.rollbacks == 3
    assert db.commits == 0


async def test_domain_error_is_not_retried():
    db = FakeSession()
    calls = 0

    async def work(events):
        nonlocal calls
        calls += 1
        raise InvalidAmount(0)

    with pytest.raises(InvalidAmount):
        await run_transaction(db, "op", work)
    assert calls == 1
    assert db.rollbacks == 1
