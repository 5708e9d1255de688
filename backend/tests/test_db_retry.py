import pytest
from sqlalchemy.exc import OperationalError

from marketplace.core.config import settings
from marketplace.core.db_retry import backoff_delay, is_retriable, with_db_retry


class DriverError(Exception):
    def __init__(self, code: int, message: str, sqlstate: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.args = (code, message)


class RecordingSession:
    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


@pytest.fixture
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "DB_RETRY_ATTEMPTS", 3)
    monkeypatch.setattr(settings, "DB_RETRY_BASE_DELAY", 0.0)
    monkeypatch.setattr(settings, "DB_RETRY_JITTER", 0.0)


@pytest.mark.anyio
async def test_deadlocked_booking_is_retried(fast_retries):
    session = RecordingSession()
    attempts = []

    async def book():
        attempts.append(1)
        if len(attempts) == 1:
            raise OperationalError("UPDATE ad_slot", {}, DriverError(1213, "Deadlock found"))
        return True

    assert await with_db_retry(session, book) is True
    assert len(attempts) == 2
    assert session.rollbacks == 1


@pytest.mark.anyio
async def test_serialization_failure_sqlstate_is_retried(fast_retries):
    session = RecordingSession()
    attempts = []

    async def book():
        attempts.append(1)
        if len(attempts) < 3:
            raise OperationalError("UPDATE ad_slot", {}, DriverError(0, "conflict", sqlstate="40001"))
        return "ok"

    assert await with_db_retry(session, book) == "ok"
    assert session.rollbacks == 2


@pytest.mark.anyio
async def test_gives_up_after_configured_attempts(fast_retries):
    session = RecordingSession()

    async def always_deadlocks():
        raise OperationalError("UPDATE ad_slot", {}, DriverError(1205, "Lock wait timeout exceeded"))

    with pytest.raises(OperationalError):
        await with_db_retry(session, always_deadlocks)
    assert session.rollbacks == 3


@pytest.mark.anyio
async def test_nowait_lock_conflict_not_retried(fast_retries, monkeypatch):
    monkeypatch.setattr(settings, "DB_NOWAIT_LOCKS", True)
    session = RecordingSession()
    calls = {"count": 0}

    async def nowait_operation():
        calls["count"] += 1
        raise OperationalError("stmt", {}, DriverError(3572, "could not obtain lock"))

    with pytest.raises(OperationalError):
        await with_db_retry(session, nowait_operation)

    assert calls["count"] == 1
    assert session.rollbacks == 0


@pytest.mark.anyio
async def test_non_transient_errors_propagate_immediately(fast_retries):
    session = RecordingSession()

    async def broken():
        raise OperationalError("stmt", {}, DriverError(1146, "Table 'ad_slot' doesn't exist"))

    with pytest.raises(OperationalError):
        await with_db_retry(session, broken)
    assert session.rollbacks == 0


def test_backoff_doubles_per_attempt():
    assert backoff_delay(1, 0.1, 0.0) == pytest.approx(0.1)
    assert backoff_delay(3, 0.1, 0.0) == pytest.approx(0.4)
    assert 0.1 <= backoff_delay(1, 0.1, 0.05) <= 0.15


def test_deadlock_is_recognised_by_message_alone():
    exc = OperationalError("UPDATE ad_slot", {}, DriverError(0, "Deadlock detected; try restarting"))
    assert is_retriable(exc)


@pytest.mark.anyio
async def test_explicit_attempts_override_settings(fast_retries):
    session = RecordingSession()
    calls = {"count": 0}

    async def always_deadlocks():
        calls["count"] += 1
        raise OperationalError("UPDATE ad_slot", {}, DriverError(1213, "Deadlock found"))

    with pytest.raises(OperationalError):
        await with_db_retry(session, always_deadlocks, label="book_ad_slot", attempts=1)
    assert calls["count"] == 1
    assert session.rollbacks == 1
