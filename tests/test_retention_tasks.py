"""Celery retention tasks: single-flight guard around the retention passes."""
import pytest
from redis.exceptions import LockNotOwnedError

from alertproc.core.locks import single_flight
from alertproc.db import redis_client
from alertproc.db.session import SessionLocal
from alertproc.models.alert_models import Alert
from alertproc.services.alert_service import AlertService
from alertproc.services.retention_service import RetentionService
from alertproc.workers.tasks import auto_close_alerts, auto_delete_alerts
from alertproc.workers.tasks import retention_tasks


class FakeLock:
    def __init__(self, owner: "FakeRedis", name: str):
        self.owner = owner
        self.name = name

    def acquire(self, blocking=False):
        if self.name in self.owner.held:
            return False
        self.owner.held.add(self.name)
        return True

    def extend(self, additional_time, replace_ttl=False):
        if self.name not in self.owner.held:
            raise LockNotOwnedError("lock expired")
        self.owner.extended.append(self.name)

    def release(self):
        self.owner.held.discard(self.name)
        self.owner.released.append(self.name)


class FakeRedis:
    """Just enough of ``redis.Redis.lock`` for the single-flight guard."""

    def __init__(self):
        self.held: set[str] = set()
        self.released: list[str] = []
        self.extended: list[str] = []

    def lock(self, name, timeout=None, blocking=True):
        return FakeLock(self, name)


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "get_redis_client", lambda: fake)
    return fake


@pytest.fixture
def retention(monkeypatch, rules, clock):
    svc = RetentionService(rules, delete_after_minutes=5, clock=clock)
    monkeypatch.setattr(retention_tasks, "build_retention_service", lambda: svc)
    return svc


def test_auto_close_task_runs_and_releases_lock(fake_redis, retention, db_session, rules, publisher, clock):
    engine = AlertService(db_session, rules=rules, publisher=publisher, clock=clock)
    engine.submit({"source_type": "overspeed", "driver_id": "d1"})
    clock.advance(minutes=31)

    result = auto_close_alerts()

    assert result == {"task": "auto_close", "candidates": 1, "processed": 1, "failed": 0}
    assert fake_redis.held == set()
    assert fake_redis.released == ["alertproc:lock:auto_close"]
    assert fake_redis.extended == ["alertproc:lock:auto_close"]


def test_tick_is_skipped_while_previous_run_holds_lock(fake_redis, retention):
    fake_redis.held.add("alertproc:lock:auto_delete")

    result = auto_delete_alerts()

    assert result == {"task": "auto_delete", "skipped": True}
    assert fake_redis.released == []


def test_workers_lock_independently(fake_redis, retention):
    fake_redis.held.add("alertproc:lock:auto_close")

    result = auto_delete_alerts()

    assert result.get("skipped") is None
    assert result["task"] == "auto_delete"


def test_scan_failure_aborts_tick_and_releases_lock(fake_redis, retention, monkeypatch):
    def broken(self, heartbeat=None):
        raise ConnectionError("store unreachable")

    monkeypatch.setattr(RetentionService, "auto_close", broken)

    with pytest.raises(ConnectionError):
        auto_close_alerts()
    assert fake_redis.held == set()


def test_single_flight_yields_none_while_held():
    fake = FakeRedis()
    with single_flight(fake, "auto_close", timeout=60) as first:
        with single_flight(fake, "auto_close", timeout=60) as second:
            assert first is not None
            assert second is None
    assert fake.held == set()


def test_lost_lock_stops_tick_before_next_alert(fake_redis, retention, db_session, rules, publisher, clock, monkeypatch):
    engine = AlertService(db_session, rules=rules, publisher=publisher, clock=clock)
    ids = [engine.submit({"source_type": "overspeed", "driver_id": f"d{i}"}).alert_id for i in range(2)]
    clock.advance(minutes=31)

    original = RetentionService._close_one

    def close_then_lapse(self, alert_id, source_type):
        closed = original(self, alert_id, source_type)
        fake_redis.held.clear()
        return closed

    monkeypatch.setattr(RetentionService, "_close_one", close_then_lapse)

    with pytest.raises(LockNotOwnedError):
        auto_close_alerts()

    with SessionLocal() as s:
        statuses = sorted(s.get(Alert, alert_id).status for alert_id in ids)
    assert statuses == ["AUTO_CLOSED", "OPEN"]
