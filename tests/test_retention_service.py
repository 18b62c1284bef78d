"""Auto-close and auto-delete passes."""
import datetime as dt

import pytest
from sqlalchemy import event, func, select

from alertproc.db import session as db_session_module
from alertproc.db.session import SessionLocal
from alertproc.models.alert_models import Alert, AlertEvent
from alertproc.services.alert_service import AlertService
from alertproc.services.retention_service import RetentionService


@pytest.fixture
def engine_service(db_session, rules, publisher, clock):
    return AlertService(db_session, rules=rules, publisher=publisher, clock=clock)


@pytest.fixture
def retention(rules, clock):
    return RetentionService(rules, delete_after_minutes=5, clock=clock)


@pytest.fixture
def fail_statement():
    """Fail every SQL statement that starts with an armed prefix."""
    engine = db_session_module.engine
    seen: list[str] = []
    prefixes: list[str] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)
        if any(statement.startswith(p) for p in prefixes):
            raise RuntimeError(f"statement failed: {statement.split('(')[0]}")

    event.listen(engine, "before_cursor_execute", before_cursor_execute)

    def arm(prefix: str) -> list[str]:
        prefixes.append(prefix)
        return seen

    yield arm
    event.remove(engine, "before_cursor_execute", before_cursor_execute)


def _load(alert_id):
    with SessionLocal() as s:
        alert = s.get(Alert, alert_id)
        events = list(
            s.scalars(select(AlertEvent).where(AlertEvent.alert_id == alert_id).order_by(AlertEvent.id))
        )
        return alert, events


def _count(model):
    with SessionLocal() as s:
        return s.scalar(select(func.count()).select_from(model))


def test_auto_close_times_out_open_and_escalated(engine_service, retention, clock):
    ids = [engine_service.submit({"source_type": "overspeed", "driver_id": "d1"}).alert_id for _ in range(3)]
    assert _load(ids[2])[0].status == "ESCALATED"

    clock.advance(minutes=30)
    result = retention.auto_close()

    assert (result.candidates, result.processed, result.failed) == (3, 3, 0)
    for alert_id in ids:
        alert, events = _load(alert_id)
        assert alert.status == "AUTO_CLOSED"
        assert alert.timestamp == clock.now
        closing = events[-1]
        assert closing.event_type == "AUTO_CLOSED"
        assert closing.new_status == "AUTO_CLOSED"
        assert closing.metadata_ == {"reason": "timeout", "src": "overspeed"}
    assert _load(ids[2])[1][-1].old_status == "ESCALATED"
    assert _load(ids[0])[1][-1].old_status == "OPEN"


def test_auto_close_leaves_young_alerts(engine_service, retention, clock):
    alert = engine_service.submit({"source_type": "overspeed", "driver_id": "d1"})

    clock.advance(minutes=29, seconds=59)
    result = retention.auto_close()

    assert result.candidates == 0
    assert _load(alert.alert_id)[0].status == "OPEN"


def test_auto_close_ignores_sources_without_timeout(engine_service, retention, clock):
    alert = engine_service.submit({"source_type": "feedback_negative", "driver_id": "d1"})
    unknown = engine_service.submit({"source_type": "geofence_exit"})

    clock.advance(days=7)
    retention.auto_close()

    assert _load(alert.alert_id)[0].status == "OPEN"
    assert _load(unknown.alert_id)[0].status == "OPEN"


def test_auto_close_is_idempotent(engine_service, retention, clock):
    engine_service.submit({"source_type": "overspeed", "driver_id": "d1"})
    engine_service.submit({"source_type": "compliance"})
    clock.advance(minutes=61)

    first = retention.auto_close()
    second = retention.auto_close()

    assert first.processed == 2
    assert (second.candidates, second.processed) == (0, 0)
    assert _count(AlertEvent) == 4


def test_auto_close_failure_is_isolated(engine_service, retention, clock, monkeypatch):
    ids = [engine_service.submit({"source_type": "overspeed", "driver_id": f"d{i}"}).alert_id for i in range(3)]
    clock.advance(minutes=31)

    original = RetentionService._close_one

    def flaky(self, alert_id, source_type):
        if alert_id == ids[1]:
            raise RuntimeError("deadlock detected")
        return original(self, alert_id, source_type)

    monkeypatch.setattr(RetentionService, "_close_one", flaky)
    result = retention.auto_close()

    assert (result.candidates, result.processed, result.failed) == (3, 2, 1)
    assert _load(ids[0])[0].status == "AUTO_CLOSED"
    assert _load(ids[1])[0].status == "OPEN"
    assert _load(ids[2])[0].status == "AUTO_CLOSED"


def test_close_one_skips_alert_closed_meanwhile(engine_service, retention, clock):
    alert = engine_service.submit({"source_type": "compliance", "metadata": {"status": "valid"}})

    assert retention._close_one(alert.alert_id, "compliance") is False
    assert len(_load(alert.alert_id)[1]) == 2


def test_auto_delete_respects_grace_period(engine_service, retention, clock):
    alert = engine_service.submit({"source_type": "compliance", "metadata": {"document_valid": True}})
    closed_at = clock.now

    clock.advance(minutes=4, seconds=59)
    early = retention.auto_delete()
    assert early.candidates == 0
    assert _load(alert.alert_id)[0] is not None

    clock.now = closed_at + dt.timedelta(minutes=5)
    due = retention.auto_delete()

    assert (due.candidates, due.processed) == (1, 1)
    assert _load(alert.alert_id) == (None, [])


def test_auto_delete_after_auto_close_uses_close_time(engine_service, retention, clock):
    alert = engine_service.submit({"source_type": "overspeed", "driver_id": "d1"})
    clock.advance(minutes=30)
    retention.auto_close()
    closed_at = clock.now

    clock.advance(minutes=4)
    assert retention.auto_delete().processed == 0

    clock.now = closed_at + dt.timedelta(minutes=5, seconds=1)
    assert retention.auto_delete().processed == 1
    assert _count(Alert) == 0
    assert _count(AlertEvent) == 0


def test_auto_delete_never_touches_active_alerts(engine_service, retention, clock):
    engine_service.submit({"source_type": "feedback_negative", "driver_id": "d1"})
    engine_service.submit({"source_type": "feedback_negative", "driver_id": "d1"})

    clock.advance(days=30)
    result = retention.auto_delete()

    assert result.candidates == 0
    assert _count(Alert) == 2


def test_auto_delete_failure_is_isolated(engine_service, retention, clock, monkeypatch):
    ids = [
        engine_service.submit({"source_type": "compliance", "metadata": {"document_valid": True}}).alert_id
        for _ in range(2)
    ]
    clock.advance(minutes=6)

    original = RetentionService._delete_one

    def flaky(self, alert_id, threshold):
        if alert_id == ids[0]:
            raise RuntimeError("lock wait timeout")
        return original(self, alert_id, threshold)

    monkeypatch.setattr(RetentionService, "_delete_one", flaky)
    result = retention.auto_delete()

    assert (result.processed, result.failed) == (1, 1)
    remaining, events = _load(ids[0])
    assert remaining is not None
    assert len(events) == 2
    assert _load(ids[1]) == (None, [])


def test_auto_close_rolls_back_status_when_event_insert_fails(engine_service, retention, clock, fail_statement):
    alert = engine_service.submit({"source_type": "overspeed", "driver_id": "d1"})
    created_at = alert.timestamp
    clock.advance(minutes=31)

    seen = fail_statement("INSERT INTO alert_events")
    result = retention.auto_close()

    assert (result.candidates, result.processed, result.failed) == (1, 0, 1)
    assert any(s.startswith("UPDATE alerts") for s in seen)
    stored, events = _load(alert.alert_id)
    assert stored.status == "OPEN"
    assert stored.timestamp == created_at
    assert [e.event_type for e in events] == ["CREATED"]


def test_auto_delete_restores_events_when_alert_delete_fails(engine_service, retention, clock, fail_statement):
    alert = engine_service.submit({"source_type": "compliance", "metadata": {"document_valid": True}})
    clock.advance(minutes=6)

    seen = fail_statement("DELETE FROM alerts ")
    result = retention.auto_delete()

    assert (result.candidates, result.processed, result.failed) == (1, 0, 1)
    assert any(s.startswith("DELETE FROM alert_events") for s in seen)
    stored, events = _load(alert.alert_id)
    assert stored is not None
    assert stored.status == "AUTO_CLOSED"
    assert [e.event_type for e in events] == ["CREATED", "AUTO_CLOSED"]
