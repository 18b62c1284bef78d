from __future__ import annotations

import datetime as dt
import os

os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from alertproc.core.config import settings  # noqa: E402
from alertproc.db import session as db_session_module  # noqa: E402
from alertproc.db.base_class import Base  # noqa: E402
from alertproc.db.session import SessionLocal  # noqa: E402
from alertproc.models import alert_models  # noqa: E402,F401
from alertproc.services.rules import RuleBook  # noqa: E402

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


test_engine = create_engine(
    TEST_DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Ensure application code uses the test engine
settings.DATABASE_URL = TEST_DATABASE_URL  # type: ignore[attr-defined]
settings.ENV = "test"  # type: ignore[attr-defined]
db_session_module.engine = test_engine  # type: ignore[assignment]
SessionLocal.configure(bind=test_engine)


TEST_RULES = {
    "overspeed": {"window_mins": 10, "escalate_if_count": 3, "auto_close_after_mins": 30},
    "feedback_negative": {"window_mins": 60, "escalate_if_count": 2},
    "compliance": {"auto_close_if": "document_valid", "auto_close_after_mins": 60},
}


class FakeClock:
    """Controllable canonical clock."""

    def __init__(self, start: dt.datetime | None = None):
        self.now = start or dt.datetime(2026, 1, 1, 12, 0, tzinfo=dt.timezone.utc)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> dt.datetime:
        self.now = self.now + dt.timedelta(**kwargs)
        return self.now


class RecordingPublisher:
    """Stands in for the Redis stream publisher; keeps what was published."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: list[tuple[str, str, dict]] = []

    def publish(self, topic: str, key: str, value: dict) -> None:
        if self.fail:
            raise ConnectionError("event bus unavailable")
        self.messages.append((topic, key, value))


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Ensure each test sees a fresh database schema."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def rules() -> RuleBook:
    return RuleBook.from_dict(TEST_RULES)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


# FastAPI TestClient fixture
from fastapi.testclient import TestClient  # noqa: E402

from alertproc.api.dependencies import get_event_publisher, get_rules  # noqa: E402
from alertproc.api.main import app  # noqa: E402


@pytest.fixture
def client(publisher, rules):
    """TestClient with the event bus and rule book swapped for test doubles."""
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_rules] = lambda: rules
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
