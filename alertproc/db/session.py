"""Database engine setup.

For test runs (ENV=test) the engine is a shared-cache in-memory SQLite database
so logic tests do not need a PostgreSQL driver. ``tests/conftest.py`` rebinds
``SessionLocal`` to its own engine.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from alertproc.core.config import settings

raw_url = settings.DATABASE_URL or "sqlite:///./storage/dev.db"

if settings.ENV.lower() == "test" and raw_url.startswith("sqlite:///:memory:"):
    raw_url = "sqlite:///file:alertproc_test?mode=memory&cache=shared&uri=true"
    engine = create_engine(raw_url, future=True)
elif raw_url.startswith("postgresql"):
    # Pool size is shared between API processes and the retention workers.
    engine = create_engine(
        raw_url,
        future=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
    )
else:
    engine = create_engine(raw_url, future=True)

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
