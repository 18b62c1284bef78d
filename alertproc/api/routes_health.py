from __future__ import annotations

import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from alertproc.core.config import settings
from alertproc.db.session import get_db

router = APIRouter(tags=["health"])


def _check_db(db: Session) -> bool:
    db.execute(text("SELECT 1"))
    return True


def _check_redis() -> bool:
    try:
        from alertproc.db.redis_client import get_redis_client
        return bool(get_redis_client().ping())
    except Exception:  # noqa: BLE001
        return False


@router.get("/")
def root() -> dict[str, str]:
    return {"status": "ok", "service": settings.APP_NAME}


@router.get("/healthz")
def healthz(db: Annotated[Session, Depends(get_db)]) -> dict[str, str]:
    """Basic liveness probe (cheap)."""
    try:
        _check_db(db)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=503, detail="Database connectivity check failed") from exc
    return {"status": "ok"}


@router.get("/live")
def live() -> dict[str, str]:
    """Kubernetes-style liveness endpoint (no dependencies)."""
    return {"status": "alive"}


@router.get("/ready")
def ready(db: Annotated[Session, Depends(get_db)]) -> dict[str, object]:
    """Readiness probe: store and event bus reachable."""
    start = time.time()
    try:
        db_ok = _check_db(db)
    except Exception:  # noqa: BLE001
        db_ok = False
    redis_ok = _check_redis()
    duration_ms = int((time.time() - start) * 1000)
    body = {"db": db_ok, "redis": redis_ok, "latency_ms": duration_ms}
    if not (db_ok and redis_ok):
        raise HTTPException(status_code=503, detail=body)
    return {"status": "ready", **body}
