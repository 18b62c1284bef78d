"""
Retention Tasks.

Beat-driven auto-close and auto-delete passes. Each runs single-flight: a
tick that finds the previous run of the same task still active is skipped.
A failing scan is logged and left for the next tick; there is no retry.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from alertproc import metrics
from alertproc.core.config import settings
from alertproc.core.locks import single_flight
from alertproc.services.retention_service import (
    AUTO_CLOSE,
    AUTO_DELETE,
    RetentionResult,
    RetentionService,
    build_retention_service,
)
from alertproc.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def _run_single_flight(
    task: str,
    run: Callable[[RetentionService, Callable[[], None]], RetentionResult],
) -> dict[str, Any]:
    from alertproc.db.redis_client import get_redis_client

    timeout = settings.RETENTION_LOCK_TIMEOUT_SECONDS
    with single_flight(get_redis_client(), task, timeout=timeout) as lock:
        if lock is None:
            metrics.retention_tick_skipped(task)
            return {"task": task, "skipped": True}

        def heartbeat() -> None:
            lock.extend(timeout, replace_ttl=True)

        try:
            result = run(build_retention_service(), heartbeat)
        except Exception:
            logger.exception("[%s] Tick aborted, will retry next interval", task)
            raise
    if result.candidates:
        logger.info(
            "[%s] tick done | candidates=%s processed=%s failed=%s",
            task, result.candidates, result.processed, result.failed,
        )
    return result.as_dict()


@celery_app.task(name="retention.auto_close")
def auto_close_alerts() -> dict[str, Any]:
    """Close alerts whose source timeout has elapsed."""
    return _run_single_flight(AUTO_CLOSE, lambda svc, heartbeat: svc.auto_close(heartbeat=heartbeat))


@celery_app.task(name="retention.auto_delete")
def auto_delete_alerts() -> dict[str, Any]:
    """Delete closed alerts past the deletion grace period."""
    return _run_single_flight(AUTO_DELETE, lambda svc, heartbeat: svc.auto_delete(heartbeat=heartbeat))
