from __future__ import annotations

from datetime import timedelta

from celery import Celery

from alertproc.core.config import settings
from alertproc.core.redis_utils import get_ssl_options, prepare_redis_url


def _create_celery() -> Celery:
    redis_url = prepare_redis_url(settings.REDIS_URL)
    ssl_options = get_ssl_options()
    celery = Celery(
        "alertproc",
        broker=redis_url,
        backend=redis_url,
        include=["alertproc.workers.tasks"],
    )
    celery.conf.update(
        task_default_queue="retention",
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_ignore_result=True,
        worker_prefetch_multiplier=1,
        task_always_eager=settings.ENV.lower() in {"test"},
    )
    if ssl_options:
        celery.conf.update(
            broker_use_ssl=ssl_options,
            redis_backend_use_ssl=ssl_options,
        )
    # Beat schedule (only active outside test env). A tick still queued when the
    # next one is due is dropped via ``expires``.
    if settings.ENV.lower() not in {"test"}:
        interval = timedelta(seconds=settings.RETENTION_POLL_SECONDS)
        celery.conf.beat_schedule = {
            "retention-auto-close": {
                "task": "retention.auto_close",
                "schedule": interval,
                "options": {"expires": settings.RETENTION_POLL_SECONDS},
            },
            "retention-auto-delete": {
                "task": "retention.auto_delete",
                "schedule": interval,
                "options": {"expires": settings.RETENTION_POLL_SECONDS},
            },
        }
    return celery


celery_app = _create_celery()
