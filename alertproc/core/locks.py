"""Single-flight guard for periodic tasks.

A beat tick that finds the previous run of the same task still holding the
lock is skipped rather than queued behind it. The lock carries a timeout so a
worker that dies mid-tick cannot wedge the schedule; a live run keeps it by
calling ``lock.extend(timeout, replace_ttl=True)`` while it works. If a run
stalls longer than ``timeout`` between renewals, the lock lapses and the next
renewal raises ``LockNotOwnedError``, which ends that run.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

import redis
from redis.exceptions import LockError
from redis.lock import Lock

logger = logging.getLogger(__name__)

_LOCK_PREFIX = "alertproc:lock:"


@contextmanager
def single_flight(redis_client: redis.Redis, name: str, timeout: int) -> Generator[Lock | None, None, None]:
    """Yield the held lock for ``name``, or ``None`` when another run holds it."""
    lock = redis_client.lock(f"{_LOCK_PREFIX}{name}", timeout=timeout, blocking=False)
    if not lock.acquire(blocking=False):
        logger.info("Skipping tick, previous run still active | task=%s", name)
        yield None
        return
    try:
        yield lock
    finally:
        try:
            lock.release()
        except LockError:
            # Lapsed and possibly taken over by a later tick.
            logger.warning("Lock expired before release | task=%s timeout=%ss", name, timeout)
