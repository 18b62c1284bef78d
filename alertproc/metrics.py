"""Metrics facade.

Service code only calls the semantic helpers below, never the Prometheus
objects directly.
"""

from __future__ import annotations

from prometheus_client import Counter

_ALERTS_PROCESSED = Counter(
    "alerts_processed_total", "Alerts persisted by the lifecycle engine", ["source_type", "status"]
)
_ALERTS_ESCALATED = Counter(
    "alerts_escalated_total", "Alerts escalated at creation time", ["source_type"]
)
_ALERTS_AUTO_CLOSED = Counter(
    "alerts_auto_closed_total", "Alerts moved to AUTO_CLOSED", ["reason"]
)
_ALERTS_DELETED = Counter("alerts_deleted_total", "Closed alerts removed after the grace period")
_PUBLISH_FAILURES = Counter(
    "alert_event_publish_failures_total", "Change notifications that could not be published"
)
_RETENTION_FAILURES = Counter(
    "retention_alert_failures_total", "Per-alert retention transactions rolled back", ["task"]
)
_RETENTION_SKIPPED = Counter(
    "retention_ticks_skipped_total", "Retention ticks skipped because a previous run held the lock", ["task"]
)


def alert_processed(source_type: str, status: str) -> None:
    _ALERTS_PROCESSED.labels(source_type=source_type, status=status).inc()


def alert_escalated(source_type: str) -> None:
    _ALERTS_ESCALATED.labels(source_type=source_type).inc()


def alert_auto_closed(reason: str) -> None:
    _ALERTS_AUTO_CLOSED.labels(reason=reason).inc()


def alert_deleted() -> None:
    _ALERTS_DELETED.inc()


def publish_failed() -> None:
    _PUBLISH_FAILURES.inc()


def retention_failure(task: str) -> None:
    _RETENTION_FAILURES.labels(task=task).inc()


def retention_tick_skipped(task: str) -> None:
    _RETENTION_SKIPPED.labels(task=task).inc()


__all__ = [
    "alert_processed",
    "alert_escalated",
    "alert_auto_closed",
    "alert_deleted",
    "publish_failed",
    "retention_failure",
    "retention_tick_skipped",
]
