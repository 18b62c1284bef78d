"""Timeout-based closure and post-closure deletion of alerts.

Both passes scan first and then mutate each candidate in its own transaction.
A failing alert is rolled back, logged and skipped; only a failing scan aborts
the pass. Each mutation re-reads its row under ``FOR UPDATE`` and re-checks
eligibility, so overlapping passes or a concurrent writer cannot close an
alert twice or delete one that no longer qualifies.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import asdict, dataclass
from typing import Callable

from sqlalchemy import delete, select

from alertproc import metrics
from alertproc.core.clock import cutoff, utcnow
from alertproc.core.config import settings
from alertproc.db.session import session_scope
from alertproc.models.alert_models import Alert, AlertEvent, AlertStatus, EventType
from alertproc.services.rules import RuleBook

logger = logging.getLogger(__name__)

AUTO_CLOSE = "auto_close"
AUTO_DELETE = "auto_delete"


@dataclass
class RetentionResult:
    task: str
    candidates: int = 0
    processed: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int | str]:
        return asdict(self)


class RetentionService:
    def __init__(
        self,
        rules: RuleBook,
        delete_after_minutes: float = settings.AUTO_DELETE_AFTER_MINUTES,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.rules = rules
        self.delete_after_minutes = delete_after_minutes
        self.clock = clock

    # ------------------------------------------------------------------
    # Auto-close
    # ------------------------------------------------------------------
    def auto_close(self, heartbeat: Callable[[], None] | None = None) -> RetentionResult:
        """Close OPEN/ESCALATED alerts older than their source's timeout.

        ``heartbeat`` runs before each candidate; an exception from it ends the pass.
        """
        result = RetentionResult(AUTO_CLOSE)
        for source_type, minutes in self.rules.auto_close_timeouts():
            threshold = cutoff(minutes, now=self.clock())
            with session_scope() as db:
                rows = db.execute(
                    select(Alert.alert_id)
                    .where(
                        Alert.source_type == source_type,
                        Alert.status.in_([s.value for s in AlertStatus.active()]),
                        Alert.timestamp <= threshold,
                    )
                    .order_by(Alert.timestamp.asc())
                ).all()

            if rows:
                logger.info("[AutoClose] Found %s candidates for %s", len(rows), source_type)

            for (alert_id,) in rows:
                if heartbeat is not None:
                    heartbeat()
                result.candidates += 1
                try:
                    if self._close_one(alert_id, source_type):
                        result.processed += 1
                except Exception:  # noqa: BLE001
                    result.failed += 1
                    metrics.retention_failure(AUTO_CLOSE)
                    logger.exception("[AutoClose] Failed to close alert_id=%s", alert_id)
        return result

    def _close_one(self, alert_id: str, source_type: str) -> bool:
        with session_scope() as db:
            alert = db.scalar(select(Alert).where(Alert.alert_id == alert_id).with_for_update())
            if alert is None or alert.status not in {s.value for s in AlertStatus.active()}:
                logger.debug("[AutoClose] Skipping alert_id=%s, no longer active", alert_id)
                return False

            now = self.clock()
            old_status = alert.status
            alert.status = AlertStatus.AUTO_CLOSED.value
            alert.timestamp = now
            db.add(
                AlertEvent(
                    alert_id=alert_id,
                    event_type=EventType.AUTO_CLOSED.value,
                    old_status=old_status,
                    new_status=AlertStatus.AUTO_CLOSED.value,
                    timestamp=now,
                    metadata_={"reason": "timeout", "src": source_type},
                )
            )
        metrics.alert_auto_closed("timeout")
        logger.info("[AutoClose] Closed alert_id=%s source=%s old_status=%s", alert_id, source_type, old_status)
        return True

    # ------------------------------------------------------------------
    # Auto-delete
    # ------------------------------------------------------------------
    def auto_delete(self, heartbeat: Callable[[], None] | None = None) -> RetentionResult:
        """Delete AUTO_CLOSED alerts, with their events, once the grace period has passed."""
        result = RetentionResult(AUTO_DELETE)
        threshold = cutoff(self.delete_after_minutes, now=self.clock())
        with session_scope() as db:
            rows = db.execute(
                select(Alert.alert_id)
                .where(
                    Alert.status == AlertStatus.AUTO_CLOSED.value,
                    Alert.timestamp <= threshold,
                )
                .order_by(Alert.timestamp.asc())
            ).all()

        if rows:
            logger.info("[AutoDelete] Found %s candidates to delete", len(rows))

        for (alert_id,) in rows:
            if heartbeat is not None:
                heartbeat()
            result.candidates += 1
            try:
                if self._delete_one(alert_id, threshold):
                    result.processed += 1
            except Exception:  # noqa: BLE001
                result.failed += 1
                metrics.retention_failure(AUTO_DELETE)
                logger.exception("[AutoDelete] Failed to delete alert_id=%s", alert_id)
        return result

    def _delete_one(self, alert_id: str, threshold: dt.datetime) -> bool:
        with session_scope() as db:
            locked = db.scalar(
                select(Alert.alert_id)
                .where(
                    Alert.alert_id == alert_id,
                    Alert.status == AlertStatus.AUTO_CLOSED.value,
                    Alert.timestamp <= threshold,
                )
                .with_for_update()
            )
            if locked is None:
                logger.debug("[AutoDelete] Skipping alert_id=%s, no longer eligible", alert_id)
                return False
            db.execute(delete(AlertEvent).where(AlertEvent.alert_id == alert_id))
            db.execute(delete(Alert).where(Alert.alert_id == alert_id))
        metrics.alert_deleted()
        logger.info("[AutoDelete] Deleted alert_id=%s", alert_id)
        return True


def build_retention_service() -> RetentionService:
    from alertproc.services.rules import get_rule_book

    return RetentionService(get_rule_book(), delete_after_minutes=settings.AUTO_DELETE_AFTER_MINUTES)
