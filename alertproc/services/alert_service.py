"""Alert lifecycle engine.

Turns an inbound draft into a persisted alert plus its ordered event history
in a single transaction, then publishes one change notification. Publishing
happens only after commit and its failure never undoes the commit.
"""
from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any, Callable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from alertproc import metrics
from alertproc.core.clock import utcnow
from alertproc.core.config import settings
from alertproc.core.exceptions import AlertNotFoundError, AlertPersistenceError, AlertValidationError
from alertproc.models.alert_models import Alert, AlertEvent, AlertStatus, Severity
from alertproc.models.schemas import AlertEventOut, AlertOut
from alertproc.services.event_bus import EventPublisher
from alertproc.services.rules import AlertDraft, EventDraft, RuleBook, WindowedAlertCounter, evaluate_alert

logger = logging.getLogger(__name__)

ALERT_UPDATED = "ALERT_UPDATED"


class AlertService:
    def __init__(
        self,
        db: Session,
        rules: RuleBook,
        publisher: EventPublisher,
        topic: str = settings.ALERT_EVENTS_TOPIC,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.db = db
        self.rules = rules
        self.publisher = publisher
        self.topic = topic
        self.clock = clock

    def submit(self, data: Mapping[str, Any]) -> Alert:
        """Evaluate, persist and announce a new alert.

        ``data`` carries ``source_type`` (required), ``driver_id``, ``severity``
        and ``metadata``. Returns the stored alert with its events loaded.
        """
        source_type = data.get("source_type")
        if not source_type:
            raise AlertValidationError("sourceType")

        now = self.clock()
        draft = AlertDraft(
            alert_id=str(uuid.uuid4()),
            source_type=source_type,
            timestamp=now,
            driver_id=data.get("driver_id") or None,
            severity=data.get("severity") or Severity.INFO.value,
            metadata=dict(data.get("metadata") or {}),
        )

        try:
            evaluation = evaluate_alert(draft, self.rules, WindowedAlertCounter(self.db))
            alert = self._insert_alert(evaluation.alert)
            for event in evaluation.events:
                self._insert_event(alert, event, at=now)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(
                "Alert transaction rolled back | alert_id=%s source=%s error=%s", draft.alert_id, source_type, exc
            )
            raise AlertPersistenceError(draft.alert_id) from exc
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Alert stored | alert_id=%s source=%s driver_id=%s status=%s events=%s",
            alert.alert_id, alert.source_type, alert.driver_id, alert.status, len(alert.events),
        )
        metrics.alert_processed(alert.source_type, alert.status)
        if alert.status == AlertStatus.ESCALATED.value:
            metrics.alert_escalated(alert.source_type)
        elif alert.status == AlertStatus.AUTO_CLOSED.value:
            metrics.alert_auto_closed(str(evaluation.events[-1].metadata.get("reason", "rule")))

        self._publish(alert)
        return alert

    def get_alert(self, alert_id: str) -> tuple[Alert, list[AlertEvent]]:
        """Alert row and its history, oldest event first."""
        alert = self.db.get(Alert, alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        history = list(
            self.db.scalars(
                select(AlertEvent)
                .where(AlertEvent.alert_id == alert_id)
                .order_by(AlertEvent.timestamp.asc(), AlertEvent.id.asc())
            )
        )
        return alert, history

    def _insert_alert(self, draft: AlertDraft) -> Alert:
        alert = Alert(
            alert_id=draft.alert_id,
            driver_id=draft.driver_id,
            source_type=draft.source_type,
            severity=draft.severity,
            status=draft.status.value,
            timestamp=draft.timestamp,
            created_at=draft.timestamp,
            metadata_=draft.metadata,
            events=[],
        )
        self.db.add(alert)
        self.db.flush()
        return alert

    def _insert_event(self, alert: Alert, event: EventDraft, at: dt.datetime) -> AlertEvent:
        row = AlertEvent(
            event_type=event.event_type.value,
            old_status=event.old_status.value if event.old_status else None,
            new_status=event.new_status.value,
            timestamp=at,
            metadata_=dict(event.metadata),
        )
        alert.events.append(row)
        self.db.flush()
        return row

    def _publish(self, alert: Alert) -> None:
        payload = build_notification(alert, alert.events)
        try:
            self.publisher.publish(self.topic, alert.alert_id, payload)
        except Exception:  # noqa: BLE001
            # Alert is already committed; notification is best effort.
            metrics.publish_failed()
            logger.exception("Failed to publish alert event | alert_id=%s topic=%s", alert.alert_id, self.topic)


def build_notification(alert: Alert, events: list[AlertEvent]) -> dict[str, Any]:
    return {
        "type": ALERT_UPDATED,
        "alert": AlertOut.model_validate(alert).model_dump(mode="json", by_alias=True),
        "events": [AlertEventOut.model_validate(e).model_dump(mode="json", by_alias=True) for e in events],
    }

