"""Value types shared by the rule evaluators."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Protocol

from alertproc.models.alert_models import AlertStatus, EventType
from alertproc.services.rules.config import SourceRules


@dataclass(frozen=True)
class AlertDraft:
    """An alert that has an identity and a creation instant but is not stored yet."""
    alert_id: str
    source_type: str
    timestamp: dt.datetime
    driver_id: str | None = None
    severity: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    status: AlertStatus = AlertStatus.OPEN


@dataclass(frozen=True)
class EventDraft:
    event_type: EventType
    old_status: AlertStatus | None
    new_status: AlertStatus
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Evaluation:
    alert: AlertDraft
    events: list[EventDraft]


class WindowCounter(Protocol):
    def count(self, driver_id: str, source_type: str, since: dt.datetime, exclude_alert_id: str | None = None) -> int:
        """Alerts for ``driver_id``/``source_type`` created at or after ``since``."""
        ...


class Evaluator(Protocol):
    def evaluate(self, draft: AlertDraft, rules: SourceRules, counter: WindowCounter) -> Evaluation:
        ...


def created_event() -> EventDraft:
    return EventDraft(EventType.CREATED, None, AlertStatus.OPEN)
