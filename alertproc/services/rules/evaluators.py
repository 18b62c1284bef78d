"""Rule evaluators, one per source type plus the default arm.

Each evaluator starts from a ``CREATED`` event (``None -> OPEN``) and appends
one event per further transition it decides, in decision order.
"""
from __future__ import annotations

import dataclasses
import logging

from alertproc.core.clock import cutoff
from alertproc.models.alert_models import AlertStatus, EventType, Severity
from alertproc.services.rules.base import (
    AlertDraft,
    Evaluation,
    EventDraft,
    WindowCounter,
    created_event,
)
from alertproc.services.rules.config import SourceRules

logger = logging.getLogger(__name__)


class DefaultEvaluator:
    """Unknown source types: stays ``OPEN`` with the single ``CREATED`` event."""

    def evaluate(self, draft: AlertDraft, rules: SourceRules, counter: WindowCounter) -> Evaluation:
        return Evaluation(dataclasses.replace(draft, status=AlertStatus.OPEN), [created_event()])


class CountingEvaluator:
    """Escalates when a driver raises too many alerts of one source inside a window.

    The counter only sees alerts that are already committed, so the current
    draft is added as ``+1``. Two concurrent submissions for the same driver
    may both miss each other and under-count by one; escalation is a soft
    signal and does not rely on an exact count.
    """

    def __init__(self, escalated_severity: Severity):
        self.escalated_severity = escalated_severity

    def evaluate(self, draft: AlertDraft, rules: SourceRules, counter: WindowCounter) -> Evaluation:
        events = [created_event()]
        if not draft.driver_id or not rules.escalation_enabled:
            return Evaluation(dataclasses.replace(draft, status=AlertStatus.OPEN), events)

        since = cutoff(rules.window_mins, now=draft.timestamp)  # type: ignore[arg-type]
        prior = counter.count(draft.driver_id, draft.source_type, since, exclude_alert_id=draft.alert_id)
        total = prior + 1

        if total < rules.escalate_if_count:  # type: ignore[operator]
            return Evaluation(dataclasses.replace(draft, status=AlertStatus.OPEN), events)

        events.append(
            EventDraft(
                EventType.ESCALATED,
                AlertStatus.OPEN,
                AlertStatus.ESCALATED,
                {"total": total},
            )
        )
        logger.info(
            "Escalating alert | alert_id=%s source=%s driver_id=%s total=%s threshold=%s",
            draft.alert_id, draft.source_type, draft.driver_id, total, rules.escalate_if_count,
        )
        decided = dataclasses.replace(
            draft,
            status=AlertStatus.ESCALATED,
            severity=self.escalated_severity.value,
        )
        return Evaluation(decided, events)


class ComplianceEvaluator:
    """Closes compliance alerts up front when the configured condition already holds."""

    def evaluate(self, draft: AlertDraft, rules: SourceRules, counter: WindowCounter) -> Evaluation:
        events = [created_event()]
        if not rules.auto_close_matches(draft.metadata or {}):
            return Evaluation(dataclasses.replace(draft, status=AlertStatus.OPEN), events)

        events.append(
            EventDraft(
                EventType.AUTO_CLOSED,
                AlertStatus.OPEN,
                AlertStatus.AUTO_CLOSED,
                {"reason": rules.auto_close_if},
            )
        )
        return Evaluation(dataclasses.replace(draft, status=AlertStatus.AUTO_CLOSED), events)
