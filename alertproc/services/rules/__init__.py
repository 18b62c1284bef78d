"""Rule evaluation: pick the evaluator for a source type and run it.

Dispatch is closed over ``SourceType``; anything else goes to the default arm.
"""
from __future__ import annotations

from alertproc.models.alert_models import Severity, SourceType
from alertproc.services.rules.base import AlertDraft, Evaluation, EventDraft, Evaluator, WindowCounter
from alertproc.services.rules.config import RuleBook, SourceRules, get_rule_book
from alertproc.services.rules.counter import WindowedAlertCounter
from alertproc.services.rules.evaluators import ComplianceEvaluator, CountingEvaluator, DefaultEvaluator

DEFAULT_EVALUATOR: Evaluator = DefaultEvaluator()

EVALUATORS: dict[SourceType, Evaluator] = {
    SourceType.OVERSPEED: CountingEvaluator(escalated_severity=Severity.CRITICAL),
    SourceType.FEEDBACK_NEGATIVE: CountingEvaluator(escalated_severity=Severity.HIGH),
    SourceType.COMPLIANCE: ComplianceEvaluator(),
}

_missing = set(SourceType) - set(EVALUATORS)
if _missing:  # pragma: no cover - guards future enum additions
    raise RuntimeError(f"No evaluator registered for source types: {sorted(s.value for s in _missing)}")


def evaluator_for(source_type: str) -> Evaluator:
    known = SourceType.parse(source_type)
    if known is None:
        return DEFAULT_EVALUATOR
    return EVALUATORS[known]


def evaluate_alert(draft: AlertDraft, rules: RuleBook, counter: WindowCounter) -> Evaluation:
    """Decide the initial status of ``draft`` and the events leading to it."""
    return evaluator_for(draft.source_type).evaluate(draft, rules.for_source(draft.source_type), counter)


__all__ = [
    "AlertDraft",
    "Evaluation",
    "EventDraft",
    "RuleBook",
    "SourceRules",
    "WindowCounter",
    "WindowedAlertCounter",
    "evaluate_alert",
    "evaluator_for",
    "get_rule_book",
]
