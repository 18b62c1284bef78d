"""Per-source rule configuration.

The rule file is a JSON object keyed by source type::

    {
      "overspeed": {"window_mins": 10, "escalate_if_count": 3, "auto_close_after_mins": 30},
      "compliance": {"auto_close_if": "document_valid"}
    }

It is parsed once into an immutable ``RuleBook`` that callers pass around
explicitly. Any field left out disables the behaviour it drives.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from alertproc.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _document_valid(metadata: Mapping[str, Any]) -> bool:
    return metadata.get("status") == "valid" or metadata.get("document_valid") is True


# Named predicates usable as ``auto_close_if``.
AUTO_CLOSE_CONDITIONS: dict[str, Callable[[Mapping[str, Any]], bool]] = {
    "document_valid": _document_valid,
}


class SourceRules(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    window_mins: float | None = Field(default=None, gt=0)
    escalate_if_count: int | None = Field(default=None, ge=1)
    auto_close_after_mins: float | None = Field(default=None, gt=0)
    auto_close_if: str | None = None

    @field_validator("auto_close_if")
    @classmethod
    def _known_condition(cls, v: str | None) -> str | None:
        if v is not None and v not in AUTO_CLOSE_CONDITIONS:
            raise ValueError(f"unknown auto_close_if condition '{v}'")
        return v

    @property
    def escalation_enabled(self) -> bool:
        return self.window_mins is not None and self.escalate_if_count is not None

    def auto_close_matches(self, metadata: Mapping[str, Any]) -> bool:
        if self.auto_close_if is None:
            return False
        return AUTO_CLOSE_CONDITIONS[self.auto_close_if](metadata)


_EMPTY_RULES = SourceRules()


class RuleBook:
    """Read-only mapping of source type to ``SourceRules``."""

    def __init__(self, rules: Mapping[str, SourceRules] | None = None):
        self._rules: dict[str, SourceRules] = dict(rules or {})

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> RuleBook:
        if not isinstance(raw, Mapping):
            raise ConfigurationError("rules", "top level must be an object keyed by source type")
        parsed: dict[str, SourceRules] = {}
        for source_type, cfg in raw.items():
            try:
                parsed[source_type] = SourceRules.model_validate(cfg or {})
            except ValidationError as exc:
                raise ConfigurationError(f"rules.{source_type}", str(exc)) from exc
        return cls(parsed)

    @classmethod
    def from_file(cls, path: str | Path) -> RuleBook:
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigurationError("ALERT_RULES_PATH", f"{path} does not exist") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError("ALERT_RULES_PATH", f"{path} is not valid JSON: {exc}") from exc
        book = cls.from_dict(raw)
        logger.info("Loaded alert rules | path=%s sources=%s", path, ",".join(sorted(book._rules)) or "-")
        return book

    def for_source(self, source_type: str) -> SourceRules:
        """Rules for ``source_type``; an unconfigured source gets the empty rule set."""
        return self._rules.get(source_type, _EMPTY_RULES)

    def auto_close_timeouts(self) -> Iterator[tuple[str, float]]:
        """``(source_type, minutes)`` for every source with a timeout configured."""
        for source_type, rules in self._rules.items():
            if rules.auto_close_after_mins is not None:
                yield source_type, rules.auto_close_after_mins

    def __contains__(self, source_type: object) -> bool:
        return source_type in self._rules


@lru_cache
def get_rule_book() -> RuleBook:
    """Rule book loaded from ``ALERT_RULES_PATH``, parsed once per process."""
    from alertproc.core.config import settings

    return RuleBook.from_file(settings.ALERT_RULES_PATH)
