"""Request/response schemas for the alert HTTP surface.

Field names on the wire are camelCase (``sourceType``, ``alertId``); Python
attributes stay snake_case.
"""
from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from alertproc.core.clock import isoformat


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AlertDraftIn(CamelModel):
    # Presence of source_type is checked by the lifecycle service so a missing
    # field answers 400 rather than FastAPI's 422.
    source_type: str | None = Field(default=None, max_length=50)
    driver_id: str | None = Field(default=None, max_length=64)
    severity: str | None = Field(default=None, max_length=20)
    metadata: dict[str, Any] | None = None


class AlertSubmitOut(CamelModel):
    alert_id: str
    status: str


class AlertOut(CamelModel):
    alert_id: str
    driver_id: str | None = None
    source_type: str
    severity: str | None = None
    status: str
    timestamp: dt.datetime
    created_at: dt.datetime
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")

    @field_serializer("timestamp", "created_at")
    def _ser_instant(self, value: dt.datetime) -> str | None:
        return isoformat(value)


class AlertEventOut(CamelModel):
    event_type: str
    old_status: str | None = None
    new_status: str
    timestamp: dt.datetime
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")

    @field_serializer("timestamp")
    def _ser_instant(self, value: dt.datetime) -> str | None:
        return isoformat(value)


class AlertDetailOut(BaseModel):
    alert: AlertOut
    history: list[AlertEventOut]
