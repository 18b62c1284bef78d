from __future__ import annotations

import datetime as dt
import enum
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alertproc.core.clock import as_utc, utcnow
from alertproc.db.base_class import Base


class UTCDateTime(TypeDecorator):
    """Instant stored as naive UTC, always loaded back as aware UTC.

    SQLite drops tzinfo and PostgreSQL ``timestamp without time zone`` would
    otherwise interpret values in the session zone; normalising on both sides
    keeps one representation for writes and for comparison cutoffs.
    """

    impl = DateTime(timezone=False)
    cache_ok = True

    def process_bind_param(self, value: dt.datetime | None, dialect) -> dt.datetime | None:
        if value is None:
            return value
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: dt.datetime | None, dialect) -> dt.datetime | None:
        if value is None:
            return value
        return value.replace(tzinfo=dt.timezone.utc)


class AlertStatus(str, enum.Enum):
    """Lifecycle status of an alert."""
    OPEN = "OPEN"
    ESCALATED = "ESCALATED"
    AUTO_CLOSED = "AUTO_CLOSED"

    @classmethod
    def active(cls) -> tuple[AlertStatus, ...]:
        """Statuses the auto-close worker may still time out."""
        return (cls.OPEN, cls.ESCALATED)


class EventType(str, enum.Enum):
    CREATED = "CREATED"
    ESCALATED = "ESCALATED"
    AUTO_CLOSED = "AUTO_CLOSED"


class SourceType(str, enum.Enum):
    """Upstream producers with dedicated rule evaluators.

    Any other ``sourceType`` string is accepted and stored verbatim; it is
    evaluated by the default arm (see ``alertproc.services.rules``).
    """
    OVERSPEED = "overspeed"
    FEEDBACK_NEGATIVE = "feedback_negative"
    COMPLIANCE = "compliance"

    @classmethod
    def parse(cls, raw: str | None) -> SourceType | None:
        try:
            return cls(raw)
        except ValueError:
            return None


class Severity(str, enum.Enum):
    INFO = "info"
    HIGH = "high"
    CRITICAL = "critical"


class Alert(Base):
    __tablename__ = "alerts"
    __table_args__ = (
        Index("ix_alerts_source_driver_created", "source_type", "driver_id", "created_at"),
        Index("ix_alerts_status_timestamp", "status", "timestamp"),
    )

    alert_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    driver_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AlertStatus.OPEN.value)
    # Instant of the current state; moved forward by auto-close.
    timestamp: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    # Instant the alert was raised; never updated.
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    events: Mapped[list[AlertEvent]] = relationship(
        "AlertEvent",
        back_populates="alert",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: (AlertEvent.timestamp, AlertEvent.id),
    )


class AlertEvent(Base):
    """Append-only history row, one per status transition."""
    __tablename__ = "alert_events"
    __table_args__ = (
        Index("ix_alert_events_alert_timestamp", "alert_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("alerts.alert_id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    alert: Mapped[Alert] = relationship("Alert", back_populates="events")
