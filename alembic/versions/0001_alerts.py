"""create alerts and alert_events tables

Revision ID: 0001_alerts
Revises:
Create Date: 2026-10-19

Tables written by the lifecycle engine and mutated by the retention workers.
If a legacy ``alerts`` table already exists (written by the previous
processor) only the immutable ``created_at`` column and the indexes are added,
with ``created_at`` backfilled from ``timestamp``.
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_alerts"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    if not _table_exists("alerts"):
        op.create_table(
            "alerts",
            sa.Column("alert_id", sa.String(36), primary_key=True),
            sa.Column("driver_id", sa.String(64), nullable=True),
            sa.Column("source_type", sa.String(50), nullable=False),
            sa.Column("severity", sa.String(20), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
            sa.Column("timestamp", sa.DateTime(timezone=False), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
        )
    elif not _column_exists("alerts", "created_at"):
        op.add_column("alerts", sa.Column("created_at", sa.DateTime(timezone=False), nullable=True))
        op.execute("UPDATE alerts SET created_at = timestamp")
        op.alter_column("alerts", "created_at", existing_type=sa.DateTime(timezone=False), nullable=False)

    if not _table_exists("alert_events"):
        op.create_table(
            "alert_events",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "alert_id",
                sa.String(36),
                sa.ForeignKey("alerts.alert_id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("event_type", sa.String(30), nullable=False),
            sa.Column("old_status", sa.String(20), nullable=True),
            sa.Column("new_status", sa.String(20), nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=False), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
        )

    op.create_index("ix_alerts_driver_id", "alerts", ["driver_id"], if_not_exists=True)
    op.create_index("ix_alerts_source_type", "alerts", ["source_type"], if_not_exists=True)
    # Windowed escalation count
    op.create_index(
        "ix_alerts_source_driver_created",
        "alerts",
        ["source_type", "driver_id", "created_at"],
        if_not_exists=True,
    )
    # Retention scans
    op.create_index("ix_alerts_status_timestamp", "alerts", ["status", "timestamp"], if_not_exists=True)
    op.create_index(
        "ix_alert_events_alert_timestamp",
        "alert_events",
        ["alert_id", "timestamp"],
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_index("ix_alert_events_alert_timestamp", table_name="alert_events", if_exists=True)
    op.drop_index("ix_alerts_status_timestamp", table_name="alerts", if_exists=True)
    op.drop_index("ix_alerts_source_driver_created", table_name="alerts", if_exists=True)
    op.drop_index("ix_alerts_source_type", table_name="alerts", if_exists=True)
    op.drop_index("ix_alerts_driver_id", table_name="alerts", if_exists=True)
    if _table_exists("alert_events"):
        op.drop_table("alert_events")
    if _table_exists("alerts"):
        op.drop_table("alerts")


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in inspector.get_table_names()


def _column_exists(table_name: str, column_name: str) -> bool:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return any(col["name"] == column_name for col in inspector.get_columns(table_name))
