"""normalize timestamps written with a fixed IST offset

Revision ID: 0002_normalize_legacy_ist_offset
Revises: 0001_alerts
Create Date: 2026-10-19

The previous processor shifted every timestamp by a constant before writing
it. Rows it left behind are moved onto true UTC once, here; the running
service never offsets anything.

The shift is read from ``ALERTPROC_LEGACY_OFFSET_MINUTES`` (minutes to ADD to
every stored instant, e.g. ``330`` for rows written as ``IST - 5h30``). It
defaults to 0, which makes this revision a no-op for fresh installs.
"""
from __future__ import annotations

import datetime as dt
import os

import sqlalchemy as sa

from alembic import op

revision = "0002_normalize_legacy_ist_offset"
down_revision = "0001_alerts"
branch_labels = None
depends_on = None

_COLUMNS = (
    ("alerts", "alert_id", ("timestamp", "created_at")),
    ("alert_events", "id", ("timestamp",)),
)


def _offset() -> dt.timedelta:
    return dt.timedelta(minutes=int(os.getenv("ALERTPROC_LEGACY_OFFSET_MINUTES", "0")))


def _shift(delta: dt.timedelta) -> None:
    if not delta:
        return
    bind = op.get_bind()
    meta = sa.MetaData()
    for table_name, pk, columns in _COLUMNS:
        table = sa.Table(table_name, meta, autoload_with=bind)
        rows = bind.execute(sa.select(table.c[pk], *(table.c[c] for c in columns))).all()
        for row in rows:
            values = {c: row._mapping[c] + delta for c in columns if row._mapping[c] is not None}
            if values:
                bind.execute(table.update().where(table.c[pk] == row._mapping[pk]).values(**values))


def upgrade() -> None:
    _shift(_offset())


def downgrade() -> None:
    _shift(-_offset())
