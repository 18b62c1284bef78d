from __future__ import annotations

import datetime as dt

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from alertproc.models.alert_models import Alert


class WindowedAlertCounter:
    """Counts committed alerts per driver and source since a cutoff.

    ``since`` must come from ``alertproc.core.clock`` so it lives on the same
    clock the alert rows were written with.
    """

    def __init__(self, db: Session):
        self.db = db

    def count(self, driver_id: str, source_type: str, since: dt.datetime, exclude_alert_id: str | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(Alert)
            .where(
                Alert.driver_id == driver_id,
                Alert.source_type == source_type,
                Alert.created_at >= since,
            )
        )
        if exclude_alert_id is not None:
            stmt = stmt.where(Alert.alert_id != exclude_alert_id)
        return int(self.db.scalar(stmt) or 0)
