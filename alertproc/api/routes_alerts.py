from __future__ import annotations

import logging

from fastapi import APIRouter, status

from alertproc.api.dependencies import AlertServiceDep
from alertproc.models import schemas

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/process-alert",
    response_model=schemas.AlertSubmitOut,
    status_code=status.HTTP_201_CREATED,
)
def process_alert(draft: schemas.AlertDraftIn, svc: AlertServiceDep) -> schemas.AlertSubmitOut:
    """Evaluate and store an inbound alert, then publish the change.

    Returns 400 when ``sourceType`` is missing and 500 when the store
    transaction fails (nothing is stored or published in either case).
    """
    alert = svc.submit(draft.model_dump())
    return schemas.AlertSubmitOut(alert_id=alert.alert_id, status=alert.status)


@router.get("/alerts/{alert_id}", response_model=schemas.AlertDetailOut)
def get_alert(alert_id: str, svc: AlertServiceDep) -> schemas.AlertDetailOut:
    """Alert row with its full event history, oldest first."""
    alert, history = svc.get_alert(alert_id)
    return schemas.AlertDetailOut(
        alert=schemas.AlertOut.model_validate(alert),
        history=[schemas.AlertEventOut.model_validate(e) for e in history],
    )
