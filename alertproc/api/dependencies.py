"""Shared FastAPI dependencies."""
from typing import Annotated, TypeAlias

from fastapi import Depends
from sqlalchemy.orm import Session

from alertproc.db.session import get_db
from alertproc.services.alert_service import AlertService
from alertproc.services.event_bus import EventPublisher, build_event_publisher
from alertproc.services.rules import RuleBook, get_rule_book

DbDep: TypeAlias = Annotated[Session, Depends(get_db)]


def get_event_publisher() -> EventPublisher:
    return build_event_publisher()


def get_rules() -> RuleBook:
    return get_rule_book()


PublisherDep: TypeAlias = Annotated[EventPublisher, Depends(get_event_publisher)]
RulesDep: TypeAlias = Annotated[RuleBook, Depends(get_rules)]


def get_alert_service(db: DbDep, publisher: PublisherDep, rules: RulesDep) -> AlertService:
    """AlertService bound to the request's session (one transaction per submission)."""
    return AlertService(db, rules=rules, publisher=publisher)


AlertServiceDep: TypeAlias = Annotated[AlertService, Depends(get_alert_service)]
