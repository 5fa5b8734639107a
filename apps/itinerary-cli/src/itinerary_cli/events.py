"""Analytics events for plan lifecycle actions.

Event writes are fire-and-forget: they run after the primary operation has
committed, and a failure is logged without affecting the caller.
"""
from __future__ import annotations

import logging

import sqlalchemy as sa
from sqlmodel import Session, select

from itinerary_cli.models import PlanEvent, PlanEventType

logger = logging.getLogger(__name__)


def log_event(
    session: Session,
    *,
    user_id: str,
    event_type: PlanEventType,
    plan_id: str | None = None,
    destination_text: str | None = None,
    trip_length_days: int | None = None,
    now_iso: str | None = None,
) -> None:
    event = PlanEvent(
        user_id=user_id,
        plan_id=plan_id,
        event_type=event_type,
        destination_text=destination_text,
        trip_length_days=trip_length_days,
    )
    if now_iso is not None:
        event.created_at = now_iso

    try:
        session.add(event)
        session.commit()
    except sa.exc.SQLAlchemyError:
        session.rollback()
        logger.exception("plan_event_log_failed event_type=%s plan_id=%s", event_type.value, plan_id)


def log_plan_edited(session: Session, *, user_id: str, plan_id: str, now_iso: str | None = None) -> None:
    log_event(
        session,
        user_id=user_id,
        event_type=PlanEventType.PLAN_EDITED,
        plan_id=plan_id,
        now_iso=now_iso,
    )


def list_plan_events(session: Session, *, user_id: str, plan_id: str | None = None) -> list[PlanEvent]:
    statement = select(PlanEvent).where(PlanEvent.user_id == user_id)
    if plan_id is not None:
        statement = statement.where(PlanEvent.plan_id == plan_id)
    return list(session.exec(statement.order_by(PlanEvent.created_at)).all())
