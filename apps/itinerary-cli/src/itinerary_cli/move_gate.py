"""Validation and ownership checks run before any plan data is mutated.

Every helper raises ``ServiceError``; services convert it into a
``ServiceResult`` at their boundary. The ownership chain is always
activity -> day -> plan -> owner.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlmodel import Session

from itinerary_cli.config import is_valid_uuid
from itinerary_cli.models import MAX_ACTIVITY_POSITION, Plan, PlanActivity, PlanDay
from itinerary_cli.results import ErrorCode, ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveRequest:
    user_id: str
    plan_id: str
    activity_id: str
    source_day_id: str
    target_day_id: str
    target_position: int


def require_uuid(value: str | None, label: str) -> str:
    if not value or not is_valid_uuid(value):
        raise ServiceError(ErrorCode.VALIDATION_ERROR, f"Invalid {label} ID format")
    return value


def require_position(value: object) -> int:
    # bool is an int subclass; True must not pass as position 1.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ServiceError(ErrorCode.VALIDATION_ERROR, "Target position must be an integer")
    if value < 1 or value > MAX_ACTIVITY_POSITION:
        raise ServiceError(
            ErrorCode.VALIDATION_ERROR,
            f"Target position must be between 1 and {MAX_ACTIVITY_POSITION}",
        )
    return value


def ensure_owner(plan: Plan, user_id: str) -> None:
    if plan.owner_id != user_id:
        logger.info(
            "plan_access_denied user_id=%s plan_id=%s owner_id=%s",
            user_id,
            plan.id,
            plan.owner_id,
        )
        raise ServiceError(ErrorCode.FORBIDDEN, "You don't have permission to access this plan")


def load_owned_plan(session: Session, *, user_id: str, plan_id: str) -> Plan:
    require_uuid(plan_id, "plan")
    plan = session.get(Plan, plan_id)
    if plan is None:
        raise ServiceError(ErrorCode.NOT_FOUND, "Plan not found")
    ensure_owner(plan, user_id)
    return plan


def load_owned_day(session: Session, *, user_id: str, plan_id: str, day_id: str) -> tuple[Plan, PlanDay]:
    plan = load_owned_plan(session, user_id=user_id, plan_id=plan_id)
    require_uuid(day_id, "day")
    day = session.get(PlanDay, day_id)
    if day is None or day.plan_id != plan.id:
        raise ServiceError(ErrorCode.NOT_FOUND, "Day not found")
    return plan, day


def load_owned_activity(
    session: Session,
    *,
    user_id: str,
    activity_id: str,
    plan_id: str | None = None,
) -> tuple[Plan, PlanDay, PlanActivity]:
    """Resolve activity -> day -> plan and confirm the principal owns the plan.

    When ``plan_id`` is given, an activity from another plan is reported as
    NOT_FOUND so callers cannot discover activities outside the addressed plan.
    """
    require_uuid(activity_id, "activity")
    if plan_id is not None:
        require_uuid(plan_id, "plan")

    activity = session.get(PlanActivity, activity_id)
    if activity is None:
        raise ServiceError(ErrorCode.NOT_FOUND, "Activity not found")
    day = session.get(PlanDay, activity.day_id)
    if day is None:
        raise ServiceError(ErrorCode.NOT_FOUND, "Activity not found")
    plan = session.get(Plan, day.plan_id)
    if plan is None or (plan_id is not None and plan.id != plan_id):
        raise ServiceError(ErrorCode.NOT_FOUND, "Activity not found")

    ensure_owner(plan, user_id)
    return plan, day, activity


def validate_move_request(
    session: Session,
    *,
    user_id: str,
    activity_id: str,
    target_day_id: str,
    target_position: object,
    plan_id: str | None = None,
) -> MoveRequest:
    require_uuid(user_id, "user")
    require_uuid(activity_id, "activity")
    require_uuid(target_day_id, "target day")
    position = require_position(target_position)

    plan, day, activity = load_owned_activity(
        session,
        user_id=user_id,
        activity_id=activity_id,
        plan_id=plan_id,
    )

    target_day = session.get(PlanDay, target_day_id)
    if target_day is None:
        raise ServiceError(ErrorCode.NOT_FOUND, "Target day not found")
    if target_day.plan_id != plan.id:
        raise ServiceError(ErrorCode.VALIDATION_ERROR, "Target day belongs to a different plan")

    return MoveRequest(
        user_id=user_id,
        plan_id=plan.id,
        activity_id=activity.id,
        source_day_id=day.id,
        target_day_id=target_day.id,
        target_position=position,
    )
