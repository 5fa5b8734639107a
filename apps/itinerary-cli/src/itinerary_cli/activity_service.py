from __future__ import annotations

import logging
from dataclasses import dataclass

import sqlalchemy as sa
from sqlmodel import Session, select

from itinerary_cli.events import log_plan_edited
from itinerary_cli.models import MAX_ACTIVITY_POSITION, PlanActivity
from itinerary_cli.move_gate import load_owned_activity, load_owned_day, validate_move_request
from itinerary_cli.reorder import count_day_activities, execute_reorder
from itinerary_cli.results import ErrorCode, ServiceError, ServiceResult
from itinerary_cli.timeutil import utc_now_iso

logger = logging.getLogger(__name__)

TITLE_MAX_LEN = 200
DESCRIPTION_MAX_LEN = 500
DURATION_RANGE = (5, 720)
TRANSPORT_RANGE = (0, 600)


@dataclass(frozen=True)
class ActivityChanges:
    """Partial update; fields left as None are not touched.

    ``clear_transport`` / ``clear_description`` null the column explicitly.
    """

    title: str | None = None
    description: str | None = None
    duration_minutes: int | None = None
    transport_minutes: int | None = None
    clear_transport: bool = False
    clear_description: bool = False

    def is_empty(self) -> bool:
        return (
            self.title is None
            and self.description is None
            and self.duration_minutes is None
            and self.transport_minutes is None
            and not self.clear_transport
            and not self.clear_description
        )


def _validate_title(title: str) -> str:
    trimmed = title.strip()
    if not trimmed or len(trimmed) > TITLE_MAX_LEN:
        raise ServiceError(ErrorCode.VALIDATION_ERROR, f"Title must be 1-{TITLE_MAX_LEN} characters")
    return trimmed


def _validate_description(description: str | None) -> str | None:
    if description is None:
        return None
    trimmed = description.strip()
    if len(trimmed) > DESCRIPTION_MAX_LEN:
        raise ServiceError(
            ErrorCode.VALIDATION_ERROR,
            f"Description must be at most {DESCRIPTION_MAX_LEN} characters",
        )
    return trimmed or None


def _validate_range(value: int, bounds: tuple[int, int], label: str) -> int:
    low, high = bounds
    if value < low or value > high:
        raise ServiceError(ErrorCode.VALIDATION_ERROR, f"{label} must be between {low} and {high}")
    return value


def _internal_failure(session: Session, operation: str, **context: str) -> ServiceResult:
    session.rollback()
    details = " ".join(f"{key}={value}" for key, value in context.items())
    logger.exception("%s_failed %s", operation, details)
    return ServiceResult.internal_error()


def create_activity(
    session: Session,
    *,
    user_id: str,
    plan_id: str,
    day_id: str,
    title: str,
    duration_minutes: int = 60,
    transport_minutes: int | None = None,
    description: str | None = None,
    now_iso: str | None = None,
) -> ServiceResult[PlanActivity]:
    """Append a new activity at max(position) + 1 of its day."""
    now = now_iso or utc_now_iso()
    try:
        clean_title = _validate_title(title)
        clean_description = _validate_description(description)
        _validate_range(duration_minutes, DURATION_RANGE, "Duration")
        if transport_minutes is not None:
            _validate_range(transport_minutes, TRANSPORT_RANGE, "Transport time")

        _, day = load_owned_day(session, user_id=user_id, plan_id=plan_id, day_id=day_id)
        if count_day_activities(session, day.id) >= MAX_ACTIVITY_POSITION:
            raise ServiceError(
                ErrorCode.VALIDATION_ERROR,
                f"A day can hold at most {MAX_ACTIVITY_POSITION} activities",
            )

        max_position = session.exec(
            select(sa.func.max(PlanActivity.position)).where(PlanActivity.day_id == day.id)
        ).one()
        activity = PlanActivity(
            day_id=day.id,
            title=clean_title,
            description=clean_description,
            duration_minutes=duration_minutes,
            transport_minutes=transport_minutes,
            position=(max_position or 0) + 1,
            created_at=now,
            updated_at=now,
        )
        session.add(activity)
        session.commit()
    except ServiceError as exc:
        session.rollback()
        return ServiceResult.from_error(exc)
    except sa.exc.SQLAlchemyError:
        return _internal_failure(session, "activity_create", plan_id=plan_id, day_id=day_id)

    logger.info("activity_created activity_id=%s day_id=%s position=%s", activity.id, day_id, activity.position)
    log_plan_edited(session, user_id=user_id, plan_id=plan_id)
    session.refresh(activity)
    return ServiceResult.success(activity)


def update_activity(
    session: Session,
    *,
    user_id: str,
    plan_id: str,
    activity_id: str,
    changes: ActivityChanges,
    now_iso: str | None = None,
) -> ServiceResult[PlanActivity]:
    """Update descriptive fields. Never touches position or day."""
    now = now_iso or utc_now_iso()
    try:
        if changes.is_empty():
            raise ServiceError(ErrorCode.VALIDATION_ERROR, "At least one field must be provided")

        _, _, activity = load_owned_activity(
            session,
            user_id=user_id,
            activity_id=activity_id,
            plan_id=plan_id,
        )
        if changes.title is not None:
            activity.title = _validate_title(changes.title)
        if changes.clear_description:
            activity.description = None
        elif changes.description is not None:
            activity.description = _validate_description(changes.description)
        if changes.duration_minutes is not None:
            activity.duration_minutes = _validate_range(changes.duration_minutes, DURATION_RANGE, "Duration")
        if changes.clear_transport:
            activity.transport_minutes = None
        elif changes.transport_minutes is not None:
            activity.transport_minutes = _validate_range(
                changes.transport_minutes, TRANSPORT_RANGE, "Transport time"
            )
        activity.updated_at = now
        session.add(activity)
        session.commit()
    except ServiceError as exc:
        session.rollback()
        return ServiceResult.from_error(exc)
    except sa.exc.SQLAlchemyError:
        return _internal_failure(session, "activity_update", activity_id=activity_id)

    log_plan_edited(session, user_id=user_id, plan_id=plan_id)
    session.refresh(activity)
    return ServiceResult.success(activity)


def delete_activity(
    session: Session,
    *,
    user_id: str,
    plan_id: str,
    activity_id: str,
    now_iso: str | None = None,
) -> ServiceResult[str]:
    """Delete an activity and close the gap it leaves in its day."""
    now = now_iso or utc_now_iso()
    try:
        _, day, activity = load_owned_activity(
            session,
            user_id=user_id,
            activity_id=activity_id,
            plan_id=plan_id,
        )
        removed_position = activity.position
        day_id = day.id
        session.delete(activity)
        session.flush()
        session.exec(
            sa.update(PlanActivity)
            .where(PlanActivity.day_id == day_id)
            .where(PlanActivity.position > removed_position)
            .values(position=PlanActivity.position - 1, updated_at=now)
        )
        session.commit()
    except ServiceError as exc:
        session.rollback()
        return ServiceResult.from_error(exc)
    except sa.exc.SQLAlchemyError:
        return _internal_failure(session, "activity_delete", activity_id=activity_id)

    logger.info("activity_deleted activity_id=%s day_id=%s", activity_id, day_id)
    log_plan_edited(session, user_id=user_id, plan_id=plan_id)
    return ServiceResult.success(activity_id)


def move_activity(
    session: Session,
    *,
    user_id: str,
    activity_id: str,
    target_day_id: str,
    target_position: object,
    plan_id: str | None = None,
    now_iso: str | None = None,
) -> ServiceResult[PlanActivity]:
    """Move an activity to ``target_position`` of ``target_day_id`` atomically.

    Validation, the ownership check and the renumbering run in one
    transaction, so either both affected days end up contiguous or nothing
    is written.
    """
    now = now_iso or utc_now_iso()
    try:
        request = validate_move_request(
            session,
            user_id=user_id,
            activity_id=activity_id,
            target_day_id=target_day_id,
            target_position=target_position,
            plan_id=plan_id,
        )
        activity = execute_reorder(
            session,
            activity_id=request.activity_id,
            target_day_id=request.target_day_id,
            target_position=request.target_position,
            now_iso=now,
        )
        session.commit()
    except ServiceError as exc:
        session.rollback()
        logger.info("activity_move_rejected activity_id=%s code=%s", activity_id, exc.code.value)
        return ServiceResult.from_error(exc)
    except sa.exc.SQLAlchemyError:
        return _internal_failure(session, "activity_move", activity_id=activity_id)

    log_plan_edited(session, user_id=user_id, plan_id=request.plan_id)
    session.refresh(activity)
    return ServiceResult.success(activity)
