from __future__ import annotations

import logging
from datetime import date

import sqlalchemy as sa
from sqlmodel import Session, select

from itinerary_cli.config import get_int_setting
from itinerary_cli.events import log_event
from itinerary_cli.models import MAX_TRIP_DAYS, Plan, PlanActivity, PlanDay, PlanEventType
from itinerary_cli.move_gate import load_owned_plan, require_uuid
from itinerary_cli.plan_tree import ActivityView, DayView, PlanTree
from itinerary_cli.results import ErrorCode, ServiceError, ServiceResult
from itinerary_cli.timeutil import format_hours, iter_trip_dates, trip_length_days, utc_now_iso

logger = logging.getLogger(__name__)

NAME_MAX_LEN = 140
DESTINATION_MAX_LEN = 160
NOTE_MAX_LEN = 20000
PEOPLE_RANGE = (1, 20)


def generate_plan_name(destination: str, date_start: date, date_end: date) -> str:
    return f"{destination}, {date_start.isoformat()} – {date_end.isoformat()}"


def day_warning(total_duration_minutes: int, threshold_minutes: int) -> str | None:
    if total_duration_minutes <= threshold_minutes:
        return None
    return (
        f"This day is quite packed ({format_hours(total_duration_minutes)} hours). "
        "Consider spacing activities."
    )


def count_user_plans(session: Session, user_id: str) -> int:
    return session.exec(select(sa.func.count()).select_from(Plan).where(Plan.owner_id == user_id)).one()


def create_plan(
    session: Session,
    *,
    user_id: str,
    destination_text: str,
    date_start: date,
    date_end: date,
    name: str | None = None,
    people_count: int = 1,
    note_text: str = "",
    now_iso: str | None = None,
) -> ServiceResult[Plan]:
    """Create a plan with one empty day per calendar date."""
    now = now_iso or utc_now_iso()
    try:
        require_uuid(user_id, "user")
        destination = destination_text.strip()
        if not destination or len(destination) > DESTINATION_MAX_LEN:
            raise ServiceError(
                ErrorCode.VALIDATION_ERROR,
                f"Destination must be 1-{DESTINATION_MAX_LEN} characters",
            )
        if date_end < date_start:
            raise ServiceError(ErrorCode.VALIDATION_ERROR, "End date must not be before start date")
        length_days = trip_length_days(date_start, date_end)
        if length_days > MAX_TRIP_DAYS:
            raise ServiceError(ErrorCode.VALIDATION_ERROR, f"A trip can last at most {MAX_TRIP_DAYS} days")
        if people_count < PEOPLE_RANGE[0] or people_count > PEOPLE_RANGE[1]:
            raise ServiceError(
                ErrorCode.VALIDATION_ERROR,
                f"People count must be between {PEOPLE_RANGE[0]} and {PEOPLE_RANGE[1]}",
            )
        if len(note_text) > NOTE_MAX_LEN:
            raise ServiceError(ErrorCode.VALIDATION_ERROR, f"Note must be at most {NOTE_MAX_LEN} characters")

        plan_name = (name or "").strip() or generate_plan_name(destination, date_start, date_end)
        if len(plan_name) > NAME_MAX_LEN:
            raise ServiceError(ErrorCode.VALIDATION_ERROR, f"Name must be at most {NAME_MAX_LEN} characters")

        plan_limit = get_int_setting(session, "plan_limit")
        if count_user_plans(session, user_id) >= plan_limit:
            raise ServiceError(ErrorCode.FORBIDDEN, f"Plan limit reached ({plan_limit} plans)")

        plan = Plan(
            owner_id=user_id,
            name=plan_name,
            destination_text=destination,
            date_start=date_start,
            date_end=date_end,
            people_count=people_count,
            note_text=note_text,
            created_at=now,
            updated_at=now,
        )
        session.add(plan)
        session.flush()
        for day_index, day_date in enumerate(iter_trip_dates(date_start, date_end), start=1):
            session.add(
                PlanDay(
                    plan_id=plan.id,
                    day_index=day_index,
                    day_date=day_date,
                    created_at=now,
                    updated_at=now,
                )
            )
        session.commit()
    except ServiceError as exc:
        session.rollback()
        return ServiceResult.from_error(exc)
    except sa.exc.SQLAlchemyError:
        session.rollback()
        logger.exception("plan_create_failed user_id=%s", user_id)
        return ServiceResult.internal_error()

    logger.info("plan_created plan_id=%s days=%s", plan.id, length_days)
    log_event(
        session,
        user_id=user_id,
        event_type=PlanEventType.PLAN_CREATED,
        plan_id=plan.id,
        destination_text=destination,
        trip_length_days=length_days,
    )
    session.refresh(plan)
    return ServiceResult.success(plan)


def list_plans(
    session: Session,
    *,
    user_id: str,
    limit: int = 10,
    offset: int = 0,
) -> ServiceResult[list[Plan]]:
    """Owner's plans, newest first. Out-of-range paging values fall back to defaults."""
    if limit < 1 or limit > 100:
        limit = 10
    if offset < 0:
        offset = 0
    try:
        require_uuid(user_id, "user")
        plans = session.exec(
            select(Plan)
            .where(Plan.owner_id == user_id)
            .order_by(Plan.created_at.desc(), Plan.id)  # type: ignore[attr-defined]
            .offset(offset)
            .limit(limit)
        ).all()
    except ServiceError as exc:
        return ServiceResult.from_error(exc)
    return ServiceResult.success(list(plans))


def build_plan_tree(session: Session, plan: Plan) -> PlanTree:
    warning_threshold = get_int_setting(session, "day_warning_min")
    days = session.exec(
        select(PlanDay).where(PlanDay.plan_id == plan.id).order_by(PlanDay.day_index)
    ).all()
    day_ids = [day.id for day in days]
    activities_by_day: dict[str, list[ActivityView]] = {day_id: [] for day_id in day_ids}
    if day_ids:
        rows = session.exec(
            select(PlanActivity)
            .where(PlanActivity.day_id.in_(day_ids))  # type: ignore[attr-defined]
            .order_by(PlanActivity.day_id, PlanActivity.position)
        ).all()
        for row in rows:
            activities_by_day[row.day_id].append(
                ActivityView(
                    id=row.id,
                    title=row.title,
                    duration_minutes=row.duration_minutes,
                    position=row.position,
                    transport_minutes=row.transport_minutes,
                    description=row.description,
                    updated_at=row.updated_at,
                )
            )

    day_views: list[DayView] = []
    for day in days:
        activities = activities_by_day[day.id]
        total = sum(item.duration_minutes + (item.transport_minutes or 0) for item in activities)
        day_views.append(
            DayView(
                id=day.id,
                day_index=day.day_index,
                day_date=day.day_date,
                activities=activities,
                total_duration_minutes=total,
                warning=day_warning(total, warning_threshold),
            )
        )

    return PlanTree(
        id=plan.id,
        name=plan.name,
        destination_text=plan.destination_text,
        date_start=plan.date_start,
        date_end=plan.date_end,
        days=day_views,
    )


def get_plan_tree(session: Session, *, user_id: str, plan_id: str) -> ServiceResult[PlanTree]:
    try:
        plan = load_owned_plan(session, user_id=user_id, plan_id=plan_id)
        tree = build_plan_tree(session, plan)
    except ServiceError as exc:
        return ServiceResult.from_error(exc)
    except sa.exc.SQLAlchemyError:
        session.rollback()
        logger.exception("plan_fetch_failed plan_id=%s", plan_id)
        return ServiceResult.internal_error("Failed to fetch plan details")
    return ServiceResult.success(tree)


def delete_plan(session: Session, *, user_id: str, plan_id: str) -> ServiceResult[str]:
    try:
        plan = load_owned_plan(session, user_id=user_id, plan_id=plan_id)
        day_ids = session.exec(select(PlanDay.id).where(PlanDay.plan_id == plan.id)).all()
        if day_ids:
            session.exec(sa.delete(PlanActivity).where(PlanActivity.day_id.in_(day_ids)))  # type: ignore[attr-defined]
        session.exec(sa.delete(PlanDay).where(PlanDay.plan_id == plan.id))
        session.delete(plan)
        session.commit()
    except ServiceError as exc:
        session.rollback()
        return ServiceResult.from_error(exc)
    except sa.exc.SQLAlchemyError:
        session.rollback()
        logger.exception("plan_delete_failed plan_id=%s", plan_id)
        return ServiceResult.internal_error()

    logger.info("plan_deleted plan_id=%s", plan_id)
    log_event(session, user_id=user_id, event_type=PlanEventType.PLAN_DELETED, plan_id=plan_id)
    return ServiceResult.success(plan_id)
