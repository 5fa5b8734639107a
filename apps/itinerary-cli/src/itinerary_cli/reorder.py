"""Position renumbering for activity moves.

A move is classified once into a tagged operation and then applied:

- ``CrossDayMove``: close the gap in the source day, open a slot in the
  target day, relocate the activity;
- ``ShiftLater``: same day, later slot; rows in (current, target] move up;
- ``ShiftEarlier``: same day, earlier slot; rows in [target, current) move down;
- ``StayInPlace``: same slot; only the modification timestamp changes.

Each operation issues set-based UPDATEs, so a move touches O(n) rows of at
most two days and leaves both with positions exactly 1..N.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

import sqlalchemy as sa
from sqlmodel import Session, select

from itinerary_cli.models import MAX_ACTIVITY_POSITION, PlanActivity, PlanDay
from itinerary_cli.results import ErrorCode, ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrossDayMove:
    source_day_id: str
    source_position: int
    target_day_id: str
    target_position: int

    kind = "cross_day"

    def apply(self, session: Session, activity: PlanActivity, now_iso: str) -> None:
        session.exec(
            sa.update(PlanActivity)
            .where(PlanActivity.day_id == self.source_day_id)
            .where(PlanActivity.position > self.source_position)
            .values(position=PlanActivity.position - 1, updated_at=now_iso)
        )
        session.exec(
            sa.update(PlanActivity)
            .where(PlanActivity.day_id == self.target_day_id)
            .where(PlanActivity.position >= self.target_position)
            .values(position=PlanActivity.position + 1, updated_at=now_iso)
        )
        activity.day_id = self.target_day_id
        activity.position = self.target_position
        activity.updated_at = now_iso
        session.add(activity)


@dataclass(frozen=True)
class ShiftLater:
    day_id: str
    from_position: int
    to_position: int

    kind = "shift_later"

    def apply(self, session: Session, activity: PlanActivity, now_iso: str) -> None:
        session.exec(
            sa.update(PlanActivity)
            .where(PlanActivity.day_id == self.day_id)
            .where(PlanActivity.position > self.from_position)
            .where(PlanActivity.position <= self.to_position)
            .where(PlanActivity.id != activity.id)
            .values(position=PlanActivity.position - 1, updated_at=now_iso)
        )
        activity.position = self.to_position
        activity.updated_at = now_iso
        session.add(activity)


@dataclass(frozen=True)
class ShiftEarlier:
    day_id: str
    from_position: int
    to_position: int

    kind = "shift_earlier"

    def apply(self, session: Session, activity: PlanActivity, now_iso: str) -> None:
        session.exec(
            sa.update(PlanActivity)
            .where(PlanActivity.day_id == self.day_id)
            .where(PlanActivity.position >= self.to_position)
            .where(PlanActivity.position < self.from_position)
            .where(PlanActivity.id != activity.id)
            .values(position=PlanActivity.position + 1, updated_at=now_iso)
        )
        activity.position = self.to_position
        activity.updated_at = now_iso
        session.add(activity)


@dataclass(frozen=True)
class StayInPlace:
    day_id: str
    position: int

    kind = "stay"

    def apply(self, session: Session, activity: PlanActivity, now_iso: str) -> None:
        activity.updated_at = now_iso
        session.add(activity)


ReorderOperation = Union[CrossDayMove, ShiftLater, ShiftEarlier, StayInPlace]


def plan_reorder(
    *,
    current_day_id: str,
    current_position: int,
    target_day_id: str,
    target_position: int,
) -> ReorderOperation:
    if current_day_id != target_day_id:
        return CrossDayMove(
            source_day_id=current_day_id,
            source_position=current_position,
            target_day_id=target_day_id,
            target_position=target_position,
        )
    if target_position > current_position:
        return ShiftLater(day_id=current_day_id, from_position=current_position, to_position=target_position)
    if target_position < current_position:
        return ShiftEarlier(day_id=current_day_id, from_position=current_position, to_position=target_position)
    return StayInPlace(day_id=current_day_id, position=current_position)


def count_day_activities(session: Session, day_id: str) -> int:
    return session.exec(
        select(sa.func.count()).select_from(PlanActivity).where(PlanActivity.day_id == day_id)
    ).one()


def execute_reorder(
    session: Session,
    *,
    activity_id: str,
    target_day_id: str,
    target_position: int,
    now_iso: str,
) -> PlanActivity:
    """Relocate an activity and renumber its source and target days.

    Must run inside the caller's transaction; the caller commits or rolls
    back. ``target_position`` must already be within 1..MAX_ACTIVITY_POSITION.
    A position past the end of the destination list is treated as "append".
    """
    if target_position < 1 or target_position > MAX_ACTIVITY_POSITION:
        raise ServiceError(
            ErrorCode.VALIDATION_ERROR,
            f"Target position must be between 1 and {MAX_ACTIVITY_POSITION}",
        )

    activity = session.exec(
        select(PlanActivity)
        .where(PlanActivity.id == activity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if activity is None:
        raise ServiceError(ErrorCode.NOT_FOUND, "Activity not found")

    current_day = session.get(PlanDay, activity.day_id)
    target_day = session.get(PlanDay, target_day_id)
    if current_day is None or target_day is None:
        raise ServiceError(ErrorCode.NOT_FOUND, "Target day not found")
    if target_day.plan_id != current_day.plan_id:
        raise ServiceError(ErrorCode.VALIDATION_ERROR, "Target day belongs to a different plan")

    if target_day.id == current_day.id:
        last_slot = count_day_activities(session, current_day.id)
    else:
        target_count = count_day_activities(session, target_day.id)
        if target_count >= MAX_ACTIVITY_POSITION:
            raise ServiceError(
                ErrorCode.VALIDATION_ERROR,
                f"Target day already holds {MAX_ACTIVITY_POSITION} activities",
            )
        last_slot = target_count + 1

    operation = plan_reorder(
        current_day_id=current_day.id,
        current_position=activity.position,
        target_day_id=target_day.id,
        target_position=min(target_position, last_slot),
    )
    operation.apply(session, activity, now_iso)
    session.flush()

    logger.info(
        "activity_reordered activity_id=%s kind=%s from_day=%s to_day=%s position=%s",
        activity_id,
        operation.kind,
        current_day.id,
        target_day.id,
        activity.position,
    )
    return activity
