from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum

from sqlalchemy import CheckConstraint, Column, Enum as SQLEnum, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

MAX_ACTIVITY_POSITION = 50
MAX_TRIP_DAYS = 30


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PlanEventType(StrEnum):
    PLAN_CREATED = "plan_created"
    PLAN_EDITED = "plan_edited"
    PLAN_DELETED = "plan_deleted"


class Settings(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value: str


class Plan(SQLModel, table=True):
    __tablename__ = "plans"
    __table_args__ = (
        CheckConstraint("length(name) BETWEEN 1 AND 140", name="ck_plans_name_length"),
        CheckConstraint(
            "length(destination_text) BETWEEN 1 AND 160",
            name="ck_plans_destination_length",
        ),
        CheckConstraint("date_end >= date_start", name="ck_plans_date_range"),
        CheckConstraint("people_count BETWEEN 1 AND 20", name="ck_plans_people_count"),
        CheckConstraint("length(note_text) <= 20000", name="ck_plans_note_length"),
        Index("ix_plans_owner_created", "owner_id", "created_at"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    owner_id: str
    name: str
    destination_text: str
    date_start: date
    date_end: date
    people_count: int = Field(default=1)
    note_text: str = Field(default="")
    created_at: str = Field(default_factory=_utc_now_iso)
    updated_at: str = Field(default_factory=_utc_now_iso)


class PlanDay(SQLModel, table=True):
    __tablename__ = "plan_days"
    __table_args__ = (
        CheckConstraint(f"day_index BETWEEN 1 AND {MAX_TRIP_DAYS}", name="ck_plan_days_day_index"),
        UniqueConstraint("plan_id", "day_index", name="uq_plan_days_plan_day_index"),
        UniqueConstraint("plan_id", "day_date", name="uq_plan_days_plan_day_date"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    plan_id: str = Field(foreign_key="plans.id", index=True)
    day_index: int
    day_date: date
    created_at: str = Field(default_factory=_utc_now_iso)
    updated_at: str = Field(default_factory=_utc_now_iso)


class PlanActivity(SQLModel, table=True):
    __tablename__ = "plan_activities"
    __table_args__ = (
        CheckConstraint("length(title) BETWEEN 1 AND 200", name="ck_plan_activities_title_length"),
        CheckConstraint(
            "description IS NULL OR length(description) <= 500",
            name="ck_plan_activities_description_length",
        ),
        CheckConstraint(
            "duration_minutes BETWEEN 5 AND 720",
            name="ck_plan_activities_duration_minutes",
        ),
        CheckConstraint(
            "transport_minutes IS NULL OR transport_minutes BETWEEN 0 AND 600",
            name="ck_plan_activities_transport_minutes",
        ),
        CheckConstraint(
            f"position BETWEEN 1 AND {MAX_ACTIVITY_POSITION}",
            name="ck_plan_activities_position",
        ),
        # Not unique: range shifts run as set-based UPDATEs.
        Index("ix_plan_activities_day_position", "day_id", "position"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    day_id: str = Field(foreign_key="plan_days.id")
    title: str
    description: str | None = None
    duration_minutes: int = Field(default=60)
    transport_minutes: int | None = None
    position: int
    created_at: str = Field(default_factory=_utc_now_iso)
    updated_at: str = Field(default_factory=_utc_now_iso)


class PlanEvent(SQLModel, table=True):
    __tablename__ = "plan_events"
    __table_args__ = (
        Index("ix_plan_events_user_created", "user_id", "created_at"),
        Index("ix_plan_events_type_created", "event_type", "created_at"),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    user_id: str
    plan_id: str | None = None
    event_type: PlanEventType = Field(
        sa_column=Column(
            SQLEnum(
                PlanEventType,
                name="plan_event_type",
                native_enum=False,
                create_constraint=True,
                values_callable=lambda enum_cls: [member.value for member in enum_cls],
            ),
            nullable=False,
        )
    )
    destination_text: str | None = None
    trip_length_days: int | None = None
    created_at: str = Field(default_factory=_utc_now_iso)
