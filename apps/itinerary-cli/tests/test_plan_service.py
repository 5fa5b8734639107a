from __future__ import annotations

from datetime import date

from sqlmodel import Session, SQLModel, select

from itinerary_cli.activity_service import create_activity
from itinerary_cli.config import upsert_setting
from itinerary_cli.db import build_engine
from itinerary_cli.events import list_plan_events
from itinerary_cli.models import PlanActivity, PlanDay, PlanEventType
from itinerary_cli.plan_service import (
    create_plan,
    day_warning,
    delete_plan,
    generate_plan_name,
    get_plan_tree,
    list_plans,
)
from itinerary_cli.results import ErrorCode

USER_ID = "6e5d4c3b-2a19-4f8e-b7d6-c5b4a3928170"
STRANGER_ID = "1a2b3c4d-5e6f-4a7b-8c9d-0e1f2a3b4c5d"


def _create_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'plans.sqlite'}")
    SQLModel.metadata.create_all(engine)
    return engine


def _create(session: Session, **overrides):
    params = {
        "user_id": USER_ID,
        "destination_text": "Porto",
        "date_start": date(2026, 9, 1),
        "date_end": date(2026, 9, 3),
    }
    params.update(overrides)
    return create_plan(session, **params)


def test_create_plan_builds_one_day_per_date(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        result = _create(session)

        assert result.ok
        plan = result.data
        assert plan.name == "Porto, 2026-09-01 – 2026-09-03"
        days = session.exec(select(PlanDay).where(PlanDay.plan_id == plan.id).order_by(PlanDay.day_index)).all()
        assert [(day.day_index, day.day_date) for day in days] == [
            (1, date(2026, 9, 1)),
            (2, date(2026, 9, 2)),
            (3, date(2026, 9, 3)),
        ]

        events = list_plan_events(session, user_id=USER_ID, plan_id=plan.id)
        assert len(events) == 1
        assert events[0].event_type == PlanEventType.PLAN_CREATED
        assert events[0].trip_length_days == 3


def test_create_plan_keeps_explicit_name(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        result = _create(session, name="  Family trip  ")

        assert result.data.name == "Family trip"


def test_create_plan_validates_dates(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        reversed_dates = _create(session, date_start=date(2026, 9, 5), date_end=date(2026, 9, 1))
        too_long = _create(session, date_start=date(2026, 9, 1), date_end=date(2026, 10, 1))
        longest = _create(session, date_start=date(2026, 9, 1), date_end=date(2026, 9, 30))

        assert reversed_dates.error_code == ErrorCode.VALIDATION_ERROR
        assert too_long.error_code == ErrorCode.VALIDATION_ERROR
        assert longest.ok


def test_create_plan_enforces_plan_limit(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        upsert_setting(session, "plan_limit", "2")
        assert _create(session).ok
        assert _create(session).ok

        result = _create(session)

        assert result.error_code == ErrorCode.FORBIDDEN
        assert _create(session, user_id=STRANGER_ID).ok


def test_list_plans_is_scoped_to_owner(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        _create(session, destination_text="Porto")
        _create(session, destination_text="Braga")
        _create(session, user_id=STRANGER_ID, destination_text="Faro")

        result = list_plans(session, user_id=USER_ID)

        assert result.ok
        assert sorted(plan.destination_text for plan in result.data) == ["Braga", "Porto"]
        assert len(list_plans(session, user_id=USER_ID, limit=1).data) == 1


def test_plan_tree_orders_activities_and_flags_packed_days(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        plan = _create(session).data
        day_id = get_plan_tree(session, user_id=USER_ID, plan_id=plan.id).data.days[0].id
        for title, minutes in (("Walking tour", 480), ("Port tasting", 200)):
            create_activity(
                session,
                user_id=USER_ID,
                plan_id=plan.id,
                day_id=day_id,
                title=title,
                duration_minutes=minutes,
                transport_minutes=30,
            )

        tree = get_plan_tree(session, user_id=USER_ID, plan_id=plan.id).data

        first_day = tree.days[0]
        assert [activity.title for activity in first_day.activities] == ["Walking tour", "Port tasting"]
        assert [activity.position for activity in first_day.activities] == [1, 2]
        assert first_day.total_duration_minutes == 740
        assert first_day.warning == "This day is quite packed (12.3 hours). Consider spacing activities."
        assert tree.days[1].warning is None
        assert tree.has_warnings


def test_day_warning_threshold_is_exclusive() -> None:
    assert day_warning(720, 720) is None
    assert day_warning(721, 720) == "This day is quite packed (12 hours). Consider spacing activities."


def test_generate_plan_name() -> None:
    assert generate_plan_name("Nice", date(2026, 1, 2), date(2026, 1, 4)) == "Nice, 2026-01-02 – 2026-01-04"


def test_get_plan_tree_errors(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        plan = _create(session).data

        assert get_plan_tree(session, user_id=STRANGER_ID, plan_id=plan.id).error_code == ErrorCode.FORBIDDEN
        assert get_plan_tree(session, user_id=USER_ID, plan_id="nope").error_code == ErrorCode.VALIDATION_ERROR
        assert (
            get_plan_tree(session, user_id=USER_ID, plan_id="11111111-2222-4333-8444-555555555555").error_code
            == ErrorCode.NOT_FOUND
        )


def test_delete_plan_removes_days_and_activities(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    with Session(engine) as session:
        plan = _create(session).data
        plan_id = plan.id
        day_id = get_plan_tree(session, user_id=USER_ID, plan_id=plan_id).data.days[0].id
        create_activity(session, user_id=USER_ID, plan_id=plan_id, day_id=day_id, title="Bridge walk")

        assert delete_plan(session, user_id=STRANGER_ID, plan_id=plan_id).error_code == ErrorCode.FORBIDDEN

        result = delete_plan(session, user_id=USER_ID, plan_id=plan_id)

        assert result.ok
        assert session.exec(select(PlanDay).where(PlanDay.plan_id == plan_id)).all() == []
        assert session.exec(select(PlanActivity)).all() == []
        assert get_plan_tree(session, user_id=USER_ID, plan_id=plan_id).error_code == ErrorCode.NOT_FOUND
        event_types = [event.event_type for event in list_plan_events(session, user_id=USER_ID, plan_id=plan_id)]
        assert event_types[-1] == PlanEventType.PLAN_DELETED
