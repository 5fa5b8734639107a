from __future__ import annotations

from datetime import date

import pytest

from itinerary_cli.plan_cache import MutationInFlightError, OptimisticMoveMutator, PlanCache
from itinerary_cli.plan_tree import ActivityView, DayView, PlanTree
from itinerary_cli.results import ErrorCode, ServiceResult

PLAN_ID = "plan-1"


def _tree() -> PlanTree:
    def day(day_id: str, day_index: int, *activity_ids: str) -> DayView:
        return DayView(
            id=day_id,
            day_index=day_index,
            day_date=date(2026, 6, day_index),
            activities=[
                ActivityView(id=activity_id, title=activity_id.upper(), duration_minutes=30, position=position)
                for position, activity_id in enumerate(activity_ids, start=1)
            ],
        )

    return PlanTree(
        id=PLAN_ID,
        name="Lisbon",
        destination_text="Lisbon",
        date_start=date(2026, 6, 1),
        date_end=date(2026, 6, 2),
        days=[day("day1", 1, "a1", "a2", "a3"), day("day2", 2, "a4")],
    )


def _ids(tree: PlanTree, day_id: str) -> list[str]:
    day = tree.find_day(day_id)
    assert day is not None
    return [activity.id for activity in day.activities]


def _positions(tree: PlanTree, day_id: str) -> list[int]:
    day = tree.find_day(day_id)
    assert day is not None
    return [activity.position for activity in day.activities]


class _Transport:
    def __init__(self, result: ServiceResult | None = None, error: Exception | None = None) -> None:
        self.result = result or ServiceResult.success(None)
        self.error = error
        self.calls: list[dict] = []

    def __call__(self, **kwargs) -> ServiceResult:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def test_apply_splices_cross_day_and_renumbers() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    snapshot = mutator.apply(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)

    tree = cache.get(PLAN_ID)
    assert snapshot.spliced is True
    assert _ids(tree, "day1") == ["a2", "a3"]
    assert _ids(tree, "day2") == ["a1", "a4"]
    assert _positions(tree, "day1") == [1, 2]
    assert _positions(tree, "day2") == [1, 2]
    assert _ids(snapshot.previous, "day1") == ["a1", "a2", "a3"]


def test_apply_same_day_move() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    mutator.apply(PLAN_ID, activity_id="a1", target_day_id="day1", target_position=3)

    assert _ids(cache.get(PLAN_ID), "day1") == ["a2", "a3", "a1"]


def test_rollback_restores_snapshot() -> None:
    cache = PlanCache()
    original = _tree()
    cache.set(PLAN_ID, original)
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    snapshot = mutator.apply(PLAN_ID, activity_id="a2", target_day_id="day2", target_position=2)
    mutator.rollback(snapshot)

    assert cache.get(PLAN_ID) == original
    assert mutator.is_in_flight(PLAN_ID) is False


def test_commit_replaces_cache_with_refetched_tree() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    canonical = _tree()
    canonical.name = "Lisbon (server)"
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: canonical)

    snapshot = mutator.apply(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)
    mutator.commit(snapshot)

    assert cache.get(PLAN_ID) is canonical


def test_commit_invalidates_when_refetch_returns_nothing() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    snapshot = mutator.apply(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)
    mutator.commit(snapshot)

    assert cache.get(PLAN_ID) is None


def test_apply_without_cached_tree_is_tolerated() -> None:
    cache = PlanCache()
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    snapshot = mutator.apply(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)

    assert snapshot.previous is None
    assert snapshot.spliced is False
    mutator.rollback(snapshot)
    assert cache.get(PLAN_ID) is None


def test_apply_with_unknown_activity_leaves_cache_untouched() -> None:
    cache = PlanCache()
    original = _tree()
    cache.set(PLAN_ID, original)
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    snapshot = mutator.apply(PLAN_ID, activity_id="ghost", target_day_id="day2", target_position=1)

    assert snapshot.spliced is False
    assert cache.get(PLAN_ID) == original


def test_apply_with_unknown_target_day_keeps_source_intact() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    snapshot = mutator.apply(PLAN_ID, activity_id="a1", target_day_id="day9", target_position=1)

    assert snapshot.spliced is False
    assert _ids(cache.get(PLAN_ID), "day1") == ["a1", "a2", "a3"]


def test_second_apply_for_same_plan_is_rejected_until_settled() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    mutator = OptimisticMoveMutator(cache, send=_Transport(), refetch=lambda plan_id: None)

    snapshot = mutator.apply(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)
    with pytest.raises(MutationInFlightError):
        mutator.apply(PLAN_ID, activity_id="a2", target_day_id="day2", target_position=1)

    mutator.rollback(snapshot)
    mutator.apply(PLAN_ID, activity_id="a2", target_day_id="day2", target_position=1)
    assert mutator.is_in_flight(PLAN_ID) is True


def test_move_commits_on_success() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    canonical = _tree()
    transport = _Transport(ServiceResult.success("moved"))
    mutator = OptimisticMoveMutator(cache, send=transport, refetch=lambda plan_id: canonical)

    result = mutator.move(PLAN_ID, activity_id="a3", target_day_id="day1", target_position=1)

    assert result.ok
    assert transport.calls == [
        {"plan_id": PLAN_ID, "activity_id": "a3", "target_day_id": "day1", "target_position": 1}
    ]
    assert cache.get(PLAN_ID) is canonical
    assert mutator.is_in_flight(PLAN_ID) is False


def test_move_rolls_back_on_failure_result() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    transport = _Transport(ServiceResult.failure(ErrorCode.FORBIDDEN, "nope"))
    mutator = OptimisticMoveMutator(cache, send=transport, refetch=lambda plan_id: _tree())

    result = mutator.move(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)

    assert result.error_code == ErrorCode.FORBIDDEN
    assert _ids(cache.get(PLAN_ID), "day1") == ["a1", "a2", "a3"]
    assert mutator.is_in_flight(PLAN_ID) is False


def test_move_rolls_back_when_transport_raises() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    transport = _Transport(error=ConnectionError("offline"))
    mutator = OptimisticMoveMutator(cache, send=transport, refetch=lambda plan_id: _tree())

    result = mutator.move(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)

    assert result.error_code == ErrorCode.INTERNAL_ERROR
    assert _ids(cache.get(PLAN_ID), "day2") == ["a4"]
    assert mutator.is_in_flight(PLAN_ID) is False


def test_move_survives_refetch_failure_after_success() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    transport = _Transport(ServiceResult.success("moved"))

    def refetch(plan_id: str) -> PlanTree | None:
        raise ConnectionError("refetch down")

    mutator = OptimisticMoveMutator(cache, send=transport, refetch=refetch)

    result = mutator.move(PLAN_ID, activity_id="a1", target_day_id="day2", target_position=1)

    assert result.ok
    assert result.data == "moved"
    assert cache.get(PLAN_ID) is None
    assert mutator.is_in_flight(PLAN_ID) is False


def test_move_still_sends_when_activity_is_not_cached() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    transport = _Transport(ServiceResult.success("moved"))
    mutator = OptimisticMoveMutator(cache, send=transport, refetch=lambda plan_id: None)

    result = mutator.move(PLAN_ID, activity_id="ghost", target_day_id="day2", target_position=1)

    assert result.ok
    assert len(transport.calls) == 1
    assert transport.calls[0]["activity_id"] == "ghost"


def test_move_still_sends_when_target_day_is_not_cached() -> None:
    cache = PlanCache()
    cache.set(PLAN_ID, _tree())
    transport = _Transport(ServiceResult.failure(ErrorCode.NOT_FOUND, "Target day not found"))
    mutator = OptimisticMoveMutator(cache, send=transport, refetch=lambda plan_id: _tree())

    result = mutator.move(PLAN_ID, activity_id="a1", target_day_id="day9", target_position=1)

    assert result.error_code == ErrorCode.NOT_FOUND
    assert len(transport.calls) == 1
    assert transport.calls[0]["target_day_id"] == "day9"
    assert _ids(cache.get(PLAN_ID), "day1") == ["a1", "a2", "a3"]
