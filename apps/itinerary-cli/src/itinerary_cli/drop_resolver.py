from __future__ import annotations

from dataclasses import dataclass

from itinerary_cli.plan_tree import DayView, locate_activity


@dataclass(frozen=True)
class DropTarget:
    target_day_id: str
    target_position: int


def resolve_drop(activity_id: str, over_id: str, days: list[DayView]) -> DropTarget | None:
    """Infer the intended (day, 1-based position) for a drag released over ``over_id``.

    ``over_id`` may name another activity or a day container. Returns None
    when nothing should move: unknown dragged activity, unknown drop target,
    or the sole activity of a day dropped back onto its own day.
    """
    source = locate_activity(days, activity_id)
    if source is None:
        return None
    source_day, _ = source

    over_activity = locate_activity(days, over_id)
    if over_activity is not None:
        over_day, over_index = over_activity
        if over_day.id == source_day.id:
            # Take the target's slot; everything in between shifts.
            target_position = over_index + 1
        else:
            # Insert immediately after the target.
            target_position = over_index + 2
        return _clamped(over_day.id, target_position)

    for day in days:
        if day.id != over_id:
            continue
        if day.id == source_day.id and len(source_day.activities) == 1:
            return None
        return _clamped(day.id, len(day.activities) + 1)

    return None


def _clamped(day_id: str, target_position: int) -> DropTarget:
    return DropTarget(target_day_id=day_id, target_position=max(target_position, 1))
