"""Denormalised Plan -> Day -> Activity tree held by the client-side cache."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass
class ActivityView:
    id: str
    title: str
    duration_minutes: int
    position: int
    transport_minutes: int | None = None
    description: str | None = None
    updated_at: str | None = None


@dataclass
class DayView:
    id: str
    day_index: int
    day_date: date
    activities: list[ActivityView] = field(default_factory=list)
    total_duration_minutes: int = 0
    warning: str | None = None

    def index_of(self, activity_id: str) -> int | None:
        for index, activity in enumerate(self.activities):
            if activity.id == activity_id:
                return index
        return None

    def renumber(self) -> None:
        """Rewrite positions as 1..N from the current list order."""
        for index, activity in enumerate(self.activities, start=1):
            activity.position = index


@dataclass
class PlanTree:
    id: str
    name: str
    destination_text: str
    date_start: date
    date_end: date
    days: list[DayView] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return any(day.warning is not None for day in self.days)

    def find_day(self, day_id: str) -> DayView | None:
        for day in self.days:
            if day.id == day_id:
                return day
        return None


def locate_activity(days: list[DayView], activity_id: str) -> tuple[DayView, int] | None:
    """Return (owning day, 0-based index) for an activity id, or None."""
    for day in days:
        index = day.index_of(activity_id)
        if index is not None:
            return day, index
    return None
