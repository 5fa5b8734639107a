"""Optimistic cache mutator for activity moves.

A move is modelled as three explicit steps on an injected ``PlanCache``:

- ``apply``: snapshot the cached tree, splice the activity into its target
  slot and write the guess back before the request is sent;
- ``commit``: replace the guess with the canonical tree fetched afterwards;
- ``rollback``: restore the exact snapshot taken by ``apply``.

Only one move per plan may be in flight at a time. Overlapping moves would
each hold an independent snapshot, and a late rollback could then clobber
a newer optimistic state, so a second ``apply`` for the same plan raises
``MutationInFlightError`` until the first one is settled.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from itinerary_cli.plan_tree import PlanTree, locate_activity
from itinerary_cli.results import ErrorCode, ServiceResult

logger = logging.getLogger(__name__)


class MutationInFlightError(RuntimeError):
    """Raised when a move is applied while another move on the same plan is unsettled."""


class MoveTransport(Protocol):
    def __call__(
        self,
        *,
        plan_id: str,
        activity_id: str,
        target_day_id: str,
        target_position: int,
    ) -> ServiceResult[Any]: ...


class PlanFetcher(Protocol):
    def __call__(self, plan_id: str) -> PlanTree | None: ...


class PlanCache:
    """In-memory store of plan trees keyed by plan id."""

    def __init__(self) -> None:
        self._trees: dict[str, PlanTree] = {}

    def get(self, plan_id: str) -> PlanTree | None:
        return self._trees.get(plan_id)

    def set(self, plan_id: str, tree: PlanTree) -> None:
        self._trees[plan_id] = tree

    def invalidate(self, plan_id: str) -> None:
        self._trees.pop(plan_id, None)


@dataclass(frozen=True)
class MoveSnapshot:
    plan_id: str
    activity_id: str
    target_day_id: str
    target_position: int
    previous: PlanTree | None
    spliced: bool


class OptimisticMoveMutator:
    def __init__(self, cache: PlanCache, *, send: MoveTransport, refetch: PlanFetcher) -> None:
        self._cache = cache
        self._send = send
        self._refetch = refetch
        self._in_flight: dict[str, MoveSnapshot] = {}

    def is_in_flight(self, plan_id: str) -> bool:
        return plan_id in self._in_flight

    def apply(
        self,
        plan_id: str,
        *,
        activity_id: str,
        target_day_id: str,
        target_position: int,
    ) -> MoveSnapshot:
        if plan_id in self._in_flight:
            raise MutationInFlightError(f"A move for plan {plan_id} is already in flight.")

        current = self._cache.get(plan_id)
        previous = copy.deepcopy(current) if current is not None else None
        spliced = False

        if current is not None:
            updated = copy.deepcopy(current)
            spliced = _splice(updated, activity_id, target_day_id, target_position)
            if spliced:
                self._cache.set(plan_id, updated)

        snapshot = MoveSnapshot(
            plan_id=plan_id,
            activity_id=activity_id,
            target_day_id=target_day_id,
            target_position=target_position,
            previous=previous,
            spliced=spliced,
        )
        self._in_flight[plan_id] = snapshot
        logger.debug(
            "optimistic_move_applied plan_id=%s activity_id=%s spliced=%s",
            plan_id,
            activity_id,
            spliced,
        )
        return snapshot

    def commit(self, snapshot: MoveSnapshot) -> None:
        """Replace the optimistic guess with the canonical tree.

        The move is already persisted here, so a failed refetch only drops
        the cached tree; the next read loads it again.
        """
        self._in_flight.pop(snapshot.plan_id, None)
        try:
            fresh = self._refetch(snapshot.plan_id)
        except Exception:
            logger.exception("optimistic_move_refetch_failed plan_id=%s", snapshot.plan_id)
            self._cache.invalidate(snapshot.plan_id)
            return
        if fresh is None:
            self._cache.invalidate(snapshot.plan_id)
            return
        self._cache.set(snapshot.plan_id, fresh)

    def rollback(self, snapshot: MoveSnapshot) -> None:
        self._in_flight.pop(snapshot.plan_id, None)
        if snapshot.previous is None:
            self._cache.invalidate(snapshot.plan_id)
        else:
            self._cache.set(snapshot.plan_id, snapshot.previous)
        logger.warning(
            "optimistic_move_rolled_back plan_id=%s activity_id=%s",
            snapshot.plan_id,
            snapshot.activity_id,
        )

    def move(
        self,
        plan_id: str,
        *,
        activity_id: str,
        target_day_id: str,
        target_position: int,
    ) -> ServiceResult[Any]:
        """Apply optimistically, send, then commit or roll back."""
        snapshot = self.apply(
            plan_id,
            activity_id=activity_id,
            target_day_id=target_day_id,
            target_position=target_position,
        )
        try:
            result = self._send(
                plan_id=plan_id,
                activity_id=activity_id,
                target_day_id=target_day_id,
                target_position=target_position,
            )
        except Exception:
            logger.exception("optimistic_move_send_failed plan_id=%s activity_id=%s", plan_id, activity_id)
            self.rollback(snapshot)
            return ServiceResult.failure(ErrorCode.INTERNAL_ERROR, "Failed to move activity")

        if result.ok:
            self.commit(snapshot)
        else:
            self.rollback(snapshot)
        return result


def _splice(tree: PlanTree, activity_id: str, target_day_id: str, target_position: int) -> bool:
    """Move an activity inside ``tree`` in place. Returns False when nothing was spliced."""
    located = locate_activity(tree.days, activity_id)
    if located is None:
        return False
    target_day = tree.find_day(target_day_id)
    if target_day is None:
        return False

    source_day, source_index = located
    activity = source_day.activities.pop(source_index)
    target_day.activities.insert(max(target_position - 1, 0), activity)

    source_day.renumber()
    if target_day is not source_day:
        target_day.renumber()
    return True
