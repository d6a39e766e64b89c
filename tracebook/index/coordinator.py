"""Fetch coordinator: decides which collections to fetch and fetches them.

Planning is a pure function (reconcile) over an explicit FetchCoordinatorState.
Execution (FetchCoordinator.run) walks one plan sequentially through the place
store, writes each snapshot into the CollectionCache, and stops between
collections once the pass's CancellationToken fires.

Invariants:
  - Every planned id is marked fetched before any await, so a second
    reconcile while fetches are outstanding never plans it again.
  - A failed fetch caches an empty list; the collection stays indexed.
  - The refresh throttle is global: one timestamp for all collections,
    moved only by a pass that re-fetches an already-fetched empty collection.
"""

import itertools
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from tracebook.contracts.maps_v1 import Collection, Place
from tracebook.core.config import config
from tracebook.core.logger import logger
from tracebook.index.cache import CollectionCache
from tracebook.index.interface import PlaceStore


@dataclass(frozen=True)
class FetchCoordinatorState:
    fetched: frozenset[str] = frozenset()
    in_flight: frozenset[str] = frozenset()
    last_global_refresh: float | None = None  # ms; None = never refreshed

    def release(self, ids: Iterable[str]) -> "FetchCoordinatorState":
        """Forget ids entirely so the next reconcile plans them again."""
        ids = frozenset(ids)
        return replace(
            self, fetched=self.fetched - ids, in_flight=self.in_flight - ids
        )

    def complete(self, collection_id: str) -> "FetchCoordinatorState":
        return replace(self, in_flight=self.in_flight - {collection_id})


def _throttle_open(
    state: FetchCoordinatorState, now: float, throttle_ms: float
) -> bool:
    if state.last_global_refresh is None:
        return True
    return now - state.last_global_refresh > throttle_ms


def reconcile(
    state: FetchCoordinatorState,
    candidates: Iterable[Collection],
    cache: CollectionCache,
    active_id: str | None,
    search_focused: bool,
    now: float,
    throttle_ms: float | None = None,
) -> tuple[FetchCoordinatorState, list[Collection]]:
    """Plan one reconciliation pass. Returns (new state, ordered fetch plan)."""
    if throttle_ms is None:
        throttle_ms = config.refresh_throttle_ms
    refresh_allowed = search_focused and _throttle_open(state, now, throttle_ms)

    fetched = set(state.fetched)
    plan: list[Collection] = []
    planned: set[str] = set()
    refreshed = False
    for c in candidates:
        if c.id == active_id or c.id in planned:
            continue
        if c.id not in fetched:
            plan.append(c)
            planned.add(c.id)
        elif (
            refresh_allowed
            and c.id not in state.in_flight
            and not cache.places(c.id)
        ):
            fetched.discard(c.id)
            plan.append(c)
            planned.add(c.id)
            refreshed = True

    if not plan:
        return state, plan

    return (
        FetchCoordinatorState(
            fetched=frozenset(fetched | planned),
            in_flight=state.in_flight | planned,
            last_global_refresh=now if refreshed else state.last_global_refresh,
        ),
        plan,
    )


class CancellationToken:
    """Cooperative cancellation flag checked between awaits."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


@dataclass
class FetchPassReport:
    fetched: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    discarded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "fetched": list(self.fetched),
            "failed": list(self.failed),
            "discarded": list(self.discarded),
            "skipped": list(self.skipped),
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class FetchPass:
    pass_id: int
    plan: list[Collection]
    token: CancellationToken = field(default_factory=CancellationToken)
    started: set[str] = field(default_factory=set)
    report: FetchPassReport = field(default_factory=FetchPassReport)

    @property
    def collection_ids(self) -> list[str]:
        return [c.id for c in self.plan]


def keep_visited(places: Iterable[Place]) -> list[Place]:
    """Drop orphaned places (no visits); they are cleaned up elsewhere."""
    return [p for p in places if p.visits]


class FetchCoordinator:
    """Owns the reconciliation state and executes fetch plans."""

    def __init__(
        self,
        store: PlaceStore,
        cache: CollectionCache,
        throttle_ms: float | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._store = store
        self._cache = cache
        self._throttle_ms = (
            throttle_ms if throttle_ms is not None else config.refresh_throttle_ms
        )
        self._clock = clock or (lambda: time.monotonic() * 1000)
        self._pass_ids = itertools.count(1)
        self.state = FetchCoordinatorState()

    @property
    def cache(self) -> CollectionCache:
        return self._cache

    def reconcile(
        self,
        candidates: Iterable[Collection],
        active_id: str | None,
        search_focused: bool,
        now: float | None = None,
    ) -> FetchPass:
        """Plan a pass and commit the new state. The plan may be empty."""
        self.state, plan = reconcile(
            self.state,
            candidates,
            self._cache,
            active_id,
            search_focused,
            self._clock() if now is None else now,
            self._throttle_ms,
        )
        fetch_pass = FetchPass(pass_id=next(self._pass_ids), plan=plan)
        if plan:
            logger.fetch_plan(fetch_pass.pass_id, fetch_pass.collection_ids, search_focused)
        return fetch_pass

    def cancel(self, fetch_pass: FetchPass) -> None:
        """Stop a pass; ids it never started become plannable again at once."""
        if fetch_pass.token.cancelled:
            return
        fetch_pass.token.cancel()
        unstarted = [cid for cid in fetch_pass.collection_ids if cid not in fetch_pass.started]
        if unstarted:
            self.state = self.state.release(unstarted)
            fetch_pass.report.skipped.extend(unstarted)

    async def run(self, fetch_pass: FetchPass) -> FetchPassReport:
        """Fetch the plan one collection at a time. Never raises for store errors."""
        logger.set_pass(fetch_pass.pass_id)
        report = fetch_pass.report
        t0 = time.monotonic()
        for collection in fetch_pass.plan:
            if fetch_pass.token.cancelled:
                break
            fetch_pass.started.add(collection.id)
            places, ok = await self._fetch_one(collection)
            if fetch_pass.token.cancelled:
                self.state = self.state.release([collection.id])
                report.discarded.append(collection.id)
                break
            self._cache.put(collection.id, places)
            self.state = self.state.complete(collection.id)
            (report.fetched if ok else report.failed).append(collection.id)
        report.duration_seconds = time.monotonic() - t0
        logger.fetch_pass_done(fetch_pass.pass_id, report.to_dict())
        logger.set_pass(None)
        return report

    async def _fetch_one(self, collection: Collection) -> tuple[list[Place], bool]:
        t0 = time.monotonic()
        try:
            places = await self._store.list_places(collection.id)
        except Exception as e:
            logger.fetch_result(
                collection.id,
                collection.name,
                0,
                False,
                duration_seconds=time.monotonic() - t0,
                error_reason=str(e) or type(e).__name__,
            )
            return [], False

        kept = keep_visited(places)
        logger.fetch_result(
            collection.id,
            collection.name,
            len(kept),
            True,
            duration_seconds=time.monotonic() - t0,
        )
        return kept, True
