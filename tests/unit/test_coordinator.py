from __future__ import annotations

import asyncio
from collections import defaultdict

import pytest

from tracebook.contracts.maps_v1 import Collection, Place, Visibility, Visit
from tracebook.index.cache import CacheEntry, CollectionCache
from tracebook.index.coordinator import (
    FetchCoordinator,
    FetchCoordinatorState,
    keep_visited,
    reconcile,
)
from tracebook.index.interface import PlaceStore
from tracebook.index.stores import InMemoryPlaceStore

THROTTLE_MS = 5000.0


def _map(map_id: str) -> Collection:
    return Collection(id=map_id, name=map_id.upper(), visibility=Visibility.SHARED)


def _place(place_id: str, visits: int = 1) -> Place:
    return Place(
        id=place_id,
        name=place_id,
        visits=[Visit(id=f"{place_id}-{i}") for i in range(visits)],
    )


def _plan_ids(plan: list[Collection]) -> list[str]:
    return [c.id for c in plan]


class GatedStore(PlaceStore):
    """Place store whose fetches block until the test opens their gate."""

    def __init__(self, places: dict[str, list[Place]]):
        self._places = places
        self.gates: defaultdict[str, asyncio.Event] = defaultdict(asyncio.Event)
        self.started: defaultdict[str, asyncio.Event] = defaultdict(asyncio.Event)
        self.calls: list[str] = []

    async def list_places(self, collection_id: str) -> list[Place]:
        self.calls.append(collection_id)
        self.started[collection_id].set()
        await self.gates[collection_id].wait()
        return list(self._places.get(collection_id, []))

    def get_store_name(self) -> str:
        return "gated"


# ---------------------------------------------------------------------------
# reconcile (pure planning)
# ---------------------------------------------------------------------------


def test_first_pass_plans_every_candidate_except_active():
    candidates = [_map("a"), _map("active"), _map("b")]

    state, plan = reconcile(
        FetchCoordinatorState(), candidates, CollectionCache(), "active", False, 0.0, THROTTLE_MS
    )

    assert _plan_ids(plan) == ["a", "b"]
    assert state.fetched == {"a", "b"}
    assert state.in_flight == {"a", "b"}
    assert state.last_global_refresh is None


def test_reconcile_does_not_mutate_input_state():
    original = FetchCoordinatorState()
    reconcile(original, [_map("a")], CollectionCache(), None, True, 10.0, THROTTLE_MS)

    assert original == FetchCoordinatorState()


def test_rapid_succession_plans_each_collection_once():
    candidates = [_map("a"), _map("b")]
    cache = CollectionCache()

    state, first = reconcile(FetchCoordinatorState(), candidates, cache, None, True, 0.0, THROTTLE_MS)
    state, second = reconcile(state, candidates, cache, None, True, 1.0, THROTTLE_MS)

    assert _plan_ids(first) == ["a", "b"]
    assert second == []


def test_duplicate_candidates_are_planned_once():
    _, plan = reconcile(
        FetchCoordinatorState(),
        [_map("a"), _map("a")],
        CollectionCache(),
        None,
        False,
        0.0,
        THROTTLE_MS,
    )
    assert _plan_ids(plan) == ["a"]


def test_populated_collections_are_never_refetched():
    cache = CollectionCache()
    cache.put("a", [_place("p1")])
    state = FetchCoordinatorState(fetched=frozenset({"a"}), last_global_refresh=0.0)

    new_state, plan = reconcile(state, [_map("a")], cache, None, True, 60_000.0, THROTTLE_MS)

    assert plan == []
    assert new_state is state


def test_empty_collection_refresh_respects_global_throttle():
    cache = CollectionCache()
    cache.put("a", [])
    state = FetchCoordinatorState(fetched=frozenset({"a"}))

    state, plan = reconcile(state, [_map("a")], cache, None, True, 1000.0, THROTTLE_MS)
    assert _plan_ids(plan) == ["a"]
    assert state.last_global_refresh == 1000.0
    state = state.complete("a")

    state, plan = reconcile(state, [_map("a")], cache, None, True, 3000.0, THROTTLE_MS)
    assert plan == []

    state, plan = reconcile(state, [_map("a")], cache, None, True, 6001.0, THROTTLE_MS)
    assert _plan_ids(plan) == ["a"]
    assert state.last_global_refresh == 6001.0


def test_first_fetch_does_not_close_the_throttle():
    cache = CollectionCache()
    state, plan = reconcile(FetchCoordinatorState(), [_map("a")], cache, None, False, 1000.0, THROTTLE_MS)
    assert _plan_ids(plan) == ["a"]

    cache.put("a", [])
    state = state.complete("a")

    state, plan = reconcile(state, [_map("a")], cache, None, True, 2000.0, THROTTLE_MS)
    assert _plan_ids(plan) == ["a"]
    assert state.last_global_refresh == 2000.0


def test_fetching_a_new_collection_keeps_the_refresh_window():
    cache = CollectionCache()
    cache.put("a", [])
    state = FetchCoordinatorState(fetched=frozenset({"a"}), last_global_refresh=0.0)

    state, plan = reconcile(state, [_map("a"), _map("b")], cache, None, False, 5500.0, THROTTLE_MS)
    assert _plan_ids(plan) == ["b"]
    assert state.last_global_refresh == 0.0

    state = state.complete("b")
    cache.put("b", [_place("b1")])

    state, plan = reconcile(state, [_map("a"), _map("b")], cache, None, True, 6000.0, THROTTLE_MS)
    assert _plan_ids(plan) == ["a"]
    assert state.last_global_refresh == 6000.0


def test_refresh_requires_search_focus():
    cache = CollectionCache()
    cache.put("a", [])
    state = FetchCoordinatorState(fetched=frozenset({"a"}), last_global_refresh=0.0)

    _, plan = reconcile(state, [_map("a")], cache, None, False, 60_000.0, THROTTLE_MS)

    assert plan == []


def test_throttle_is_global_across_collections():
    cache = CollectionCache()
    cache.put("a", [])
    cache.put("b", [])
    state = FetchCoordinatorState(fetched=frozenset({"a", "b"}), last_global_refresh=0.0)

    state, plan = reconcile(state, [_map("a"), _map("b")], cache, None, True, 6000.0, THROTTLE_MS)
    assert _plan_ids(plan) == ["a", "b"]

    state = state.complete("a").complete("b")
    _, plan = reconcile(state, [_map("a"), _map("b")], cache, None, True, 6001.0, THROTTLE_MS)
    assert plan == []


def test_in_flight_collection_is_not_refetched_even_when_throttle_open():
    cache = CollectionCache()
    state, _ = reconcile(FetchCoordinatorState(), [_map("a")], cache, None, True, 0.0, THROTTLE_MS)
    assert "a" in state.in_flight

    _, plan = reconcile(state, [_map("a")], cache, None, True, 60_000.0, THROTTLE_MS)

    assert plan == []


def test_release_makes_ids_plannable_again():
    state, _ = reconcile(
        FetchCoordinatorState(), [_map("a"), _map("b")], CollectionCache(), None, False, 0.0, THROTTLE_MS
    )

    state = state.release(["b"])
    _, plan = reconcile(state, [_map("a"), _map("b")], CollectionCache(), None, False, 1.0, THROTTLE_MS)

    assert _plan_ids(plan) == ["b"]


# ---------------------------------------------------------------------------
# FetchCoordinator.run
# ---------------------------------------------------------------------------


def test_keep_visited_drops_orphans():
    places = [_place("kept", visits=2), _place("orphan", visits=0)]
    assert [p.id for p in keep_visited(places)] == ["kept"]


@pytest.mark.asyncio
async def test_failed_fetch_caches_empty_list_and_pass_continues():
    store = InMemoryPlaceStore(
        {"a": [_place("a1")], "c": [_place("c1"), _place("orphan", visits=0)]},
        failing=["b"],
    )
    cache = CollectionCache()
    coordinator = FetchCoordinator(store, cache, throttle_ms=THROTTLE_MS, clock=lambda: 0.0)

    fetch_pass = coordinator.reconcile([_map("a"), _map("b"), _map("c")], None, False)
    report = await coordinator.run(fetch_pass)

    assert store.calls == ["a", "b", "c"]
    assert report.fetched == ["a", "c"]
    assert report.failed == ["b"]
    assert cache.get("b") == CacheEntry(places=[], fetched=True)
    assert [p.id for p in cache.places("c")] == ["c1"]
    assert coordinator.state.in_flight == frozenset()
    assert coordinator.state.fetched == {"a", "b", "c"}


@pytest.mark.asyncio
async def test_failed_collection_is_not_retried_on_next_reconcile():
    store = InMemoryPlaceStore({}, failing=["b"])
    coordinator = FetchCoordinator(store, CollectionCache(), throttle_ms=THROTTLE_MS, clock=lambda: 0.0)

    await coordinator.run(coordinator.reconcile([_map("b")], None, False))
    second = coordinator.reconcile([_map("b")], None, False)

    assert second.plan == []
    assert store.calls == ["b"]


@pytest.mark.asyncio
async def test_cancel_releases_unstarted_and_discards_late_result():
    store = GatedStore({"a": [_place("a1")], "b": [_place("b1")], "c": [_place("c1")]})
    cache = CollectionCache()
    coordinator = FetchCoordinator(store, cache, throttle_ms=THROTTLE_MS, clock=lambda: 0.0)

    fetch_pass = coordinator.reconcile([_map("a"), _map("b"), _map("c")], None, False)
    task = asyncio.create_task(coordinator.run(fetch_pass))
    await store.started["a"].wait()

    coordinator.cancel(fetch_pass)
    assert fetch_pass.report.skipped == ["b", "c"]
    assert coordinator.state.fetched == {"a"}

    store.gates["a"].set()
    report = await task

    assert report.discarded == ["a"]
    assert report.fetched == []
    assert "a" not in cache
    assert store.calls == ["a"]
    assert coordinator.state == FetchCoordinatorState()


@pytest.mark.asyncio
async def test_new_pass_after_cancel_fetches_released_collections():
    store = GatedStore({"a": [_place("a1")], "b": [_place("b1")]})
    cache = CollectionCache()
    coordinator = FetchCoordinator(store, cache, throttle_ms=THROTTLE_MS, clock=lambda: 0.0)

    first = coordinator.reconcile([_map("a"), _map("b")], None, False)
    task = asyncio.create_task(coordinator.run(first))
    await store.started["a"].wait()
    coordinator.cancel(first)
    store.gates["a"].set()
    await task

    store.gates["b"].set()
    second = coordinator.reconcile([_map("a"), _map("b")], None, False)
    assert second.collection_ids == ["a", "b"]
    await coordinator.run(second)

    assert cache.ids() == ["a", "b"]
    assert store.calls == ["a", "a", "b"]


@pytest.mark.asyncio
async def test_cancel_is_idempotent():
    store = InMemoryPlaceStore({"a": []})
    coordinator = FetchCoordinator(store, CollectionCache(), throttle_ms=THROTTLE_MS, clock=lambda: 0.0)

    fetch_pass = coordinator.reconcile([_map("a")], None, False)
    coordinator.cancel(fetch_pass)
    coordinator.cancel(fetch_pass)

    assert fetch_pass.report.skipped == ["a"]
    report = await coordinator.run(fetch_pass)
    assert report.fetched == []
    assert store.calls == []
