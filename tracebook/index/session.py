"""Search session: schedules reconciliation passes on every relevant change.

Pipeline:
  1. Visibility: recompute candidates when the user context or active map changes
  2. Reconcile: plan fetches for candidates missing from the cache
  3. Fetch: run the plan as an asyncio task, cancelling the previous pass
  4. Index: merge live active-map places with cached places into sources
  5. Select: resolve cross-map selections as live data arrives

All methods that change state must be called from the running event loop.
"""

import asyncio
import time
from collections.abc import Callable, Iterable
from typing import Any

from tracebook.contracts.maps_v1 import (
    Collection,
    Place,
    Role,
    SearchHit,
    SearchResultGroup,
    SessionUser,
)
from tracebook.core.config import config
from tracebook.core.logger import logger
from tracebook.index.cache import CollectionCache
from tracebook.index.constants import SelectionState
from tracebook.index.coordinator import FetchCoordinator, FetchPass
from tracebook.index.interface import Notify, OnResolved, PlaceStore, SwitchCollection
from tracebook.index.pending import PendingSelectionResolver
from tracebook.index.search_index import SearchSource, build_sources, group_hits, query
from tracebook.index.visibility import compute_candidates, normalize_role


class SearchSession:
    """One signed-in user's federated search index."""

    def __init__(
        self,
        store: PlaceStore,
        *,
        switch_collection: SwitchCollection | None = None,
        on_resolved: OnResolved | None = None,
        notify: Notify | None = None,
        demo_map_id: str | None = None,
        throttle_ms: float | None = None,
        selection_timeout: float | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._clock = clock or time.monotonic
        self._demo_map_id = demo_map_id or config.demo_map_id
        self._throttle_ms = throttle_ms
        self._store = store
        self.cache = CollectionCache()
        self.coordinator = self._new_coordinator()
        self.resolver = PendingSelectionResolver(
            switch_collection=switch_collection or self.set_active_collection,
            on_resolved=self._resolved,
            notify=notify,
            timeout=selection_timeout,
            clock=self._clock,
        )
        self._on_resolved = on_resolved

        self.user: SessionUser | None = None
        self.role: Role | None = None
        self._catalogs: tuple[list[Collection], list[Collection], list[Collection]] = ([], [], [])
        self.candidates: list[Collection] = []
        self.active: Collection | None = None
        self.live_places: list[Place] = []
        self.search_focused = False
        self.selected: Place | None = None

        self._current: FetchPass | None = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def _new_coordinator(self) -> FetchCoordinator:
        return FetchCoordinator(
            self._store,
            self.cache,
            throttle_ms=self._throttle_ms,
            clock=lambda: self._clock() * 1000,
        )

    @property
    def active_id(self) -> str | None:
        return self.active.id if self.active is not None else None

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def set_context(
        self,
        user: SessionUser | None,
        role: Role | str | None,
        all_collections: Iterable[Collection] | None = None,
        own_collections: Iterable[Collection] | None = None,
        joined_collections: Iterable[Collection] | None = None,
    ) -> FetchPass | None:
        """Update who is searching and which catalogs they can see."""
        if user is None or (self.user is not None and user.uid != self.user.uid):
            self.reset()
        self.user = user
        self.role = normalize_role(role)
        self._catalogs = (
            list(all_collections or []),
            list(own_collections or []),
            list(joined_collections or []),
        )
        return self._refresh_candidates(force=True)

    def set_active_collection(self, collection: Collection | None) -> FetchPass | None:
        """Switch the active map; its places now come from live updates."""
        previous = self.active_id
        self.active = collection
        if collection is None or collection.id != previous:
            self.live_places = []
        self.resolver.on_active_collection_changed(self.active_id)
        if self.active_id == previous:
            return self._refresh_candidates(force=False)
        return self._refresh_candidates(force=True)

    def set_search_focused(self, focused: bool) -> FetchPass | None:
        if focused == self.search_focused:
            return None
        self.search_focused = focused
        return self._schedule()

    def update_live_places(self, collection_id: str, places: Iterable[Place]) -> bool:
        """Live snapshot of the active map. Returns True if a selection resolved."""
        if collection_id != self.active_id:
            logger.debug(f"Ignoring live update for inactive map {collection_id}")
            return False
        self.live_places = list(places)
        return self.resolver.on_live_places(collection_id, self.live_places)

    def reset(self) -> None:
        """Drop everything cached for the previous user."""
        if self._current is not None:
            self.coordinator.cancel(self._current)
            self._current = None
        self.resolver.cancel()
        self.cache.clear()
        self.coordinator = self._new_coordinator()
        self.selected = None

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def sources(self) -> list[SearchSource]:
        return build_sources(self.candidates, self.active_id, self.live_places, self.cache)

    def search(
        self, text: str, show_all_when_empty: bool = True, limit: int | None = None
    ) -> list[SearchHit]:
        return query(self.sources(), text, show_all_when_empty=show_all_when_empty, limit=limit)

    def search_groups(
        self, text: str, show_all_when_empty: bool = True
    ) -> list[SearchResultGroup]:
        return group_hits(self.search(text, show_all_when_empty=show_all_when_empty))

    def select(self, hit: SearchHit, map_handle: Any = None) -> SelectionState:
        """Pick a hit; this closes search before any map switch."""
        self.set_search_focused(False)
        return self.resolver.select(hit.place, hit.collection, self.active_id, map_handle)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _refresh_candidates(self, force: bool) -> FetchPass | None:
        all_c, own_c, joined_c = self._catalogs
        candidates = compute_candidates(
            self.user,
            self.role,
            self.active,
            all_c,
            own_c,
            joined_c,
            demo_map_id=self._demo_map_id,
        )
        if not force and candidates == self.candidates:
            return None
        self.candidates = candidates
        return self._schedule()

    def _schedule(self, search_focused: bool | None = None) -> FetchPass | None:
        """Cancel the running pass and start a new one if anything needs fetching."""
        if self._closed:
            return None
        if self._current is not None:
            self.coordinator.cancel(self._current)
            self._current = None
        if not self.candidates:
            return None

        fetch_pass = self.coordinator.reconcile(
            self.candidates,
            self.active_id,
            self.search_focused if search_focused is None else search_focused,
        )
        if not fetch_pass.plan:
            return None

        self._current = fetch_pass
        task = asyncio.get_running_loop().create_task(self._run(fetch_pass))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return fetch_pass

    async def _run(self, fetch_pass: FetchPass) -> None:
        await self.coordinator.run(fetch_pass)
        if self._current is fetch_pass:
            self._current = None
        if self._current is None and not self._closed:
            # Pick up collections released by a cancelled pass; never the
            # throttled refresh, which would loop on empty maps.
            self._schedule(search_focused=False)

    async def wait_idle(self) -> None:
        """Wait until no fetch pass is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        self._closed = True
        if self._current is not None:
            self.coordinator.cancel(self._current)
            self._current = None
        self.resolver.cancel()
        await self.wait_idle()

    def _resolved(self, place: Place, map_handle: Any) -> None:
        self.selected = place
        if self._on_resolved is not None:
            self._on_resolved(place, map_handle)
