"""One-shot interface: load a session snapshot, run a single search, print, exit."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from tracebook.contracts.maps_v1 import (
    Collection,
    Place,
    Role,
    SearchResultGroup,
    SessionUser,
)
from tracebook.core.config import config
from tracebook.core.errors import SessionFileError
from tracebook.core.logger import logger
from tracebook.index.coordinator import keep_visited
from tracebook.index.interface import PlaceStore
from tracebook.index.session import SearchSession
from tracebook.index.stores import HttpPlaceStore, InMemoryPlaceStore


class CollectionCatalogs(BaseModel):
    all: list[Collection] = Field(default_factory=list)
    own: list[Collection] = Field(default_factory=list)
    joined: list[Collection] = Field(default_factory=list)

    def find(self, collection_id: str) -> Collection | None:
        for c in [*self.own, *self.joined, *self.all]:
            if c.id == collection_id:
                return c
        return None


class SessionSnapshot(BaseModel):
    """Who is searching, what they can see, and optionally the data itself."""

    user: SessionUser | None = None
    role: Role = Role.USER
    active_collection_id: str | None = None
    collections: CollectionCatalogs = Field(default_factory=CollectionCatalogs)
    places: dict[str, list[Place]] | None = Field(
        default=None,
        description="Places per map id; when absent the HTTP data store is used",
    )


def load_snapshot(path: str | Path) -> SessionSnapshot:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SessionFileError(f"session file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise SessionFileError(f"cannot read session file {path}: {e}") from e
    try:
        return SessionSnapshot.model_validate(data)
    except ValidationError as e:
        raise SessionFileError(f"invalid session file {path}: {e}") from e


def format_groups(groups: list[SearchResultGroup]) -> str:
    if not groups:
        return "No results."
    lines: list[str] = []
    for group in groups:
        c = group.collection
        noun = "match" if len(group.matches) == 1 else "matches"
        lines.append(f"{c.name or c.id} ({c.visibility.value}) · {len(group.matches)} {noun}")
        for place in group.matches:
            address = f" · {place.address}" if place.address else ""
            lines.append(f"  - {place.name}{address} [{place.visit_count} visits]")
    return "\n".join(lines)


def _store_for(snapshot: SessionSnapshot) -> PlaceStore:
    if snapshot.places is not None:
        return InMemoryPlaceStore(snapshot.places)
    return HttpPlaceStore()


async def _load_active(session: SearchSession, store: PlaceStore, snapshot: SessionSnapshot) -> None:
    """Stand in for the live subscription: one snapshot of the active map."""
    active = None
    if snapshot.active_collection_id:
        active = snapshot.collections.find(snapshot.active_collection_id)
        if active is None:
            logger.warning(
                f"Active map {snapshot.active_collection_id} is not in any catalog"
            )
    session.set_active_collection(active)
    if active is None:
        return
    try:
        live = await store.list_places(active.id)
    except Exception as e:
        logger.warning(f"Could not load active map {active.id}: {e}")
        live = []
    session.update_live_places(active.id, keep_visited(live))


async def run_oneshot(session_file: str, query: str, show_all: bool = False) -> int:
    try:
        snapshot = load_snapshot(session_file)
    except SessionFileError as e:
        print(f"Error: {e}")
        return 2

    if snapshot.places is None and not config.data_store_url:
        print("Error: TRACEBOOK_DATA_STORE_URL is required when the session file has no places")
        return 2

    store = _store_for(snapshot)
    session = SearchSession(store)
    try:
        session.set_context(
            snapshot.user,
            snapshot.role,
            snapshot.collections.all,
            snapshot.collections.own,
            snapshot.collections.joined,
        )
        await _load_active(session, store, snapshot)
        await session.wait_idle()
        print(format_groups(session.search_groups(query, show_all_when_empty=show_all)))
        return 0
    finally:
        await session.close()
        await store.close()


def main(session_file: str, query: str, show_all: bool = False) -> int:
    return asyncio.run(run_oneshot(session_file, query, show_all=show_all))
