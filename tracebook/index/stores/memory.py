"""In-memory place store, used by the one-shot CLI and tests."""

import asyncio
from collections.abc import Iterable, Mapping

from tracebook.contracts.maps_v1 import Place
from tracebook.core.errors import PlaceStoreError
from tracebook.index.interface import PlaceStore


class InMemoryPlaceStore(PlaceStore):
    def __init__(
        self,
        places: Mapping[str, Iterable[Place]] | None = None,
        failing: Iterable[str] | None = None,
    ):
        self._places: dict[str, list[Place]] = {
            cid: list(items) for cid, items in (places or {}).items()
        }
        self._failing: set[str] = set(failing or [])
        self.calls: list[str] = []

    def set_places(self, collection_id: str, places: Iterable[Place]) -> None:
        self._places[collection_id] = list(places)

    def fail(self, collection_id: str, failing: bool = True) -> None:
        if failing:
            self._failing.add(collection_id)
        else:
            self._failing.discard(collection_id)

    async def list_places(self, collection_id: str) -> list[Place]:
        self.calls.append(collection_id)
        # Yield like a real round trip would.
        await asyncio.sleep(0)
        if collection_id in self._failing:
            raise PlaceStoreError(collection_id, "permission denied", status=403)
        if collection_id not in self._places:
            raise PlaceStoreError(collection_id, "not found", status=404)
        return list(self._places[collection_id])

    def get_store_name(self) -> str:
        return "memory"
