"""Collection cache: last-known place list per collection id.

Each put is a full snapshot of one collection, so there is no merge logic:
put replaces the entry wholesale and the last write wins.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from tracebook.contracts.maps_v1 import Place


@dataclass(frozen=True)
class CacheEntry:
    places: list[Place] | None
    fetched: bool = True

    @property
    def is_empty(self) -> bool:
        return not self.places


class CollectionCache:
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, collection_id: str) -> CacheEntry | None:
        return self._entries.get(collection_id)

    def put(self, collection_id: str, places: Iterable[Place]) -> None:
        self._entries[collection_id] = CacheEntry(places=list(places), fetched=True)

    def has(self, collection_id: str) -> bool:
        return collection_id in self._entries

    def places(self, collection_id: str) -> list[Place]:
        """Cached places for a collection, or [] when absent."""
        entry = self._entries.get(collection_id)
        if entry is None or entry.places is None:
            return []
        return list(entry.places)

    def evict(self, collection_id: str) -> None:
        self._entries.pop(collection_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def ids(self) -> list[str]:
        return list(self._entries.keys())

    def __contains__(self, collection_id: object) -> bool:
        return collection_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
