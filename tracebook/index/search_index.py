"""Search index: merges live and cached collection data into ranked sources.

The active collection is always read from its live place list; every other
candidate is read from the CollectionCache. Query results keep source order
(collection weight, then candidate order) as the primary key and match
quality as the secondary key, so identical inputs give identical output.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from tracebook.contracts.maps_v1 import Collection, Place, SearchHit, SearchResultGroup
from tracebook.index.cache import CollectionCache
from tracebook.index.constants import MatchRank

logger = logging.getLogger(__name__)


@dataclass
class SearchSource:
    collection: Collection
    places: list[Place] = field(default_factory=list)


def build_sources(
    candidates_sorted: Iterable[Collection],
    active_id: str | None,
    active_live_places: Iterable[Place] | None,
    cache: CollectionCache,
) -> list[SearchSource]:
    live = list(active_live_places or [])
    sources: list[SearchSource] = []
    for c in candidates_sorted:
        if c.id == active_id:
            sources.append(SearchSource(collection=c, places=live))
        else:
            sources.append(SearchSource(collection=c, places=cache.places(c.id)))
    return sources


def match_rank(place: Place, needle: str) -> MatchRank | None:
    """How well a lower-cased needle matches a place; None when it does not."""
    name = place.name.lower()
    if name == needle:
        return MatchRank.EXACT_NAME
    if name.startswith(needle):
        return MatchRank.NAME_PREFIX
    if needle in name:
        return MatchRank.NAME_SUBSTRING
    if needle in place.address.lower():
        return MatchRank.ADDRESS
    return None


def query(
    sources: Sequence[SearchSource],
    text: str,
    show_all_when_empty: bool = False,
    limit: int | None = None,
) -> list[SearchHit]:
    """Rank places across sources for a free-text query."""
    needle = (text or "").strip().lower()

    if not needle:
        if not show_all_when_empty:
            return []
        hits = [
            SearchHit(place=p, collection=s.collection)
            for s in sources
            for p in s.places
        ]
        return hits[:limit] if limit is not None else hits

    scored: list[tuple[int, int, int, SearchHit]] = []
    for source_index, s in enumerate(sources):
        for place_index, p in enumerate(s.places):
            rank = match_rank(p, needle)
            if rank is None:
                continue
            scored.append(
                (
                    source_index,
                    int(rank),
                    place_index,
                    SearchHit(place=p, collection=s.collection, match_rank=int(rank)),
                )
            )
    scored.sort(key=lambda x: x[:3])
    hits = [hit for *_, hit in scored]

    logger.debug(
        "Query %r: %s sources, %s places -> %s hits",
        needle,
        len(sources),
        sum(len(s.places) for s in sources),
        len(hits),
    )
    return hits[:limit] if limit is not None else hits


def group_hits(hits: Iterable[SearchHit]) -> list[SearchResultGroup]:
    """Group ranked hits by collection, keeping first-seen collection order."""
    groups: dict[str, SearchResultGroup] = {}
    for hit in hits:
        group = groups.get(hit.collection.id)
        if group is None:
            group = SearchResultGroup(collection=hit.collection)
            groups[hit.collection.id] = group
        group.matches.append(hit.place)
    return list(groups.values())
