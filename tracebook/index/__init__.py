"""Federated search index over independently-permissioned map collections."""

from tracebook.index.cache import CacheEntry, CollectionCache
from tracebook.index.coordinator import (
    CancellationToken,
    FetchCoordinator,
    FetchCoordinatorState,
    reconcile,
)
from tracebook.index.interface import PlaceStore
from tracebook.index.pending import PendingSelectionResolver
from tracebook.index.search_index import SearchSource, build_sources, query
from tracebook.index.session import SearchSession
from tracebook.index.visibility import compute_candidates

__all__ = [
    "CacheEntry",
    "CancellationToken",
    "CollectionCache",
    "FetchCoordinator",
    "FetchCoordinatorState",
    "PendingSelectionResolver",
    "PlaceStore",
    "SearchSession",
    "SearchSource",
    "build_sources",
    "compute_candidates",
    "query",
    "reconcile",
]
