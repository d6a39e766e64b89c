"""Visibility resolver: which collections a caller may search, in priority order.

- Guest (by role, anonymous session or the guest account): only the active
  collection (the public demo map).
- Admin: every collection in the system, plus the demo map.
- Ordinary user: own maps + joined maps, never the demo map.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from tracebook.contracts.maps_v1 import Collection, Role, SessionUser, Visibility
from tracebook.index.constants import DEFAULT_DEMO_MAP_ID, GUEST_USER_ID, CollectionWeight

logger = logging.getLogger(__name__)


def demo_placeholder(demo_map_id: str = DEFAULT_DEMO_MAP_ID) -> Collection:
    """Minimal descriptor for the demo map when no catalog carries it."""
    return Collection(
        id=demo_map_id,
        owner_uid="demo-owner",
        owner_display_name="Demo",
        name="Demo Map",
        visibility=Visibility.PUBLIC,
        is_default=True,
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def collection_weight(collection: Collection) -> CollectionWeight:
    if collection.is_default:
        return CollectionWeight.DEFAULT
    if collection.visibility == Visibility.SHARED:
        return CollectionWeight.SHARED
    return CollectionWeight.OTHER


def sort_by_weight(collections: Iterable[Collection]) -> list[Collection]:
    """Stable sort by weight: default maps, then shared maps, then the rest."""
    return sorted(collections, key=collection_weight)


def dedupe_collections(collections: Iterable[Collection]) -> list[Collection]:
    """Drop repeated ids; the first occurrence keeps its position."""
    seen: set[str] = set()
    out: list[Collection] = []
    for c in collections:
        if c.id in seen:
            continue
        seen.add(c.id)
        out.append(c)
    return out


def normalize_role(role: Role | str | None) -> Role:
    """Missing or unknown roles are treated as an ordinary user."""
    if role is None:
        return Role.USER
    try:
        return Role(role)
    except ValueError:
        logger.warning("Unknown role %r; treating as ordinary user", role)
        return Role.USER


def effective_role(user: SessionUser, role: Role | str | None) -> Role:
    """Anonymous sessions and the shared guest account search as guests."""
    if user.is_anonymous or user.uid == GUEST_USER_ID:
        return Role.GUEST
    return normalize_role(role)


def compute_candidates(
    user: SessionUser | None,
    role: Role | str | None,
    active_collection: Collection | None,
    all_collections: Iterable[Collection] | None = None,
    own_collections: Iterable[Collection] | None = None,
    joined_collections: Iterable[Collection] | None = None,
    demo_map_id: str = DEFAULT_DEMO_MAP_ID,
) -> list[Collection]:
    """Ordered, deduplicated list of collections to index for this caller."""
    if user is None:
        return []

    role = effective_role(user, role)
    candidates: list[Collection]
    if role == Role.GUEST:
        candidates = [active_collection or demo_placeholder(demo_map_id)]
    elif role == Role.ADMIN:
        candidates = list(all_collections or [])
        if not any(c.id == demo_map_id for c in candidates):
            if active_collection is not None and active_collection.id == demo_map_id:
                candidates.append(active_collection)
            else:
                candidates.append(demo_placeholder(demo_map_id))
    else:
        candidates = [
            c
            for c in [*(own_collections or []), *(joined_collections or [])]
            if c.id != demo_map_id
        ]

    result = sort_by_weight(dedupe_collections(candidates))
    logger.debug(
        "Candidates for %s (%s): %s", user.uid, role.value, [c.id for c in result]
    )
    return result
