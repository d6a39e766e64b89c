"""Shared typed constants for the search index."""

from enum import IntEnum, StrEnum

DEFAULT_DEMO_MAP_ID = "guest-demo-map"
GUEST_USER_ID = "guest-user"


class CollectionWeight(IntEnum):
    """Search priority of a collection; lower sorts first."""

    DEFAULT = 0
    SHARED = 1
    OTHER = 2


class MatchRank(IntEnum):
    """Match quality of a query against a place, best first."""

    EXACT_NAME = 0
    NAME_PREFIX = 1
    NAME_SUBSTRING = 2
    ADDRESS = 3


class SelectionState(StrEnum):
    IDLE = "idle"
    AWAITING_COLLECTION_DATA = "awaiting_collection_data"


class AbandonReason(StrEnum):
    """Why a pending selection was dropped without resolving."""

    TIMEOUT = "timeout"
    NAVIGATED_AWAY = "navigated_away"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"
    SWITCH_FAILED = "switch_failed"
