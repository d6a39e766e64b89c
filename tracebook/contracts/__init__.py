"""Tracebook map contract v1: shared types for collections, places and search output."""

from tracebook.contracts.maps_v1 import (
    Collection,
    Coordinates,
    Grade,
    MapMember,
    MapSwitchNotice,
    Place,
    Role,
    SearchHit,
    SearchResultGroup,
    SessionUser,
    Visibility,
    Visit,
)

__all__ = [
    "Collection",
    "Coordinates",
    "Grade",
    "MapMember",
    "MapSwitchNotice",
    "Place",
    "Role",
    "SearchHit",
    "SearchResultGroup",
    "SessionUser",
    "Visibility",
    "Visit",
]
