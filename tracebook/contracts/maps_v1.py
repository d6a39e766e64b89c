"""Tracebook map contract v1.

Defines the canonical types shared by the search index and its collaborators:
  - Map collections and their members (Collection, MapMember)
  - Place records and their visits (Place, Visit, Coordinates)
  - Session identity (SessionUser, Role)
  - Search output (SearchHit, SearchResultGroup) and the map-switch notice

Data-store payloads use camelCase keys (ownerUid, isDefault, shareCode);
every model here accepts both camelCase and snake_case field names.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Visibility(StrEnum):
    PUBLIC = "public"
    SHARED = "shared"
    PRIVATE = "private"


class Role(StrEnum):
    GUEST = "guest"
    USER = "user"
    ADMIN = "admin"


class Grade(StrEnum):
    """Visit rating, best to worst."""

    S = "S"
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class MapMember(_WireModel):
    uid: str
    display_name: str = Field(default="")
    photo_url: str | None = Field(default=None, alias="photoURL")
    joined_at: str | None = Field(default=None)


class Collection(_WireModel):
    """One independently-permissioned map of places."""

    id: str = Field(description="Globally unique map identifier")
    owner_uid: str = Field(default="")
    owner_display_name: str | None = Field(default=None)
    owner_email: str | None = Field(default=None)
    owner_photo_url: str | None = Field(default=None, alias="ownerPhotoURL")
    name: str = Field(default="")
    visibility: Visibility = Field(default=Visibility.PRIVATE)
    is_default: bool = Field(default=False)
    created_at: str | None = Field(default=None, description="ISO 8601")
    updated_at: str | None = Field(default=None, description="ISO 8601")
    share_code: str | None = Field(
        default=None, description="4-digit join code for shared maps"
    )
    members: list[str] = Field(default_factory=list, description="Member uids")
    member_info: list[MapMember] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        value = str(value).strip()
        if not value:
            raise ValueError("collection id must not be empty")
        return value


# ---------------------------------------------------------------------------
# Places
# ---------------------------------------------------------------------------


class Coordinates(_WireModel):
    lat: float = 0.0
    lng: float = 0.0


class Visit(_WireModel):
    """One visit to a place: a dated, graded entry with photos."""

    id: str
    date: str = Field(default="")
    rating: Grade | None = Field(default=None)
    comment: str = Field(default="")
    photo_data_url: str = Field(default="", description="Primary thumbnail")
    photos: list[str] = Field(default_factory=list)
    created_by: str | None = Field(default=None)
    creator_name: str | None = Field(default=None)
    creator_photo_url: str | None = Field(default=None, alias="creatorPhotoURL")

    @field_validator("rating", mode="before")
    @classmethod
    def _unknown_rating_is_none(cls, value: Any) -> Any:
        # Legacy records carry blank or free-form grades.
        if isinstance(value, str):
            value = value.strip().upper()
            return value if value in Grade.__members__ else None
        return value


class Place(_WireModel):
    """A place record; unique by id within its collection."""

    id: str
    name: str = Field(default="")
    address: str = Field(default="")
    location: Coordinates = Field(default_factory=Coordinates)
    visits: list[Visit] = Field(default_factory=list)

    @field_validator("visits", mode="before")
    @classmethod
    def _null_visits_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def visit_count(self) -> int:
        return len(self.visits)


# ---------------------------------------------------------------------------
# Session identity
# ---------------------------------------------------------------------------


class SessionUser(_WireModel):
    uid: str
    display_name: str | None = Field(default=None)
    email: str | None = Field(default=None)
    is_anonymous: bool = Field(default=False)


# ---------------------------------------------------------------------------
# Search output
# ---------------------------------------------------------------------------


class SearchHit(BaseModel):
    """One ranked search result: a place plus the collection it came from."""

    model_config = ConfigDict(frozen=True)

    place: Place
    collection: Collection
    match_rank: int | None = Field(
        default=None,
        description="0 exact name, 1 name prefix, 2 name substring, 3 address only; None when unfiltered",
    )


class SearchResultGroup(BaseModel):
    """All matches from one collection, in ranked order."""

    collection: Collection
    matches: list[Place] = Field(default_factory=list)


class MapSwitchNotice(BaseModel):
    """Transient notification shown when a selection switches the active map."""

    visibility: Visibility
    name: str
    owner: str | None = Field(default=None)
