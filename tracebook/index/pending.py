"""Pending selection resolver: select a search hit that lives on another map.

Selecting a place from a non-active collection is two-phase:
  1. Request the collection switch and remember (place, target).
  2. On each live-data update of the target, look the place up by id and,
     once present, hand the fresh record to the selection callback.

A newer selection overwrites an older pending one. A pending selection is
abandoned when the user navigates to another map, when cancel() is called,
or once it is older than the configured timeout.
"""

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from tracebook.contracts.maps_v1 import Collection, MapSwitchNotice, Place, Visibility
from tracebook.core.config import config
from tracebook.core.logger import logger
from tracebook.index.constants import AbandonReason, SelectionState
from tracebook.index.interface import Notify, OnResolved, SwitchCollection


def build_switch_notice(collection: Collection) -> MapSwitchNotice:
    """Describe the destination map: public, private (default map) or shared.

    The owner is only named for shared maps, falling back to the local part
    of the owner's email.
    """
    if collection.visibility == Visibility.PUBLIC:
        visibility = Visibility.PUBLIC
    elif collection.is_default:
        visibility = Visibility.PRIVATE
    else:
        visibility = Visibility.SHARED

    owner: str | None = None
    if visibility == Visibility.SHARED:
        owner = collection.owner_display_name or None
        if not owner and collection.owner_email:
            owner = collection.owner_email.split("@")[0] or None
    return MapSwitchNotice(visibility=visibility, name=collection.name, owner=owner)


@dataclass(frozen=True)
class PendingSelection:
    place: Place
    target: Collection
    map_handle: Any = None
    created_at: float = 0.0  # seconds, resolver clock

    @property
    def target_id(self) -> str:
        return self.target.id


class PendingSelectionResolver:
    def __init__(
        self,
        switch_collection: SwitchCollection,
        on_resolved: OnResolved,
        notify: Notify | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._switch_collection = switch_collection
        self._on_resolved = on_resolved
        self._notify = notify
        self._timeout = timeout if timeout is not None else config.pending_selection_timeout
        self._clock = clock or time.monotonic
        self._pending: PendingSelection | None = None

    @property
    def state(self) -> SelectionState:
        if self._pending is None:
            return SelectionState.IDLE
        return SelectionState.AWAITING_COLLECTION_DATA

    @property
    def pending(self) -> PendingSelection | None:
        return self._pending

    def select(
        self,
        place: Place,
        collection: Collection,
        active_id: str | None,
        map_handle: Any = None,
        now: float | None = None,
    ) -> SelectionState:
        """Select a place; switches maps first when it belongs to another one."""
        if collection.id == active_id:
            if self._pending is not None:
                self._abandon(AbandonReason.SUPERSEDED)
            self._on_resolved(place, map_handle)
            return self.state

        if self._pending is not None:
            self._abandon(AbandonReason.SUPERSEDED)
        self._pending = PendingSelection(
            place=place,
            target=collection,
            map_handle=map_handle,
            created_at=self._clock() if now is None else now,
        )
        logger.selection("pending", place.id, collection.id, name=collection.name)

        try:
            self._switch_collection(collection)
        except Exception as e:
            logger.error(f"Map switch to {collection.id} failed", exception=e)
            self._abandon(AbandonReason.SWITCH_FAILED)
            return self.state
        self._send_notice(collection)
        return self.state

    def on_live_places(
        self,
        collection_id: str,
        places: Iterable[Place],
        now: float | None = None,
    ) -> bool:
        """Feed a live update of the active map. Returns True if resolved."""
        pending = self._pending
        if pending is None:
            return False
        if self.expire(now):
            return False
        if collection_id != pending.target_id:
            return False

        match = next((p for p in places if p.id == pending.place.id), None)
        if match is None:
            logger.debug(
                "Pending place %s not yet in map %s", pending.place.id, collection_id
            )
            return False

        self._pending = None
        logger.selection("resolved", match.id, collection_id)
        self._on_resolved(match, pending.map_handle)
        return True

    def on_active_collection_changed(self, collection_id: str | None) -> None:
        """The user navigated; a selection aimed at another map is dropped."""
        if self._pending is not None and collection_id != self._pending.target_id:
            self._abandon(AbandonReason.NAVIGATED_AWAY, now_active=collection_id)

    def expire(self, now: float | None = None) -> bool:
        """Abandon the pending selection if it outlived the timeout."""
        if self._pending is None:
            return False
        now = self._clock() if now is None else now
        age = now - self._pending.created_at
        if age <= self._timeout:
            return False
        self._abandon(AbandonReason.TIMEOUT, waited_seconds=round(age, 3))
        return True

    def cancel(self) -> None:
        if self._pending is not None:
            self._abandon(AbandonReason.CANCELLED)

    def _abandon(self, reason: AbandonReason, **extra: Any) -> None:
        pending = self._pending
        self._pending = None
        if pending is not None:
            logger.selection(
                "abandoned", pending.place.id, pending.target_id, reason=reason.value, **extra
            )

    def _send_notice(self, collection: Collection) -> None:
        if self._notify is None:
            return
        try:
            self._notify(build_switch_notice(collection))
        except Exception as e:
            logger.warning("Map switch notification failed for %s: %s", collection.id, e)
