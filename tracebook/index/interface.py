"""Standard interfaces for the collaborators the search index calls into.

Place stores implement PlaceStore and return Place records. The switch,
selection and notification collaborators are plain callables.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from tracebook.contracts.maps_v1 import Collection, MapSwitchNotice, Place

SwitchCollection = Callable[[Collection], None]
OnResolved = Callable[[Place, Any], None]
Notify = Callable[[MapSwitchNotice], None]


class PlaceStore(ABC):
    """Base class for all place data stores."""

    @abstractmethod
    async def list_places(self, collection_id: str) -> list[Place]:
        """Full snapshot of one collection's places. May raise on failure."""

    @abstractmethod
    def get_store_name(self) -> str:
        """Canonical store identifier for logs."""

    async def close(self) -> None:
        """Release network resources, if any."""
