from tracebook.index.stores.http import HttpPlaceStore
from tracebook.index.stores.memory import InMemoryPlaceStore

__all__ = [
    "HttpPlaceStore",
    "InMemoryPlaceStore",
]
