from __future__ import annotations

import httpx
import pytest

from tracebook.core.config import config
from tracebook.core.errors import PlaceStoreError
from tracebook.index.stores.http import HttpPlaceStore


def _store(handler) -> HttpPlaceStore:
    return HttpPlaceStore(
        base_url="https://data.example.test/api/",
        token="secret",
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_lists_places_with_auth_header():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "id": "p1",
                    "name": "Noodle Bar",
                    "address": "1 Main St",
                    "location": {"lat": 1.5, "lng": 2.5},
                    "visits": [{"id": "v1", "date": "2024-05-01", "rating": "a"}],
                }
            ],
        )

    store = _store(handler)
    try:
        places = await store.list_places("club/1")
    finally:
        await store.close()

    assert seen[0].url.raw_path == b"/api/maps/club%2F1/places"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert [p.id for p in places] == ["p1"]
    assert places[0].visits[0].rating == "A"


@pytest.mark.asyncio
async def test_accepts_wrapped_payload_and_skips_malformed_items():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"places": [{"id": "p1", "name": "Ok"}, {"name": "missing id"}, "junk"]},
        )

    store = _store(handler)
    try:
        places = await store.list_places("club")
    finally:
        await store.close()

    assert [p.id for p in places] == ["p1"]


@pytest.mark.asyncio
async def test_permission_denied_raises_place_store_error_with_status():
    store = _store(lambda request: httpx.Response(403, json={"error": "forbidden"}))
    try:
        with pytest.raises(PlaceStoreError) as exc_info:
            await store.list_places("secret-map")
    finally:
        await store.close()

    assert exc_info.value.status == 403
    assert exc_info.value.collection_id == "secret-map"


@pytest.mark.asyncio
async def test_transport_error_raises_place_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler)
    try:
        with pytest.raises(PlaceStoreError) as exc_info:
            await store.list_places("club")
    finally:
        await store.close()

    assert exc_info.value.status is None


@pytest.mark.asyncio
async def test_missing_base_url_raises(monkeypatch):
    monkeypatch.setattr(config, "data_store_url", None)
    store = HttpPlaceStore(base_url="", token="")
    with pytest.raises(PlaceStoreError, match="no data store URL"):
        await store.list_places("club")


def test_store_name():
    assert HttpPlaceStore(base_url="https://x.test").get_store_name() == "http"
