"""HTTP place store: lists a map's places from the Tracebook data API."""

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from tracebook.contracts.maps_v1 import Place
from tracebook.core.config import config
from tracebook.core.errors import PlaceStoreError
from tracebook.index.interface import PlaceStore

logger = logging.getLogger(__name__)


class HttpPlaceStore(PlaceStore):
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or config.data_store_url or "").rstrip("/")
        self._token = token if token is not None else config.data_store_token
        self._timeout = timeout if timeout is not None else config.data_store_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def list_places(self, collection_id: str) -> list[Place]:
        if not self._base_url:
            raise PlaceStoreError(collection_id, "no data store URL configured")

        path = f"/maps/{quote(collection_id, safe='')}/places"
        try:
            response = await self._get_client().get(path)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise PlaceStoreError(
                collection_id, "request rejected", status=e.response.status_code
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise PlaceStoreError(collection_id, str(e) or type(e).__name__) from e

        return self._parse_places(data, collection_id)

    def _parse_places(self, data: Any, collection_id: str) -> list[Place]:
        """Accept a bare JSON list or an object wrapping it under 'places'."""
        raw = data.get("places", []) if isinstance(data, dict) else data
        if not isinstance(raw, list):
            raise PlaceStoreError(collection_id, "unexpected payload shape")

        places: list[Place] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                places.append(Place.model_validate(item))
            except ValidationError as e:
                logger.debug(
                    "HttpPlaceStore: skipping malformed place in '%s': %s",
                    collection_id,
                    e,
                )
        return places

    def get_store_name(self) -> str:
        return "http"

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
