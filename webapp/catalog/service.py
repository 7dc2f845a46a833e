"""Catalog service client — reads items, brands and types over HTTP."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from webapp.catalog.schemas import CatalogBrand, CatalogItem, CatalogItemType, CatalogResult
from webapp.exceptions import NotFoundError, UpstreamServiceError

logger = logging.getLogger(__name__)

API_VERSION = "1.0"
_REMOTE_SERVICE_BASE = "/api/catalog/"

_brands_adapter = TypeAdapter(list[CatalogBrand])
_types_adapter = TypeAdapter(list[CatalogItemType])


def product_image_url(item_id: int | str) -> str:
    """Relative URL of an item's picture, served through the image forwarder."""
    return f"product-images/{item_id}?api-version={API_VERSION}"


class CatalogService:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        query = {"api-version": API_VERSION, **(params or {})}
        try:
            resp = await self.client.get(_REMOTE_SERVICE_BASE + path, params=query)
        except httpx.HTTPError as exc:
            logger.error("Catalog request %s failed: %s", path, exc)
            raise UpstreamServiceError(f"Catalog service unavailable: {exc}") from exc

        if resp.status_code == 404:
            raise NotFoundError(f"Catalog resource '{path}' not found")
        if resp.is_error:
            logger.error("Catalog returned %d for %s", resp.status_code, path)
            raise UpstreamServiceError(f"Catalog service returned {resp.status_code}")
        return resp.json()

    async def get_catalog_items(
        self,
        page_index: int,
        page_size: int,
        brand_id: int | None = None,
        type_id: int | None = None,
    ) -> CatalogResult:
        path = "items"
        if type_id is not None:
            path = f"items/type/{type_id}/brand/{brand_id if brand_id is not None else ''}"
        elif brand_id is not None:
            path = f"items/type/all/brand/{brand_id}"
        data = await self._get_json(path, {"pageIndex": page_index, "pageSize": page_size})
        return self._parse(CatalogResult, data)

    async def get_catalog_item(self, item_id: int) -> CatalogItem:
        data = await self._get_json(f"items/{item_id}")
        return self._parse(CatalogItem, data)

    async def search_catalog(self, text: str, page_size: int = 8) -> CatalogResult:
        path = f"items/withsemanticrelevance/{quote(text, safe='')}"
        data = await self._get_json(path, {"pageIndex": 0, "pageSize": page_size})
        return self._parse(CatalogResult, data)

    async def get_brands(self) -> list[CatalogBrand]:
        data = await self._get_json("catalogBrands")
        return self._parse_list(_brands_adapter, data)

    async def get_types(self) -> list[CatalogItemType]:
        data = await self._get_json("catalogTypes")
        return self._parse_list(_types_adapter, data)

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise UpstreamServiceError(f"Unexpected catalog payload: {exc}") from exc

    @staticmethod
    def _parse_list(adapter: TypeAdapter, data: Any):
        try:
            return adapter.validate_python(data)
        except ValidationError as exc:
            raise UpstreamServiceError(f"Unexpected catalog payload: {exc}") from exc
