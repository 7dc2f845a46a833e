"""Pydantic models for the catalog service's JSON payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CatalogModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CatalogItem(CatalogModel):
    id: int
    name: str
    description: str | None = None
    price: float
    picture_url: str | None = None
    catalog_type_id: int | None = None
    catalog_brand_id: int | None = None
    available_stock: int = 0


class CatalogBrand(CatalogModel):
    id: int
    brand: str


class CatalogItemType(CatalogModel):
    id: int
    type: str


class CatalogResult(CatalogModel):
    """One page of catalog items."""

    page_index: int
    page_size: int
    count: int
    data: list[CatalogItem] = []
