"""Tests for the catalog client and the catalog pages."""

import asyncio

import httpx
import pytest

from conftest import CATALOG_URL, FakeCatalog
from webapp.catalog.service import CatalogService, product_image_url
from webapp.exceptions import NotFoundError, UpstreamServiceError


def run_with_catalog(fake, call):
    async def go():
        async with httpx.AsyncClient(base_url=CATALOG_URL, transport=httpx.MockTransport(fake)) as http:
            return await call(CatalogService(http))

    return asyncio.run(go())


class TestCatalogService:
    def test_get_catalog_items(self):
        fake = FakeCatalog()

        result = run_with_catalog(fake, lambda s: s.get_catalog_items(0, 9))

        assert result.count == 2
        assert result.data[0].name == "Wanderer Black Hiking Boots"
        assert result.data[0].picture_url == "1.webp"
        [request] = fake.requests
        assert request.url.path == "/api/catalog/items"
        assert request.url.params["api-version"] == "1.0"
        assert request.url.params["pageIndex"] == "0"
        assert request.url.params["pageSize"] == "9"

    @pytest.mark.parametrize(
        "brand_id, type_id, path",
        [
            (3, 2, "/api/catalog/items/type/2/brand/3"),
            (None, 2, "/api/catalog/items/type/2/brand/"),
            (3, None, "/api/catalog/items/type/all/brand/3"),
        ],
    )
    def test_filtered_paths(self, brand_id, type_id, path):
        fake = FakeCatalog()

        run_with_catalog(fake, lambda s: s.get_catalog_items(1, 9, brand_id=brand_id, type_id=type_id))

        assert fake.requests[0].url.path == path

    def test_get_catalog_item(self):
        item = run_with_catalog(FakeCatalog(), lambda s: s.get_catalog_item(2))

        assert item.name == "Summit Pro Harness"
        assert item.available_stock == 0

    def test_missing_item_is_not_found(self):
        with pytest.raises(NotFoundError):
            run_with_catalog(FakeCatalog(), lambda s: s.get_catalog_item(999))

    def test_search_catalog(self):
        fake = FakeCatalog()

        result = run_with_catalog(fake, lambda s: s.search_catalog("hiking boots"))

        assert [item.id for item in result.data] == [1]
        assert fake.requests[0].url.raw_path.startswith(
            b"/api/catalog/items/withsemanticrelevance/hiking%20boots"
        )

    def test_brands_and_types(self):
        brands = run_with_catalog(FakeCatalog(), lambda s: s.get_brands())
        types = run_with_catalog(FakeCatalog(), lambda s: s.get_types())

        assert [b.brand for b in brands] == ["Raptor Elite", "Daybird"]
        assert [t.type for t in types] == ["Climbing", "Footwear"]

    def test_transport_failure(self):
        fake = FakeCatalog()
        fake.error = httpx.ConnectError("connection refused")

        with pytest.raises(UpstreamServiceError):
            run_with_catalog(fake, lambda s: s.get_brands())

    def test_server_error(self):
        def handler(request):
            return httpx.Response(500)

        with pytest.raises(UpstreamServiceError):
            run_with_catalog(handler, lambda s: s.get_types())

    def test_unexpected_payload(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": True})

        with pytest.raises(UpstreamServiceError):
            run_with_catalog(handler, lambda s: s.get_catalog_item(1))


def test_product_image_url():
    assert product_image_url(42) == "product-images/42?api-version=1.0"


class TestCatalogPages:
    def test_catalog_page_lists_items(self, client):
        resp = client.get("/")

        assert resp.status_code == 200
        assert "Wanderer Black Hiking Boots" in resp.text
        assert "Summit Pro Harness" in resp.text
        assert 'src="product-images/1?api-version=1.0"' in resp.text
        assert "Daybird" in resp.text

    def test_catalog_page_filters_and_paging(self, client, catalog_upstream):
        client.get("/?page=2&brand=3&type=2")

        request = catalog_upstream.requests[0]
        assert request.url.path == "/api/catalog/items/type/2/brand/3"
        assert request.url.params["pageIndex"] == "1"

    def test_invalid_page_number(self, client):
        assert client.get("/?page=0").status_code == 422

    def test_item_page(self, client):
        resp = client.get("/item/2")

        assert resp.status_code == 200
        assert "Summit Pro Harness" in resp.text
        assert "$89.99" in resp.text
        assert "Out of stock" in resp.text

    def test_item_picture_is_served_through_forwarder(self, client, catalog_upstream):
        resp = client.get("/item/1")
        assert 'src="product-images/1?api-version=1.0"' in resp.text

        picture = client.get("/product-images/1?api-version=1.0")

        assert picture.status_code == 200
        assert catalog_upstream.requests[-1].url.path == "/api/catalog/items/1/pic"

    def test_static_assets_are_served(self, client):
        resp = client.get("/css/app.css")

        assert resp.status_code == 200
        assert "text/css" in resp.headers["content-type"]
