"""Pytest configuration and fixtures for the web front-end tests."""

import copy
import re
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from openai.types.chat import ChatCompletion

from webapp.chat.client import ChatResult
from webapp.config import AzureOpenAISettings, Settings
from webapp.dependencies import get_chat_client
from webapp.main import create_app

CATALOG_URL = "http://localhost:5301"

ITEMS = [
    {
        "id": 1,
        "name": "Wanderer Black Hiking Boots",
        "description": "Daybird's Wanderer Hiking Boots in sleek black are perfect for all your outdoor adventures.",
        "price": 109.99,
        "pictureUrl": "1.webp",
        "catalogTypeId": 2,
        "catalogBrandId": 3,
        "availableStock": 100,
    },
    {
        "id": 2,
        "name": "Summit Pro Harness",
        "description": "Conquer new heights with the Summit Pro Harness by Raptor Elite.",
        "price": 89.99,
        "pictureUrl": "2.webp",
        "catalogTypeId": 1,
        "catalogBrandId": 1,
        "availableStock": 0,
    },
]
BRANDS = [{"id": 1, "brand": "Raptor Elite"}, {"id": 3, "brand": "Daybird"}]
TYPES = [{"id": 1, "type": "Climbing"}, {"id": 2, "type": "Footwear"}]
PICTURE = b"\x89PNG\r\n\x1a\nfake-image-bytes"


class PictureStream(httpx.AsyncByteStream):
    """Upstream response body that remembers whether it was closed."""

    def __init__(self, data: bytes):
        self.data = data
        self.closed = False

    async def __aiter__(self):
        yield self.data

    async def aclose(self):
        self.closed = True


class FakeCatalog:
    """Stands in for the catalog service behind an ``httpx.MockTransport``."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None
        self.pic_status = 200
        self.pic_headers: list[tuple[str, str]] = []
        self.streams: list[PictureStream] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        path = request.url.path
        page = {"pageIndex": 0, "pageSize": 9, "count": len(ITEMS), "data": ITEMS}

        match = re.fullmatch(r"/api/catalog/items/(\w+)/pic", path)
        if match:
            # Streamed like a real network response so the forwarder can relay it.
            body = PICTURE if self.pic_status == 200 else b""
            stream = PictureStream(body)
            self.streams.append(stream)
            headers = [("content-length", str(len(body)))]
            if self.pic_status == 200:
                headers += [("content-type", "image/png"), ("cache-control", "max-age=3600")]
            return httpx.Response(self.pic_status, headers=headers + self.pic_headers, stream=stream)
        match = re.fullmatch(r"/api/catalog/items/(\d+)", path)
        if match:
            for item in ITEMS:
                if item["id"] == int(match.group(1)):
                    return httpx.Response(200, json=item)
            return httpx.Response(404)
        if path == "/api/catalog/items" or path.startswith("/api/catalog/items/type/"):
            return httpx.Response(200, json=page)
        if path.startswith("/api/catalog/items/withsemanticrelevance/"):
            return httpx.Response(200, json={**page, "data": ITEMS[:1], "count": 1})
        if path == "/api/catalog/catalogBrands":
            return httpx.Response(200, json=BRANDS)
        if path == "/api/catalog/catalogTypes":
            return httpx.Response(200, json=TYPES)
        return httpx.Response(404)


class FakeChatClient:
    """Replaces the function-invoking chat client in route tests."""

    def __init__(self, text: str = "We have great hiking boots!", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[list[dict], list]] = []

    async def complete(self, messages, functions=()):
        self.calls.append((list(messages), list(functions)))
        if self.error is not None:
            raise self.error
        return ChatResult(text=self.text, function_calls=[])


class FakeOpenAI:
    """Minimal ``AsyncAzureOpenAI`` stand-in returning queued completions."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[dict] = []
        self.closed = False
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.calls.append(copy.deepcopy(kwargs))
        return self.responses.pop(0)

    async def close(self):
        self.closed = True


def completion(content=None, tool_calls=None) -> ChatCompletion:
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = [
            {
                "id": call_id,
                "type": "function",
                "function": {"name": name, "arguments": arguments},
            }
            for call_id, name, arguments in tool_calls
        ]
    return ChatCompletion.model_validate(
        {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "created": 0,
            "model": "gpt-4o-mini",
            "choices": [
                {
                    "index": 0,
                    "finish_reason": "tool_calls" if tool_calls else "stop",
                    "message": message,
                }
            ],
        }
    )


def make_settings(**overrides) -> Settings:
    values = {
        "azureopenai": AzureOpenAISettings(
            endpoint="https://eshop-test.openai.azure.com/",
            api_key="test-key",
            deployment_name="gpt-4o-mini",
        ),
        "environment": "Production",
        "catalog_url": CATALOG_URL,
        "antiforgery_secret": "test-antiforgery-secret",
        "https_port": 443,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def azure_options():
    return AzureOpenAISettings(
        endpoint="https://eshop-test.openai.azure.com/",
        api_key="test-key",
        deployment_name="gpt-4o-mini",
    )


@pytest.fixture
def catalog_upstream():
    return FakeCatalog()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def app(settings, catalog_upstream, chat_client):
    application = create_app(settings, http_transport=httpx.MockTransport(catalog_upstream))
    application.dependency_overrides[get_chat_client] = lambda: chat_client
    return application


@pytest.fixture
def client(app):
    with TestClient(app, base_url="https://testserver") as c:
        yield c


@pytest.fixture
def dev_app(catalog_upstream, chat_client):
    application = create_app(
        make_settings(environment="Development"),
        http_transport=httpx.MockTransport(catalog_upstream),
    )
    application.dependency_overrides[get_chat_client] = lambda: chat_client
    return application
