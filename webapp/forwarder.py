"""Reverse-proxy rule for product images.

``/product-images/{id}`` is relayed to the catalog service's
``/api/catalog/items/{id}/pic`` and the upstream response is streamed back
unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Request
from starlette.background import BackgroundTask
from starlette.responses import Response, StreamingResponse

logger = logging.getLogger(__name__)

ROUTE_PREFIX = "/product-images/"
UPSTREAM_PATH = "/api/catalog/items/{id}/pic"
CLIENT_CLOSED_REQUEST = 499

_HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
_FORWARDED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _end_to_end(headers, *, drop: frozenset[str] = frozenset()) -> list[tuple[str, str]]:
    items = headers.multi_items() if isinstance(headers, httpx.Headers) else headers.items()
    return [
        (name, value)
        for name, value in items
        if name.lower() not in _HOP_BY_HOP_HEADERS and name.lower() not in drop
    ]


async def _wait_for_disconnect(request: Request) -> None:
    # The body has already been read, so only the disconnect message is left.
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


class ImageForwarder:
    """Forwards requests to one static upstream. No retries, no balancing."""

    def __init__(self, client: httpx.AsyncClient, upstream: str, path_template: str = UPSTREAM_PATH):
        self.client = client
        self.upstream = upstream.rstrip("/")
        self.path_template = path_template

    def upstream_url(self, item_id: str, query: str = "") -> str:
        path = self.path_template.replace("{id}", quote(item_id, safe=""))
        url = self.upstream + path
        return f"{url}?{query}" if query else url

    def _request_headers(self, request: Request) -> list[tuple[str, str]]:
        headers = _end_to_end(request.headers, drop=frozenset({"host", "content-length"}))
        client_host = request.client.host if request.client else None
        prior = request.headers.get("x-forwarded-for")
        if client_host:
            headers = [(k, v) for k, v in headers if k.lower() != "x-forwarded-for"]
            headers.append(("x-forwarded-for", f"{prior}, {client_host}" if prior else client_host))
        headers.append(("x-forwarded-proto", request.url.scheme))
        if "host" in request.headers:
            headers.append(("x-forwarded-host", request.headers["host"]))
        return headers

    async def _send(self, request: Request, upstream_request: httpx.Request) -> httpx.Response | None:
        """Send upstream, or return ``None`` if the client disconnects first."""
        send = asyncio.ensure_future(self.client.send(upstream_request, stream=True))
        disconnected = asyncio.ensure_future(_wait_for_disconnect(request))
        try:
            await asyncio.wait({send, disconnected}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            send.cancel()
            raise
        finally:
            disconnected.cancel()
        if send.done():
            return send.result()
        send.cancel()
        await asyncio.wait({send})
        return None

    async def forward(self, request: Request, item_id: str) -> Response:
        url = self.upstream_url(item_id, request.url.query)
        body = await request.body()
        upstream_request = self.client.build_request(
            request.method,
            url,
            headers=self._request_headers(request),
            content=body or None,
        )

        try:
            upstream = await self._send(request, upstream_request)
        except httpx.TimeoutException as exc:
            logger.warning("Upstream timeout forwarding %s: %s", url, exc)
            return Response(status_code=504)
        except httpx.RequestError as exc:
            logger.warning("Upstream error forwarding %s: %s", url, exc)
            return Response(status_code=502)

        if upstream is None:
            logger.info("Client disconnected, upstream call to %s aborted", url)
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        logger.debug("Forwarded %s %s -> %d", request.method, url, upstream.status_code)
        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        # Keep repeated headers such as Set-Cookie intact.
        response.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in _end_to_end(upstream.headers)
        ]
        return response


router = APIRouter(include_in_schema=False)


@router.api_route(ROUTE_PREFIX + "{item_id}", methods=_FORWARDED_METHODS)
async def forward_product_image(item_id: str, request: Request) -> Response:
    forwarder: ImageForwarder = request.app.state.image_forwarder
    return await forwarder.forward(request, item_id)
