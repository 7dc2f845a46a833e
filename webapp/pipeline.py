"""Ordered request pipeline stages.

Each stage is a ``(request, call_next)`` dispatch function; ``call_next`` is
awaited exactly once unless the stage answers the request itself. The list
returned by :func:`build_pipeline` is outermost-first.
"""

from __future__ import annotations

import logging

from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from webapp import forwarder
from webapp.antiforgery import Antiforgery, AntiforgeryMiddleware
from webapp.components.templates import render_error_page
from webapp.config import Settings

logger = logging.getLogger(__name__)

_HSTS_EXCLUDED_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "[::1]"})


class ErrorPageMiddleware(BaseHTTPMiddleware):
    """Render the ``/Error`` page for exceptions no handler dealt with."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
            return render_error_page(request, status_code=500)


class HSTSMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, max_age: int):
        super().__init__(app)
        self.header_value = f"max-age={max_age}"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        host = (request.url.hostname or "").lower()
        if request.url.scheme == "https" and host not in _HSTS_EXCLUDED_HOSTS:
            response.headers["Strict-Transport-Security"] = self.header_value
        return response


class HttpsRedirectMiddleware(BaseHTTPMiddleware):
    """Redirect plain HTTP to HTTPS on ``https_port`` with a 307.

    Without a known port the stage passes requests through and warns once.
    """

    def __init__(self, app: ASGIApp, https_port: int | None):
        super().__init__(app)
        self.https_port = https_port
        self._warned = False

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.scheme != "http":
            return await call_next(request)
        if self.https_port is None:
            if not self._warned:
                logger.warning("Failed to determine the https port for redirect.")
                self._warned = True
            return await call_next(request)

        host = request.url.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        netloc = host if self.https_port == 443 else f"{host}:{self.https_port}"
        url = request.url.replace(scheme="https", netloc=netloc)
        return RedirectResponse(str(url), status_code=307)


def build_pipeline(settings: Settings) -> list[Middleware]:
    """Return the middleware stages for ``settings``, outermost first."""
    stages: list[Middleware] = []
    if not settings.is_development:
        # HSTS outside the error page so 500 responses carry the header too.
        stages.append(Middleware(HSTSMiddleware, max_age=settings.hsts_max_age))
        stages.append(Middleware(ErrorPageMiddleware))
    stages.append(Middleware(HttpsRedirectMiddleware, https_port=settings.redirect_https_port))
    stages.append(
        Middleware(
            AntiforgeryMiddleware,
            antiforgery=Antiforgery(settings.antiforgery_secret.get_secret_value()),
            exempt_prefixes=(forwarder.ROUTE_PREFIX,),
        )
    )
    return stages
