"""Anti-forgery tokens for form posts (double-submit cookie)."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

COOKIE_NAME = "eshop.antiforgery"
FORM_FIELD = "__RequestVerificationToken"
HEADER_NAME = "RequestVerificationToken"

_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class Antiforgery:
    """Issues cookie tokens and derives the matching request tokens."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("antiforgery secret must not be empty")
        self._key = secret.encode("utf-8")

    def new_cookie_token(self) -> str:
        return secrets.token_urlsafe(32)

    def request_token(self, cookie_token: str) -> str:
        return hmac.new(self._key, cookie_token.encode("utf-8"), hashlib.sha256).hexdigest()

    def is_valid(self, cookie_token: str | None, request_token: str | None) -> bool:
        if not cookie_token or not request_token:
            return False
        return hmac.compare_digest(self.request_token(cookie_token), request_token)


def _is_form_post(request: Request) -> bool:
    if request.method in _SAFE_METHODS:
        return False
    content_type = request.headers.get("content-type", "").lower()
    return content_type.startswith(_FORM_CONTENT_TYPES)


async def _submitted_token(request: Request) -> str | None:
    token = request.headers.get(HEADER_NAME)
    if token:
        return token
    # Cache the raw body first so the endpoint can parse the form again.
    await request.body()
    form = await request.form()
    value = form.get(FORM_FIELD)
    return value if isinstance(value, str) else None


class AntiforgeryMiddleware(BaseHTTPMiddleware):
    """Reject form posts that lack a valid request token.

    Every request leaves ``request.state.antiforgery_token`` set so templates
    can embed the token in their forms.
    """

    def __init__(
        self,
        app: ASGIApp,
        antiforgery: Antiforgery,
        secure_cookie: bool = True,
        exempt_prefixes: tuple[str, ...] = (),
    ):
        super().__init__(app)
        self.antiforgery = antiforgery
        self.secure_cookie = secure_cookie
        self.exempt_prefixes = exempt_prefixes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cookie_token = request.cookies.get(COOKIE_NAME)

        if _is_form_post(request) and not request.url.path.startswith(self.exempt_prefixes):
            submitted = await _submitted_token(request)
            if not self.antiforgery.is_valid(cookie_token, submitted):
                logger.warning(
                    "Antiforgery validation failed for %s %s", request.method, request.url.path
                )
                return PlainTextResponse(
                    "The antiforgery token could not be validated.", status_code=400
                )

        issue_cookie = cookie_token is None
        if issue_cookie:
            cookie_token = self.antiforgery.new_cookie_token()
        request.state.antiforgery_token = self.antiforgery.request_token(cookie_token)

        response = await call_next(request)

        if issue_cookie:
            response.set_cookie(
                COOKIE_NAME,
                cookie_token,
                httponly=True,
                secure=self.secure_cookie,
                samesite="strict",
            )
        return response
