"""Custom exception hierarchy and global error handlers."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from webapp.components.templates import render_error_page

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        detail: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(detail)


class ConfigurationError(AppException):
    def __init__(self, detail: str = "Invalid configuration"):
        super().__init__(detail=detail, status_code=500, error_code="CONFIGURATION_ERROR")


class NotFoundError(AppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail=detail, status_code=404, error_code="NOT_FOUND")


class UpstreamServiceError(AppException):
    def __init__(self, detail: str = "Upstream service error"):
        super().__init__(detail=detail, status_code=502, error_code="UPSTREAM_SERVICE_ERROR")


class ChatServiceError(AppException):
    def __init__(self, detail: str = "Chat service error"):
        super().__init__(detail=detail, status_code=502, error_code="CHAT_SERVICE_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppException)
    def handle_app_exception(request: Request, exc: AppException) -> Response:
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.detail)
        if request.url.path.startswith("/api/"):
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": {"code": exc.error_code, "message": exc.detail}},
            )
        return render_error_page(request, status_code=exc.status_code, message=exc.detail)
