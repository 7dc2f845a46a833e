"""Jinja2 environment shared by the page routes and the error handlers."""

from __future__ import annotations

from pathlib import Path

from fastapi import Request
from fastapi.responses import Response
from fastapi.templating import Jinja2Templates

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))


def render_error_page(
    request: Request,
    status_code: int = 500,
    message: str | None = None,
) -> Response:
    """Render ``error.html`` with the given status."""
    return templates.TemplateResponse(
        request,
        "error.html",
        {"status_code": status_code, "message": message},
        status_code=status_code,
    )
