"""eShop web front-end — FastAPI application."""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from webapp import __version__
from webapp.catalog.service import CatalogService
from webapp.chat.client import ChatClientProvider
from webapp.chat.router import router as chat_router
from webapp.components.router import router as pages_router
from webapp.config import Settings, load_settings
from webapp.exceptions import ConfigurationError, register_exception_handlers
from webapp.forwarder import ImageForwarder
from webapp.forwarder import router as forwarder_router
from webapp.health import router as health_router
from webapp.pipeline import build_pipeline

logger = logging.getLogger(__name__)

_STATIC_DIR = Path(__file__).resolve().parent / "static"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )


def create_app(
    settings: Settings | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application for ``settings``.

    Configuration is validated here, so an invalid ``AzureOpenAI`` section
    raises :class:`ConfigurationError` before anything can serve traffic.
    ``http_transport`` replaces the network transport of the outbound
    HTTP clients.
    """
    if settings is None:
        settings = load_settings()
    chat_client_provider = ChatClientProvider(settings.azure_openai)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup / shutdown lifecycle — creates the outbound HTTP clients."""
        catalog_http = httpx.AsyncClient(
            base_url=settings.catalog_base_url, transport=http_transport
        )
        forwarder_http = httpx.AsyncClient(transport=http_transport)
        app.state.catalog_service = CatalogService(catalog_http)
        app.state.image_forwarder = ImageForwarder(forwarder_http, settings.catalog_base_url)
        logger.info("Catalog service at %s", settings.catalog_base_url)

        yield

        await forwarder_http.aclose()
        await catalog_http.aclose()
        await chat_client_provider.aclose()
        logger.info("HTTP clients closed")

    app = FastAPI(
        title="eShop WebApp",
        version=__version__,
        debug=settings.is_development,
        lifespan=lifespan,
        middleware=build_pipeline(settings),
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.chat_client_provider = chat_client_provider

    # Exception handlers
    register_exception_handlers(app)

    # Routes
    app.include_router(pages_router)
    app.include_router(chat_router)
    if settings.is_development:
        app.include_router(health_router)
    app.include_router(forwarder_router)

    # Static assets at root, after every route
    app.mount("/", StaticFiles(directory=str(_STATIC_DIR)), name="static")

    logger.info("Application configured for the %s environment", settings.environment)
    return app


def run() -> None:
    """Validate configuration, then serve until the process is stopped."""
    configure_logging()
    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.critical("Startup aborted: %s", exc.detail)
        raise SystemExit(1) from exc

    logging.getLogger().setLevel(settings.log_level.upper())
    if settings.redirect_https_port is None:
        logger.warning("No HTTPS port configured; plain HTTP is served without redirect")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        ssl_certfile=settings.ssl_certfile,
        ssl_keyfile=settings.ssl_keyfile,
        proxy_headers=settings.proxy_headers,
        forwarded_allow_ips=settings.forwarded_allow_ips,
        log_config=None,
    )


if __name__ == "__main__":
    run()
