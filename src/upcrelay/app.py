"""FastAPI application for upcrelay."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from upcrelay import __version__
from upcrelay.config import Settings, configure_logging, get_settings
from upcrelay.models import HealthResponse
from upcrelay.routers import lookup
from upcrelay.services.lookup import LookupPipeline
from upcrelay.services.token import TokenManager


def build_pipeline(settings: Settings, http_client: httpx.AsyncClient) -> LookupPipeline:
    """Wire the token manager and lookup pipeline from *settings*."""
    token_manager = TokenManager(
        settings.ebay_client_id,
        settings.ebay_client_secret,
        settings.ebay_refresh_token,
        http_client=http_client,
        token_url=settings.ebay_token_url,
        scope=settings.ebay_scope,
        timeout=settings.ebay_timeout,
    )
    return LookupPipeline(
        token_manager,
        http_client,
        browse_url=settings.ebay_browse_url,
        marketplace_id=settings.ebay_marketplace_id,
        timeout=settings.ebay_timeout,
        limit=settings.ebay_search_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the shared HTTP client on shutdown."""
    yield
    await app.state.http_client.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    The token manager and HTTP client are created here, once per app, and
    shared by every request through ``app.state``.  Serve it with
    ``uvicorn --factory upcrelay.app:create_app`` or the ``upcrelay`` script.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="upcrelay",
        description="Barcode lookup relay for the eBay Browse API",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.http_client = httpx.AsyncClient()
    app.state.pipeline = build_pipeline(settings, app.state.http_client)

    app.include_router(lookup.router, tags=["lookup"])

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        """Plain-text liveness string."""
        return "QR Lookup Backend running"

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Liveness check."""
        return HealthResponse(version=__version__)

    return app


def main() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())
