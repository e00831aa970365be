"""FastAPI server for the Bitrix warehouse-document bridge.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.rate_limit import RateLimitExceeded, SlidingWindowRateLimiter
from api.routes import documents, health, init
from connectors.bitrix.bx_client import BXApiClient, BXApiConfig
from connectors.bitrix.bx_connector import BitrixConnector
from core import __version__
from core.config import BridgeSettings
from core.documents.pipeline import DocumentPipeline, PipelineSettings
from core.observability.logging import configure_logging, get_logger
from core.security.link_store import EnvFileLinkStore, LinkStore

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: BridgeSettings = app.state.settings
    logger.info(f"Bitrix warehouse bridge starting up on {settings.base_path}")
    await app.state.bx_client.connect()

    yield

    await app.state.bx_client.disconnect()
    logger.info("Bitrix warehouse bridge shutting down")


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "status": False,
            "status_msg": "error",
            "message": "Too many requests, please try again later.",
        },
        headers={"Retry-After": str(max(int(exc.retry_after), 1))},
    )


def create_app(
    settings: Optional[BridgeSettings] = None,
    link_store: Optional[LinkStore] = None,
    bx_client: Optional[BXApiClient] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Bridge settings (default: read from the environment)
        link_store: Webhook link storage (default: the settings' dotenv file)
        bx_client: Bitrix REST client (default: one built over link_store)
    """
    settings = settings or BridgeSettings.from_env()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    link_store = link_store or EnvFileLinkStore(settings.env_file)
    bx_client = bx_client or BXApiClient(
        link_store,
        BXApiConfig(timeout_seconds=settings.bx_timeout_seconds),
    )

    app = FastAPI(
        title="Bitrix Warehouse Bridge",
        description="Creates Bitrix24 warehouse documents from CRM deal and smart-process product rows",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.link_store = link_store
    app.state.bx_client = bx_client
    app.state.pipeline = DocumentPipeline(
        BitrixConnector(bx_client),
        PipelineSettings.from_bridge_settings(settings),
    )
    app.state.init_limiter = SlidingWindowRateLimiter(
        max_calls=settings.init_rate_limit,
        window_seconds=settings.init_rate_window_seconds,
    )

    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(init.router, prefix=settings.base_path, tags=["Setup"])
    app.include_router(documents.router, prefix=settings.base_path, tags=["Documents"])

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = BridgeSettings.from_env()
    uvicorn.run(create_app(_settings), host="0.0.0.0", port=_settings.port)
