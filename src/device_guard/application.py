import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dishka import AsyncContainer
from dishka.integrations.fastapi import setup_dishka
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from sqlalchemy.ext.asyncio import AsyncEngine

from device_guard.api import register_routers
from device_guard.api.middleware import PUBLIC_PATHS, ApiKeyMiddleware
from device_guard.ioc import get_async_container
from device_guard.services.logging import setup_logging
from device_guard.settings import Config, get_config

logger = logging.getLogger(__name__)

_OPENAPI_API_KEY_SCHEME = "ApiKeyAuth"


def _install_openapi_api_key_security(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = get_openapi(
            title=app.title,
            version=app.version,
            routes=app.routes,
        )

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes[_OPENAPI_API_KEY_SCHEME] = {
            "type": "apiKey",
            "in": "header",
            "name": "X-API-Key",
        }
        schema["security"] = [{_OPENAPI_API_KEY_SCHEME: []}]

        for path in PUBLIC_PATHS:
            for operation in schema.get("paths", {}).get(path, {}).values():
                operation["security"] = []

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi


async def _create_tables(container: AsyncContainer) -> None:
    from device_guard.database.base import Base

    # Import models so Base.metadata knows about them
    import device_guard.api.modules.devices.models  # noqa: F401

    engine = await container.get(AsyncEngine)
    logger.info("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config: Config = app.state.config
    container: AsyncContainer = app.state.dishka_container

    if config.devices.storage_backend == "database":
        await _create_tables(container)

    logger.info(
        "Starting application (storage=%s, account_limit=%d)...",
        config.devices.storage_backend,
        config.devices.account_limit,
    )
    yield
    logger.info("Shutting down application...")
    await container.close()


def get_production_app(config: Config | None = None) -> FastAPI:
    """Get the FastAPI application instance."""
    config = config or get_config()
    setup_logging(config.env)

    app = FastAPI(
        title=config.api.title,
        version=config.api.version,
        lifespan=lifespan,
    )
    app.state.config = config

    if config.api.api_key:
        app.add_middleware(ApiKeyMiddleware, api_key=config.api.api_key)
        _install_openapi_api_key_security(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_hosts,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_router = APIRouter()
    register_routers(api_router)
    app.include_router(api_router)

    setup_dishka(get_async_container(config), app)

    return app
