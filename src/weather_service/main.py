"""Application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from prometheus_client import make_asgi_app

from weather_service import __version__
from weather_service.api.routes import health_router, weather_router
from weather_service.api.schemas import InvalidParametersResponse
from weather_service.config import Settings, get_settings
from weather_service.middleware.logging import LoggingMiddleware, configure_logging
from weather_service.services.cache import WeatherCache
from weather_service.services.upstream import UpstreamWeatherClient
from weather_service.services.weather import WeatherResolutionService

logger = structlog.get_logger()


def build_lifespan(settings: Settings):
    """Build the lifespan that owns the shared HTTP and MongoDB clients."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        mongo = AsyncIOMotorClient(settings.mongo_url, tz_aware=True)
        http_client = httpx.AsyncClient(timeout=settings.upstream_timeout_seconds)

        cache = WeatherCache(mongo[settings.mongo_database][settings.mongo_collection])
        client = UpstreamWeatherClient(settings, http_client)
        app.state.weather_service = WeatherResolutionService(cache, client)

        try:
            await cache.ensure_indexes()
        except Exception as e:
            # Readiness reports the store as unhealthy until it answers
            logger.warning("Could not create snapshot indexes", error=str(e))

        logger.info(
            "Weather service started",
            version=__version__,
            database=settings.mongo_database,
            collection=settings.mongo_collection,
        )
        try:
            yield
        finally:
            await http_client.aclose()
            mongo.close()
            logger.info("Weather service stopped")

    return lifespan


async def invalid_parameters_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report unparseable query values as 400 rather than 422."""
    body = InvalidParametersResponse(
        errors=[
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
            for error in exc.errors()
        ],
        timestamp=datetime.now(UTC),
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body.model_dump(mode="json"),
    )


def create_app(
    settings: Settings | None = None,
    weather_service: WeatherResolutionService | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    When ``weather_service`` is given it is used as-is and no clients are
    opened at startup.
    """
    settings = settings or get_settings()

    configure_logging(settings)

    app = FastAPI(
        title="Weather Service API",
        description="Current weather by coordinates or city name, cached in MongoDB",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=build_lifespan(settings) if weather_service is None else None,
    )
    if weather_service is not None:
        app.state.weather_service = weather_service

    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(RequestValidationError, invalid_parameters_handler)

    app.include_router(weather_router)
    app.include_router(health_router)

    app.mount("/metrics", make_asgi_app())

    return app


# Create app instance for ASGI servers
app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "weather_service.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
