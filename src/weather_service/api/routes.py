"""API route definitions."""

from datetime import UTC, datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter
from pydantic import BaseModel

from weather_service.api.dependencies import WeatherServiceDep
from weather_service.api.schemas import (
    CityNotFoundResponse,
    HealthResponse,
    InvalidCityResponse,
    InvalidLocationResponse,
    ProblemResponse,
    ReadinessResponse,
    WeatherSnapshot,
)
from weather_service.services.errors import ErrorKind, classify

logger = structlog.get_logger()

CITY_MIN_LENGTH = 2

# Metrics
resolution_failures = Counter(
    "resolution_failures_total",
    "Failed weather resolutions by route and error kind",
    ["route", "kind"],
)

# Router for weather endpoints
weather_router = APIRouter(prefix="/weather", tags=["weather"])

# Health router for health checks
health_router = APIRouter(prefix="/health", tags=["health"])


def _now() -> datetime:
    return datetime.now(UTC)


def _json(status_code: int, body: BaseModel) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
    )


def _problem(detail: str) -> JSONResponse:
    return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, ProblemResponse(detail=detail))


def _record_failure(route: str, exc: Exception) -> ErrorKind:
    kind = classify(exc)
    resolution_failures.labels(route=route, kind=kind.value).inc()
    return kind


def validate_location(
    latitude: float | None, longitude: float | None
) -> InvalidLocationResponse | None:
    """Return a 400 body describing the first failed constraint, if any."""
    if latitude is None or longitude is None:
        return InvalidLocationResponse(
            message="Latitude and Longitude are required",
            timestamp=_now(),
        )
    if latitude < -90 or latitude > 90:
        return InvalidLocationResponse(
            message="Latitude must be between -90 and 90.",
            latitude=latitude,
            timestamp=_now(),
        )
    if longitude < -180 or longitude > 180:
        return InvalidLocationResponse(
            message="Longitude must be between -180 and 180.",
            longitude=longitude,
            timestamp=_now(),
        )
    return None


def validate_city(city: str | None) -> InvalidCityResponse | None:
    """Return a 400 body when the city name is missing or too short."""
    if city is None:
        return InvalidCityResponse(message="City is required", timestamp=_now())
    if len(city) < CITY_MIN_LENGTH:
        return InvalidCityResponse(
            message=f"City must contain at least {CITY_MIN_LENGTH} letters",
            city=city,
            timestamp=_now(),
        )
    return None


@weather_router.get(
    "/location",
    response_model=WeatherSnapshot,
    responses={
        400: {
            "model": InvalidLocationResponse,
            "description": "Missing or out-of-range coordinates",
        },
        500: {"model": ProblemResponse, "description": "Resolution failed"},
    },
)
async def get_weather_by_location(
    weather_service: WeatherServiceDep,
    latitude: Annotated[
        float | None, Query(description="Latitude", allow_inf_nan=False)
    ] = None,
    longitude: Annotated[
        float | None, Query(description="Longitude", allow_inf_nan=False)
    ] = None,
) -> WeatherSnapshot | JSONResponse:
    """Get weather for coordinates.

    Returns a cached snapshot for this exact pair when one exists, otherwise
    fetches current conditions from the weather provider and stores them.
    """
    invalid = validate_location(latitude, longitude)
    if invalid is not None:
        logger.info("Rejected location request", reason=invalid.message)
        return _json(status.HTTP_400_BAD_REQUEST, invalid)

    try:
        return await weather_service.resolve_by_location(latitude, longitude)
    except Exception as e:
        kind = _record_failure("location", e)
        logger.error(
            "Weather resolution failed",
            lat=latitude,
            lon=longitude,
            kind=kind.value,
            error=str(e),
        )
        return _problem(str(e))


@weather_router.get(
    "/city",
    response_model=WeatherSnapshot,
    responses={
        400: {"model": InvalidCityResponse, "description": "Missing or too short city"},
        404: {"model": CityNotFoundResponse, "description": "City or weather not found"},
        500: {"model": ProblemResponse, "description": "Cache lookup failed"},
    },
)
async def get_weather_by_city(
    weather_service: WeatherServiceDep,
    city: Annotated[str | None, Query(description="City name")] = None,
) -> WeatherSnapshot | JSONResponse:
    """Get weather for a city name.

    A failed cache read is reported as 500. Once the cache has missed, every
    failure (unknown city, provider outage, unparseable payload) is reported as
    404.
    """
    invalid = validate_city(city)
    if invalid is not None:
        logger.info("Rejected city request", reason=invalid.message)
        return _json(status.HTTP_400_BAD_REQUEST, invalid)

    try:
        cached = await weather_service.lookup_cached_by_city(city)
    except Exception as e:
        kind = _record_failure("city_cache", e)
        logger.error("City cache lookup failed", city=city, kind=kind.value, error=str(e))
        return _problem(str(e))

    if cached is not None:
        return cached

    try:
        return await weather_service.fetch_by_city(city)
    except Exception as e:
        kind = _record_failure("city", e)
        logger.warning("City resolution failed", city=city, kind=kind.value, error=str(e))
        return _json(
            status.HTTP_404_NOT_FOUND,
            CityNotFoundResponse(city=city, detail=str(e), timestamp=_now()),
        )


@health_router.get("/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness probe - checks if the service is running."""
    return HealthResponse(status="ok")


@health_router.get("/ready", response_model=ReadinessResponse)
async def readiness(weather_service: WeatherServiceDep) -> ReadinessResponse | JSONResponse:
    """Readiness probe - checks that the snapshot store answers."""
    cache_status = "ok" if await weather_service.cache.ping() else "unhealthy"

    response = ReadinessResponse(status=cache_status, checks={"cache": cache_status})

    if cache_status != "ok":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
