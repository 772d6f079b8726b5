"""Test fixtures."""

import copy
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.errors import ConnectionFailure

from weather_service.api.schemas import WeatherSnapshot
from weather_service.config import Settings
from weather_service.main import create_app
from weather_service.services.cache import WeatherCache
from weather_service.services.upstream import UpstreamWeatherClient
from weather_service.services.weather import WeatherResolutionService

FORECAST_PAYLOAD: dict[str, Any] = {
    "latitude": 52.52,
    "longitude": 13.419998,
    "generationtime_ms": 0.05,
    "utc_offset_seconds": 0,
    "timezone": "GMT",
    "timezone_abbreviation": "GMT",
    "elevation": 38.0,
    "current": {
        "time": "2024-05-01T12:00",
        "temperature_2m": 15.5,
        "windspeed_10m": 12.3,
        "winddirection_10m": 250,
    },
    "daily": {
        "time": ["2024-05-01"],
        "sunrise": ["2024-05-01T03:28"],
    },
}


class FakeDatabase:
    """Answers the ``ping`` command like a motor database."""

    def __init__(self) -> None:
        self.healthy = True

    async def command(self, name: str) -> dict[str, float]:
        if not self.healthy:
            raise ConnectionFailure("server unreachable")
        return {"ok": 1.0}


class FakeCollection:
    """In-memory stand-in for the motor collection methods the cache uses."""

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.indexes: list[list[tuple[str, int]]] = []
        self.database = FakeDatabase()

    async def find_one(
        self, query: dict[str, Any], projection: dict[str, bool] | None = None
    ) -> dict[str, Any] | None:
        for document in self.documents:
            if all(document.get(key) == value for key, value in query.items()):
                found = dict(document)
                if projection and projection.get("_id") is False:
                    found.pop("_id", None)
                return found
        return None

    async def insert_one(self, document: dict[str, Any]) -> None:
        document["_id"] = len(self.documents) + 1
        self.documents.append(dict(document))

    async def create_index(self, keys: list[tuple[str, int]]) -> str:
        self.indexes.append(keys)
        return "_".join(f"{name}_{direction}" for name, direction in keys)


def make_snapshot(**overrides: Any) -> WeatherSnapshot:
    """Build a snapshot with sensible defaults."""
    values: dict[str, Any] = {
        "latitude": 30.0,
        "longitude": 30.0,
        "temperature": 25.0,
        "windSpeed": 10.0,
        "windDirection": 180,
        "sunriseDateTime": datetime(2024, 5, 1, 4, 12, tzinfo=UTC),
        "timestamp": datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=UTC),
    }
    values.update(overrides)
    return WeatherSnapshot(**values)


@pytest.fixture
def forecast_payload() -> dict[str, Any]:
    """Return a fresh copy of a typical forecast response."""
    return copy.deepcopy(FORECAST_PAYLOAD)


@pytest.fixture
def snapshot_factory():
    """Expose the snapshot builder to tests."""
    return make_snapshot


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        weather_api_url="https://weather.test/v1/forecast",
        geocode_api_url="https://geocode.test",
        upstream_timeout_seconds=1.0,
        log_level="DEBUG",
        log_format="text",
    )


@pytest.fixture
def collection() -> FakeCollection:
    """Create an empty in-memory snapshot collection."""
    return FakeCollection()


@pytest.fixture
def cache(collection: FakeCollection) -> WeatherCache:
    """Create test cache over the in-memory collection."""
    return WeatherCache(collection)  # type: ignore[arg-type]


@pytest.fixture
def upstream_client(settings: Settings) -> UpstreamWeatherClient:
    """Create test upstream client; requests are intercepted by respx."""
    return UpstreamWeatherClient(settings, httpx.AsyncClient())


@pytest.fixture
def weather_service(
    cache: WeatherCache, upstream_client: UpstreamWeatherClient
) -> WeatherResolutionService:
    """Create a service wired to the in-memory cache and the real client."""
    return WeatherResolutionService(cache, upstream_client)


@pytest.fixture
def mock_service() -> AsyncMock:
    """Create a service double for handler tests."""
    return AsyncMock(spec=WeatherResolutionService)


def build_client(settings: Settings, service: Any) -> TestClient:
    app: FastAPI = create_app(settings, weather_service=service)
    return TestClient(app)


@pytest.fixture
def client(settings: Settings, weather_service: WeatherResolutionService) -> TestClient:
    """Create test client over the wired service."""
    return build_client(settings, weather_service)


@pytest.fixture
def mocked_client(settings: Settings, mock_service: AsyncMock) -> TestClient:
    """Create test client over the service double."""
    return build_client(settings, mock_service)
