"""Tests for the resolution service."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from weather_service.services.cache import WeatherCache
from weather_service.services.errors import GeocodeIncompleteError, UpstreamUnavailableError
from weather_service.services.upstream import (
    CurrentConditions,
    GeoLocation,
    UpstreamWeatherClient,
)
from weather_service.services.weather import WeatherResolutionService

CONDITIONS = CurrentConditions(
    temperature=21.5,
    wind_speed=7.2,
    wind_direction=90,
    sunrise=datetime(2024, 5, 1, 4, 2, tzinfo=UTC),
)


class AlwaysMissingCache(WeatherCache):
    """Cache whose coordinate lookup never hits."""

    async def find_by_location(self, lat: float, lon: float) -> None:
        return None


@pytest.fixture
def upstream() -> AsyncMock:
    """Create an upstream client double."""
    client = AsyncMock(spec=UpstreamWeatherClient)
    client.fetch_weather.return_value = CONDITIONS
    client.geocode_city.return_value = GeoLocation(latitude=48.85341, longitude=2.3488)
    return client


@pytest.fixture
def service(cache: WeatherCache, upstream: AsyncMock) -> WeatherResolutionService:
    """Create service over the in-memory cache and the client double."""
    return WeatherResolutionService(cache, upstream)


class TestResolveByLocation:
    """Tests for WeatherResolutionService.resolve_by_location."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_upstream(
        self, service, cache, upstream, snapshot_factory
    ) -> None:
        cached = snapshot_factory(latitude=30.0, longitude=30.0, temperature=25.0)
        await cache.insert(cached)

        result = await service.resolve_by_location(30.0, 30.0)

        assert result == cached
        upstream.fetch_weather.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_miss_fetches_and_stores(self, service, collection, upstream) -> None:
        before = datetime.now(UTC) - timedelta(seconds=1)

        result = await service.resolve_by_location(52.52, 13.41)

        upstream.fetch_weather.assert_awaited_once_with(52.52, 13.41, city=None)
        assert result.latitude == 52.52
        assert result.longitude == 13.41
        assert result.city is None
        assert result.temperature == 21.5
        assert result.windSpeed == 7.2
        assert result.windDirection == 90
        assert result.sunriseDateTime == CONDITIONS.sunrise
        assert result.timestamp >= before
        assert result.timestamp.microsecond % 1000 == 0
        assert len(collection.documents) == 1

    @pytest.mark.asyncio
    async def test_second_call_hits_cache(self, service, upstream) -> None:
        first = await service.resolve_by_location(52.52, 13.41)
        second = await service.resolve_by_location(52.52, 13.41)

        assert second == first
        assert upstream.fetch_weather.await_count == 1

    @pytest.mark.asyncio
    async def test_uncached_resolutions_are_not_deduplicated(self, collection, upstream) -> None:
        """Test two misses for the same pair store two records."""
        service = WeatherResolutionService(AlwaysMissingCache(collection), upstream)

        await service.resolve_by_location(10.0, 20.0)
        await service.resolve_by_location(10.0, 20.0)

        assert upstream.fetch_weather.await_count == 2
        assert len(collection.documents) == 2

    @pytest.mark.asyncio
    async def test_upstream_error_propagates_without_insert(
        self, service, collection, upstream
    ) -> None:
        upstream.fetch_weather.side_effect = UpstreamUnavailableError(
            "Weather request returned 503", 503
        )

        with pytest.raises(UpstreamUnavailableError, match="returned 503"):
            await service.resolve_by_location(52.52, 13.41)

        assert collection.documents == []


class TestResolveByCity:
    """Tests for the city resolution path."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_geocode_and_fetch(
        self, service, cache, upstream, snapshot_factory
    ) -> None:
        cached = snapshot_factory(city="New York", temperature=25.0)
        await cache.insert(cached)

        result = await service.resolve_by_city("New York")

        assert result == cached
        upstream.geocode_city.assert_not_awaited()
        upstream.fetch_weather.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_cached_by_city_miss(self, service) -> None:
        assert await service.lookup_cached_by_city("Paris") is None

    @pytest.mark.asyncio
    async def test_miss_geocodes_fetches_and_stores(self, service, cache, upstream) -> None:
        result = await service.resolve_by_city("Paris")

        upstream.geocode_city.assert_awaited_once_with("Paris")
        upstream.fetch_weather.assert_awaited_once_with(48.85341, 2.3488, city="Paris")
        assert result.city == "Paris"
        assert result.latitude == 48.85341
        assert result.longitude == 2.3488

        # Stored once, reachable under both keys
        assert await cache.find_by_city("Paris") == result
        assert await cache.find_by_location(48.85341, 2.3488) == result
        assert await cache.find_by_city("paris") is None

    @pytest.mark.asyncio
    async def test_geocode_failure_propagates(self, service, collection, upstream) -> None:
        upstream.geocode_city.side_effect = GeocodeIncompleteError(
            "Unable to retrieve geolocation data"
        )

        with pytest.raises(GeocodeIncompleteError):
            await service.fetch_by_city("Atlantis")

        upstream.fetch_weather.assert_not_awaited()
        assert collection.documents == []
