"""Weather resolution: cache first, then upstream, then persist."""

from datetime import UTC, datetime

import structlog

from weather_service.api.schemas import WeatherSnapshot
from weather_service.services.cache import WeatherCache
from weather_service.services.upstream import CurrentConditions, UpstreamWeatherClient

logger = structlog.get_logger()


def _now() -> datetime:
    # BSON dates carry millisecond precision
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class WeatherResolutionService:
    """Turns a location or city request into a weather snapshot.

    Holds no mutable state of its own; one instance serves every request.
    Errors from the cache or the providers propagate unchanged.
    """

    def __init__(self, cache: WeatherCache, client: UpstreamWeatherClient) -> None:
        """Initialize service with cache and client."""
        self._cache = cache
        self._client = client

    @property
    def cache(self) -> WeatherCache:
        return self._cache

    async def resolve_by_location(self, lat: float, lon: float) -> WeatherSnapshot:
        """Get weather for coordinates.

        Checks the cache for this exact pair first and only calls the weather
        provider on a miss. Every miss stores a new record.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            Cached or freshly fetched snapshot
        """
        cached = await self._cache.find_by_location(lat, lon)
        if cached is not None:
            logger.info("Cache hit for weather request", lat=lat, lon=lon, cache_hit=True)
            return cached

        logger.info(
            "Cache miss, fetching from upstream",
            lat=lat,
            lon=lon,
            cache_hit=False,
        )
        return await self._fetch_and_store(lat, lon, city=None)

    async def lookup_cached_by_city(self, city: str) -> WeatherSnapshot | None:
        """Get a cached snapshot for a city name, or None on a clean miss."""
        cached = await self._cache.find_by_city(city)
        logger.info("City cache lookup", city=city, cache_hit=cached is not None)
        return cached

    async def fetch_by_city(self, city: str) -> WeatherSnapshot:
        """Geocode a city, fetch its weather and store it, bypassing the cache."""
        location = await self._client.geocode_city(city)
        return await self._fetch_and_store(location.latitude, location.longitude, city=city)

    async def resolve_by_city(self, city: str) -> WeatherSnapshot:
        """Get weather for a city name, from cache when possible."""
        cached = await self.lookup_cached_by_city(city)
        if cached is not None:
            return cached
        return await self.fetch_by_city(city)

    async def _fetch_and_store(
        self, lat: float, lon: float, city: str | None
    ) -> WeatherSnapshot:
        conditions = await self._client.fetch_weather(lat, lon, city=city)
        snapshot = self._build_snapshot(lat, lon, city, conditions)
        await self._cache.insert(snapshot)
        return snapshot

    @staticmethod
    def _build_snapshot(
        lat: float, lon: float, city: str | None, conditions: CurrentConditions
    ) -> WeatherSnapshot:
        return WeatherSnapshot(
            latitude=lat,
            longitude=lon,
            city=city,
            temperature=conditions.temperature,
            windSpeed=conditions.wind_speed,
            windDirection=conditions.wind_direction,
            sunriseDateTime=conditions.sunrise,
            timestamp=_now(),
        )
