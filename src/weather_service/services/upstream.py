"""Clients for the weather (Open-Meteo) and geocoding (geocode.xyz) providers."""

import math
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from prometheus_client import Counter, Histogram
from pydantic import BaseModel, ConfigDict, ValidationError

from weather_service.config import Settings
from weather_service.services.errors import (
    GeocodeIncompleteError,
    UpstreamParseError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

logger = structlog.get_logger()

SUNRISE_FORMAT = "%Y-%m-%dT%H:%M"
_SUNRISE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}")
_DECIMAL_PATTERN = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")

CURRENT_FIELDS = "temperature_2m,winddirection_10m,windspeed_10m"
DAILY_FIELDS = "sunrise"

# Metrics
upstream_requests = Counter(
    "upstream_requests_total",
    "Total upstream API requests",
    ["provider", "status"],
)
upstream_duration = Histogram(
    "upstream_request_duration_seconds",
    "Upstream request duration in seconds",
    ["provider"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


class CurrentBlock(BaseModel):
    """Current conditions as returned by Open-Meteo."""

    time: str | None = None
    temperature_2m: float | None = None
    windspeed_10m: float | None = None
    winddirection_10m: int | None = None


class HourlyBlock(BaseModel):
    time: list[str] | None = None
    temperature_2m: list[float | None] | None = None
    windspeed_10m: list[float | None] | None = None
    winddirection_10m: list[int | None] | None = None


class DailyBlock(BaseModel):
    time: list[str] | None = None
    sunrise: list[str] | None = None
    sunset: list[str] | None = None


class ForecastPayload(BaseModel):
    """Raw forecast response; only a handful of fields are ever read."""

    latitude: float | None = None
    longitude: float | None = None
    generationtime_ms: float | None = None
    utc_offset_seconds: int | None = None
    timezone: str | None = None
    timezone_abbreviation: str | None = None
    elevation: float | None = None
    current: CurrentBlock | None = None
    hourly: HourlyBlock | None = None
    daily: DailyBlock | None = None


class GeocodePayload(BaseModel):
    """geocode.xyz response; coordinates arrive as strings."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    latt: str | None = None
    longt: str | None = None


@dataclass(frozen=True)
class GeoLocation:
    """Coordinates resolved from a city name."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class CurrentConditions:
    """Normalized weather extracted from a forecast payload."""

    temperature: float | None
    wind_speed: float | None
    wind_direction: int | None
    sunrise: datetime


def parse_sunrise(value: str) -> datetime:
    """Parse a sunrise string of the exact form ``YYYY-MM-DDTHH:MM``.

    Open-Meteo reports times in GMT unless a timezone is requested, so the
    result is tagged as UTC.

    Raises:
        UpstreamParseError: If the value does not match the format exactly
    """
    if not _SUNRISE_PATTERN.fullmatch(value):
        raise UpstreamParseError(f"Error parsing date/time, bad format: {value!r}")
    try:
        parsed = datetime.strptime(value, SUNRISE_FORMAT)
    except ValueError as e:
        raise UpstreamParseError(f"Error parsing date/time, bad format: {value!r}") from e
    return parsed.replace(tzinfo=UTC)


def parse_coordinate(value: str) -> float:
    """Parse a decimal coordinate independently of the process locale."""
    text = value.strip()
    if not _DECIMAL_PATTERN.fullmatch(text):
        raise UpstreamParseError(f"Malformed coordinate value: {value!r}")
    number = float(text)
    if not math.isfinite(number):
        raise UpstreamParseError(f"Malformed coordinate value: {value!r}")
    return number


def extract_conditions(payload: ForecastPayload) -> CurrentConditions:
    """Pull current conditions and the first sunrise out of a forecast."""
    sunrises = payload.daily.sunrise if payload.daily is not None else None
    if sunrises:
        raw_sunrise = sunrises[0]
    else:
        raw_sunrise = datetime.now(UTC).strftime(SUNRISE_FORMAT)

    current = payload.current
    return CurrentConditions(
        temperature=current.temperature_2m if current else None,
        wind_speed=current.windspeed_10m if current else None,
        wind_direction=current.winddirection_10m if current else None,
        sunrise=parse_sunrise(raw_sunrise),
    )


class UpstreamWeatherClient:
    """HTTP client for the weather and geocoding providers.

    The underlying ``httpx.AsyncClient`` is shared by every in-flight request.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        """Initialize client with settings and a shared HTTP client."""
        self._weather_url = settings.weather_api_url
        self._geocode_url = settings.geocode_api_url.rstrip("/")
        self._timeout = settings.upstream_timeout_seconds
        self._http = http_client

    async def fetch_weather(
        self, lat: float, lon: float, city: str | None = None
    ) -> CurrentConditions:
        """Fetch current conditions and today's sunrise for coordinates.

        Args:
            lat: Latitude (-90 to 90)
            lon: Longitude (-180 to 180)
            city: City the coordinates were resolved from, if any

        Returns:
            Normalized current conditions

        Raises:
            UpstreamTimeoutError: If the request times out
            UpstreamUnavailableError: If the request fails or returns an error status
            UpstreamParseError: If the payload or its sunrise cannot be parsed
        """
        params: dict[str, str | float] = {
            "latitude": lat,
            "longitude": lon,
            "current": CURRENT_FIELDS,
            "daily": DAILY_FIELDS,
        }
        logger.debug("Fetching weather", lat=lat, lon=lon, city=city)

        response = await self._get("weather", self._weather_url, params)
        data = self._decode(response, "weather")
        try:
            payload = ForecastPayload.model_validate(data)
        except ValidationError as e:
            raise UpstreamParseError(f"Error trying to deserialize weather response: {e}") from e

        return extract_conditions(payload)

    async def geocode_city(self, city: str) -> GeoLocation:
        """Resolve a city name to coordinates.

        Raises:
            UpstreamTimeoutError: If the request times out
            UpstreamUnavailableError: If the request fails or returns an error status
            GeocodeIncompleteError: If either coordinate is missing from the response
            UpstreamParseError: If a coordinate is not a valid number
        """
        url = f"{self._geocode_url}/{quote(city, safe='')}"
        response = await self._get("geocode", url, {"json": "1"})
        data = self._decode(response, "geolocation")
        try:
            payload = GeocodePayload.model_validate(data)
        except ValidationError as e:
            raise UpstreamParseError(
                f"Error trying to deserialize geolocation response: {e}"
            ) from e

        if not payload.latt or not payload.longt:
            raise GeocodeIncompleteError("Unable to retrieve geolocation data")

        location = GeoLocation(
            latitude=parse_coordinate(payload.latt),
            longitude=parse_coordinate(payload.longt),
        )
        logger.debug(
            "Geocoded city",
            city=city,
            lat=location.latitude,
            lon=location.longitude,
        )
        return location

    async def _get(
        self, provider: str, url: str, params: dict[str, str | float]
    ) -> httpx.Response:
        with upstream_duration.labels(provider=provider).time():
            try:
                response = await self._http.get(url, params=params, timeout=self._timeout)
            except httpx.TimeoutException as e:
                upstream_requests.labels(provider=provider, status="timeout").inc()
                raise UpstreamTimeoutError(
                    f"{provider.capitalize()} request timed out after {self._timeout}s"
                ) from e
            except httpx.RequestError as e:
                upstream_requests.labels(provider=provider, status="error").inc()
                raise UpstreamUnavailableError(
                    f"{provider.capitalize()} request failed: {e}"
                ) from e

        if not response.is_success:
            upstream_requests.labels(provider=provider, status="error").inc()
            raise UpstreamUnavailableError(
                f"{provider.capitalize()} request returned {response.status_code}",
                response.status_code,
            )

        upstream_requests.labels(provider=provider, status="success").inc()
        return response

    @staticmethod
    def _decode(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamParseError(f"Error trying to deserialize {what} response") from e
