"""API request and response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WeatherSnapshot(BaseModel):
    """A single cached weather observation; also the success response body."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., description="Latitude")
    longitude: float = Field(..., description="Longitude")
    city: str | None = Field(default=None, description="City the snapshot was resolved from")
    temperature: float | None = Field(default=None, description="Temperature in Celsius")
    windSpeed: float | None = Field(default=None, description="Wind speed in km/h")  # noqa: N815
    windDirection: int | None = Field(  # noqa: N815
        default=None, description="Wind direction in degrees"
    )
    sunriseDateTime: datetime | None = Field(  # noqa: N815
        default=None, description="First daily sunrise (UTC)"
    )
    timestamp: datetime = Field(..., description="Time the snapshot was stored")


class InvalidLocationResponse(BaseModel):
    """400 body for /weather/location."""

    message: str
    latitude: float | None = None
    longitude: float | None = None
    timestamp: datetime


class InvalidCityResponse(BaseModel):
    """400 body for /weather/city."""

    message: str
    city: str | None = None
    timestamp: datetime


class InvalidParametersResponse(BaseModel):
    """400 body for query values that could not be parsed."""

    message: str = "Invalid request parameters"
    errors: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: datetime


class CityNotFoundResponse(BaseModel):
    """404 body for /weather/city."""

    message: str = "Weather or city data not found"
    city: str
    detail: str
    timestamp: datetime


class ProblemResponse(BaseModel):
    """500 body, shaped as an RFC 7807 problem document."""

    type: str = "about:blank"
    title: str = "An error occurred while processing your request."
    status: int = 500
    detail: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str = Field(..., description="Readiness status")
    checks: dict[str, str] = Field(default_factory=dict, description="Component checks")
