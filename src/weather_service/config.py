"""Application configuration management."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Server settings
    app_host: str = Field(default="0.0.0.0", description="Server bind host")
    app_port: int = Field(default=8080, description="Server bind port")

    # Upstream API settings
    weather_api_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        description="Open-Meteo forecast endpoint",
    )
    geocode_api_url: str = Field(
        default="https://geocode.xyz",
        description="Geocoding endpoint; the city name is appended as a path segment",
    )
    upstream_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout applied to every outbound request, in seconds",
        ge=0.1,
        le=60.0,
    )

    # Document store settings
    mongo_url: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string",
    )
    mongo_database: str = Field(default="WeatherService", description="MongoDB database")
    mongo_collection: str = Field(
        default="WeatherData",
        description="Collection holding weather snapshots",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
