"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from weather_service.services.weather import WeatherResolutionService


def get_weather_service(request: Request) -> WeatherResolutionService:
    """Get the service instance built by the application lifespan."""
    service: WeatherResolutionService = request.app.state.weather_service
    return service


# Type aliases for dependency injection
WeatherServiceDep = Annotated[WeatherResolutionService, Depends(get_weather_service)]
