"""Error kinds raised below the HTTP layer."""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed resolution step."""

    INVALID_INPUT = "invalid_input"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    PARSE_ERROR = "parse_error"
    GEOCODE_INCOMPLETE = "geocode_incomplete"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class WeatherServiceError(Exception):
    """Base exception for resolution failures."""

    kind: ErrorKind = ErrorKind.INTERNAL


class UpstreamUnavailableError(WeatherServiceError):
    """Raised when a provider request fails or returns a non-success status."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamTimeoutError(UpstreamUnavailableError):
    """Raised when a provider request times out."""


class UpstreamParseError(WeatherServiceError):
    """Raised when a provider payload does not match the expected shape."""

    kind = ErrorKind.PARSE_ERROR


class GeocodeIncompleteError(WeatherServiceError):
    """Raised when the geocoder response lacks a coordinate."""

    kind = ErrorKind.GEOCODE_INCOMPLETE


def classify(exc: BaseException) -> ErrorKind:
    """Return the error kind for any exception; foreign errors are internal."""
    if isinstance(exc, WeatherServiceError):
        return exc.kind
    return ErrorKind.INTERNAL
