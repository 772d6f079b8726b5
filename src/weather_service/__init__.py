"""Weather lookup service backed by Open-Meteo, geocode.xyz and MongoDB."""

__version__ = "0.1.0"
