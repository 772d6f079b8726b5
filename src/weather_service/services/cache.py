"""Snapshot cache backed by a MongoDB collection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from prometheus_client import Counter
from pymongo import ASCENDING

from weather_service.api.schemas import WeatherSnapshot

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorCollection

logger = structlog.get_logger()

# Metrics
cache_hits = Counter("cache_hits_total", "Total cache hits", ["key"])
cache_misses = Counter("cache_misses_total", "Total cache misses", ["key"])
cache_inserts = Counter("cache_inserts_total", "Total snapshots stored")


class WeatherCache:
    """Exact-match lookup and append-only insert of weather snapshots.

    Records are never updated or deduplicated. When several records match a
    lookup, the first one in the collection's natural order is returned; which
    one that is depends on the storage engine and is not guaranteed.
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        """Initialize cache with the snapshot collection."""
        self._collection = collection

    async def find_by_location(self, lat: float, lon: float) -> WeatherSnapshot | None:
        """Get a snapshot stored for exactly these coordinates."""
        return await self._find_one({"latitude": lat, "longitude": lon}, "location")

    async def find_by_city(self, city: str) -> WeatherSnapshot | None:
        """Get a snapshot stored for exactly this city name (case-sensitive)."""
        return await self._find_one({"city": city}, "city")

    async def insert(self, snapshot: WeatherSnapshot) -> None:
        """Append a snapshot as a new record."""
        await self._collection.insert_one(snapshot.model_dump())
        cache_inserts.inc()

    async def ensure_indexes(self) -> None:
        """Create the non-unique indexes backing both lookups."""
        await self._collection.create_index(
            [("latitude", ASCENDING), ("longitude", ASCENDING)]
        )
        await self._collection.create_index([("city", ASCENDING)])

    async def ping(self) -> bool:
        """Check that the database answers."""
        try:
            await self._collection.database.command("ping")
        except Exception as e:
            logger.warning("Cache ping failed", error=str(e))
            return False
        return True

    async def _find_one(self, query: dict[str, Any], key: str) -> WeatherSnapshot | None:
        document = await self._collection.find_one(query, projection={"_id": False})
        if document is None:
            cache_misses.labels(key=key).inc()
            return None
        cache_hits.labels(key=key).inc()
        return WeatherSnapshot.model_validate(document)
