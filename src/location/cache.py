"""
Geo-bounded result cache.

A stored point answers any query within +/- radius degrees on both axes
(0.01 deg, roughly 1.1 km). Caching is best-effort: lookup failures read as
UNAVAILABLE and write failures return False, so the caller can always carry on
with fresh data.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.config import DEFAULT_CACHE_RADIUS_DEG
from src.data.schema import AggregatedResult
from src.data.store import CacheStoreError, DuplicateEntryError, SoilCacheStore

logger = logging.getLogger(__name__)


class CacheOutcome(str, Enum):
    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"


@dataclass
class CacheLookup:
    outcome: CacheOutcome
    data: Optional[AggregatedResult] = None

    @property
    def hit(self) -> bool:
        return self.outcome == CacheOutcome.HIT


class GeoCache:
    """Bounding-box lookup and insert over a SoilCacheStore."""

    def __init__(self, store: SoilCacheStore, radius_deg: float = DEFAULT_CACHE_RADIUS_DEG):
        self.store = store
        self.radius = radius_deg

    def lookup(self, lat: float, lng: float) -> CacheLookup:
        """
        Return the oldest readable entry inside the box.

        Entries that no longer validate are deleted and skipped.
        """
        r = self.radius
        try:
            entries = self.store.find_all_in_box(lat - r, lat + r, lng - r, lng + r)
        except CacheStoreError as e:
            logger.warning("Cache lookup error, fetching fresh data: %s", e)
            return CacheLookup(CacheOutcome.UNAVAILABLE)

        for entry_id, payload in entries:
            try:
                data = AggregatedResult.model_validate(payload)
            except ValueError as e:
                logger.warning("Cached entry %s near (%.4f, %.4f) is unreadable: %s", entry_id, lat, lng, e)
                self._discard(entry_id)
                continue
            return CacheLookup(CacheOutcome.HIT, data)

        return CacheLookup(CacheOutcome.MISS)

    def _discard(self, entry_id: int):
        try:
            self.store.delete(entry_id)
        except CacheStoreError as e:
            logger.warning("Could not remove cached entry %s: %s", entry_id, e)

    def store_result(self, lat: float, lng: float, data: AggregatedResult) -> bool:
        """Insert a result for the exact point. Returns False if it was not stored."""
        try:
            self.store.insert(lat, lng, data.to_payload())
        except DuplicateEntryError as e:
            logger.warning("Cache storage skipped: %s", e)
            return False
        except CacheStoreError as e:
            logger.warning("Cache storage error: %s", e)
            return False
        logger.info("Data cached for (%.4f, %.4f)", lat, lng)
        return True
