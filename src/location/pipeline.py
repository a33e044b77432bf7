"""
Soil data pipeline: checks the geo cache for a point, otherwise fetches soil,
elevation and weather data concurrently, normalizes them into one
AggregatedResult and caches it.

Failure policy:
    soil     -- mandatory; a failed fetch fails the run
    weather  -- mandatory; a failed fetch fails the run
    elevation, cache lookup/write, malformed payloads -- absorbed
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from src.config import Settings, get_settings
from src.data.schema import AggregatedResult, LocationQuery, TERRAIN_DEFAULTS
from src.location.cache import CacheLookup, CacheOutcome, GeoCache
from src.location.elevation import fetch_elevation, summarize_terrain
from src.location.errors import UpstreamFatalError
from src.location.soilgrids import fetch_soilgrids, normalize_soil
from src.location.weather import fetch_forecast, summarize_climate

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result from a pipeline run."""
    data: AggregatedResult
    from_cache: bool
    cache_outcome: CacheOutcome
    warnings: List[str] = field(default_factory=list)
    cache_written: bool = False


class SoilDataPipeline:
    """
    Aggregate soil, terrain and climate data for a point.

    Usage:
        pipeline = SoilDataPipeline(cache=GeoCache(store))
        result = pipeline.run(LocationQuery(latitude=-1.29, longitude=36.82))
        result.data.to_payload()
    """

    def __init__(self, cache: Optional[GeoCache] = None, settings: Optional[Settings] = None):
        self.cache = cache
        self.settings = settings or get_settings()

    def run(self, query: LocationQuery) -> PipelineResult:
        """
        Execute the pipeline for one point.

        Raises:
            UpstreamFatalError: If soil or weather data cannot be fetched.
                Nothing is cached in that case.
        """
        lat, lng = query.latitude, query.longitude
        warnings: List[str] = []

        # Step 1: Cache
        lookup = self._check_cache(lat, lng)
        if lookup.hit:
            logger.info("Returning cached data for (%.4f, %.4f)", lat, lng)
            return PipelineResult(
                data=lookup.data, from_cache=True, cache_outcome=lookup.outcome,
            )
        if lookup.outcome == CacheOutcome.UNAVAILABLE:
            warnings.append("Cache unavailable; fetched fresh data")

        # Step 2: Upstream providers, all in flight at once
        logger.info("Fetching soil, elevation and weather data for (%.4f, %.4f)", lat, lng)
        soil_payload, elevation_payload, weather_payload = self._fetch_all(lat, lng, warnings)

        # Step 3: Normalize
        data = AggregatedResult(
            soil=normalize_soil(soil_payload),
            terrain=(
                summarize_terrain(elevation_payload)
                if elevation_payload is not None
                else TERRAIN_DEFAULTS.model_copy()
            ),
            climate=summarize_climate(weather_payload),
        )

        # Step 4: Cache write (best-effort)
        cache_written = False
        if self.cache is not None:
            cache_written = self.cache.store_result(lat, lng, data)
            if not cache_written:
                warnings.append("Result could not be cached")

        return PipelineResult(
            data=data,
            from_cache=False,
            cache_outcome=lookup.outcome,
            warnings=warnings,
            cache_written=cache_written,
        )

    def _check_cache(self, lat: float, lng: float) -> CacheLookup:
        if self.cache is None:
            return CacheLookup(CacheOutcome.MISS)
        return self.cache.lookup(lat, lng)

    def _fetch_all(self, lat: float, lng: float, warnings: List[str]):
        """Run the three fetches concurrently; returns (soil, elevation, weather)."""
        s = self.settings
        executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix="upstream")
        try:
            soil_future = executor.submit(
                fetch_soilgrids, lat, lng,
                timeout=s.soil_timeout_s, base_url=s.soilgrids_url,
            )
            elevation_future = executor.submit(
                fetch_elevation, lat, lng,
                timeout=s.elevation_timeout_s, base_url=s.elevation_url,
            )
            weather_future = executor.submit(
                fetch_forecast, lat, lng,
                timeout=s.weather_timeout_s, forecast_days=s.forecast_days,
                base_url=s.weather_url,
            )
            pending = [soil_future, elevation_future, weather_future]

            soil_payload = self._required(soil_future, pending)
            weather_payload = self._required(weather_future, pending)

            try:
                elevation_payload = elevation_future.result()
            except UpstreamFatalError as e:
                logger.warning("Elevation unavailable, substituting 0: %s", e)
                warnings.append("Elevation data unavailable; using 0")
                elevation_payload = None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return soil_payload, elevation_payload, weather_payload

    @staticmethod
    def _required(future: Future, pending: List[Future]) -> dict:
        try:
            return future.result()
        except UpstreamFatalError:
            for other in pending:
                other.cancel()
            raise
