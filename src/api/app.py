"""
FastAPI application for the soil, terrain and climate data service.

Endpoints:
    GET /api/soil?lat=&lng=  — Aggregated soil/terrain/climate record for a point
    GET /api/test            — Connection check
    GET /health              — Health check
    GET /metrics             — Prometheus metrics (if prometheus_client is installed)
"""

import logging
import time
import traceback
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

try:
    from prometheus_client import Counter, Histogram, generate_latest
    from fastapi.responses import Response as PrometheusResponse
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False

from src.api.schemas import ConnectionTestResponse, ErrorResponse, HealthResponse
from src.config import get_settings
from src.data.schema import AggregatedResult
from src.data.store import CacheStoreError, SoilCacheStore
from src.location.cache import GeoCache
from src.location.errors import UpstreamFatalError, ValidationError
from src.location.pipeline import SoilDataPipeline
from src.location.resolver import parse_location_query

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# ---- App setup ----
app = FastAPI(
    title="Soil Data API",
    description="Aggregated soil, terrain and climate data for a map location",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- Prometheus metrics ----
if PROMETHEUS_AVAILABLE:
    REQUEST_COUNT = Counter("soil_requests_total", "Total /api/soil requests", ["status"])
    REQUEST_LATENCY = Histogram(
        "soil_request_latency_seconds", "End-to-end /api/soil latency",
        buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
    )
    CACHE_LOOKUPS = Counter(
        "soil_cache_lookups_total", "Cache lookups by outcome", ["outcome"],
    )
    UPSTREAM_FAILURES = Counter(
        "upstream_failures_total", "Fatal upstream failures", ["source"],
    )

# ---- Global cache reference ----
geo_cache: Optional[GeoCache] = None


def init_cache():
    """Open the cache store, create its table and purge expired entries."""
    global geo_cache

    store = SoilCacheStore(
        database_url=settings.database_url,
        ttl_seconds=settings.cache_ttl_seconds,
    )
    try:
        store.create_schema()
        store.purge_expired()
        logger.info("Cache store ready at %s", store.engine.url)
    except CacheStoreError as e:
        # Lookups will report UNAVAILABLE until the store comes back
        logger.error("Cache store unavailable: %s", e)
    geo_cache = GeoCache(store, radius_deg=settings.cache_radius_deg)


@app.on_event("startup")
async def startup_event():
    init_cache()


def _error_response(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(error=message)
    if status_code >= 500 and not settings.is_production:
        body.details = traceback.format_exc()
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _observe(status: int, start_time: float):
    if PROMETHEUS_AVAILABLE:
        REQUEST_COUNT.labels(status=str(status)).inc()
        REQUEST_LATENCY.observe(time.time() - start_time)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="ok")


@app.get("/api/test", response_model=ConnectionTestResponse)
async def connection_test():
    return ConnectionTestResponse(
        message="Connection successful!",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get(
    "/api/soil",
    response_model=AggregatedResult,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def get_soil_data(lat: Optional[str] = None, lng: Optional[str] = None):
    """
    Soil, terrain and climate data for a point.

    Served from the geo cache when a stored point lies within ~1km; otherwise
    fetched from SoilGrids, Open-Elevation and Open-Meteo and cached.
    """
    start_time = time.time()

    try:
        query = parse_location_query(lat, lng)
    except ValidationError as e:
        _observe(400, start_time)
        return _error_response(400, str(e))

    logger.info("Fetching data for coordinates: lat=%s, lng=%s", query.latitude, query.longitude)
    pipeline = SoilDataPipeline(cache=geo_cache, settings=settings)

    try:
        result = pipeline.run(query)
    except UpstreamFatalError as e:
        logger.exception("Upstream %s data unavailable", e.source)
        if PROMETHEUS_AVAILABLE:
            UPSTREAM_FAILURES.labels(source=e.source).inc()
        _observe(500, start_time)
        return _error_response(500, str(e))
    except Exception:
        logger.exception("Unexpected error aggregating soil data")
        _observe(500, start_time)
        return _error_response(500, "Failed to fetch enhanced soil data")

    if PROMETHEUS_AVAILABLE:
        CACHE_LOOKUPS.labels(outcome=result.cache_outcome.value).inc()
    for warning in result.warnings:
        logger.warning(warning)

    _observe(200, start_time)
    return JSONResponse(content=result.data.to_payload())


# ---- Prometheus metrics endpoint ----
if PROMETHEUS_AVAILABLE:
    @app.get("/metrics")
    async def metrics():
        return PrometheusResponse(
            content=generate_latest(),
            media_type="text/plain",
        )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3001)
