"""
CLI entry point for the soil data pipeline.

Usage:
    python scripts/location_pipeline.py --lat -1.2921 --lng 36.8219
    python scripts/location_pipeline.py --lat -1.2921 --lng 36.8219 --no-cache
    python scripts/location_pipeline.py --lat -1.2921 --lng 36.8219 --database-url sqlite:///./soil_cache.db
"""

import argparse
import json
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.config import get_settings
from src.data.store import CacheStoreError, SoilCacheStore
from src.location.cache import GeoCache
from src.location.errors import UpstreamFatalError, ValidationError
from src.location.pipeline import SoilDataPipeline
from src.location.resolver import parse_location_query


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Fetch aggregated soil, terrain and climate data for a point",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/location_pipeline.py --lat -1.2921 --lng 36.8219
  python scripts/location_pipeline.py --lat 52.52 --lng 13.41 --no-cache
        """,
    )
    parser.add_argument("--lat", required=True, help="Latitude (-90 to 90)")
    parser.add_argument("--lng", required=True, help="Longitude (-180 to 180)")
    parser.add_argument(
        "--database-url", default=settings.database_url,
        help=f"Cache database URL (default: {settings.database_url})",
    )
    parser.add_argument(
        "--no-cache", action="store_true",
        help="Skip the cache lookup and write",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        query = parse_location_query(args.lat, args.lng)
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)

    cache = None
    if not args.no_cache:
        store = SoilCacheStore(
            database_url=args.database_url,
            ttl_seconds=settings.cache_ttl_seconds,
        )
        try:
            store.create_schema()
        except CacheStoreError as e:
            logging.getLogger(__name__).warning("Cache disabled: %s", e)
        cache = GeoCache(store, radius_deg=settings.cache_radius_deg)

    pipeline = SoilDataPipeline(cache=cache, settings=settings)
    try:
        result = pipeline.run(query)
    except UpstreamFatalError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    output = {
        "query": {"lat": query.latitude, "lng": query.longitude},
        "from_cache": result.from_cache,
        "cache_outcome": result.cache_outcome.value,
        "warnings": result.warnings,
        "data": result.data.to_payload(),
    }
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
