"""
Run the cache expiry sweep once.

Usage:
    python scripts/purge_cache.py
    python scripts/purge_cache.py --database-url sqlite:///./soil_cache.db --ttl-seconds 86400
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.config import get_settings
from src.data.store import CacheStoreError, SoilCacheStore


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Delete expired soil cache entries")
    parser.add_argument(
        "--database-url", default=settings.database_url,
        help=f"Cache database URL (default: {settings.database_url})",
    )
    parser.add_argument(
        "--ttl-seconds", type=int, default=settings.cache_ttl_seconds,
        help=f"Entry lifetime in seconds (default: {settings.cache_ttl_seconds})",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    store = SoilCacheStore(database_url=args.database_url, ttl_seconds=args.ttl_seconds)
    try:
        store.create_schema()
        removed = store.purge_expired()
    except CacheStoreError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Removed {removed} expired entries; {store.count()} remain")


if __name__ == "__main__":
    main()
