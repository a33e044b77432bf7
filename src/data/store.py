"""
Persistent store for aggregated soil results, keyed by coordinates.

Backed by a SQLAlchemy table with a unique index on the exact
(latitude, longitude) pair. Entries expire CACHE_TTL_SECONDS after creation:
expired rows are never returned and are deleted by a periodic sweep the store
runs on its own.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    and_,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config import DEFAULT_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_SWEEP_INTERVAL_S = 60.0


def _utcnow() -> datetime:
    # Naive UTC; SQLite drops tzinfo on the way in
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SoilCacheEntry(Base):
    """One cached AggregatedResult payload for a point."""
    __tablename__ = "soil_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_soil_cache_coords", "latitude", "longitude", unique=True),
        Index("idx_soil_cache_created_at", "created_at"),
        CheckConstraint(
            "latitude BETWEEN -90 AND 90 AND longitude BETWEEN -180 AND 180",
            name="check_coordinate_bounds",
        ),
    )


class CacheStoreError(Exception):
    """The store could not complete a read or write."""


class DuplicateEntryError(CacheStoreError):
    """An entry already exists for the exact coordinate pair."""


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared across threads."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True, pool_recycle=3600)


class SoilCacheStore:
    """
    Key-range store over the soil_cache table.

    Sessions are opened per operation, so one store instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if engine is None:
            if database_url is None:
                raise ValueError("Either database_url or engine is required")
            engine = build_engine(database_url)
        self.engine = engine
        self.ttl = timedelta(seconds=ttl_seconds)
        self.sweep_interval = timedelta(seconds=sweep_interval_s)
        self._clock = clock
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False,
        )
        self._sweep_lock = threading.Lock()
        self._last_sweep: Optional[datetime] = None

    def create_schema(self) -> None:
        """Create the cache table and its indexes if they do not exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise CacheStoreError(f"Could not create cache schema: {e}") from e

    def _cutoff(self, now: Optional[datetime] = None) -> datetime:
        return (now or self._clock()) - self.ttl

    def _box_query(self, session, lat_min, lat_max, lng_min, lng_max):
        return (
            session.query(SoilCacheEntry)
            .filter(and_(
                SoilCacheEntry.latitude.between(lat_min, lat_max),
                SoilCacheEntry.longitude.between(lng_min, lng_max),
                SoilCacheEntry.created_at >= self._cutoff(),
            ))
            .order_by(SoilCacheEntry.id)
        )

    def find_in_box(
        self,
        lat_min: float,
        lat_max: float,
        lng_min: float,
        lng_max: float,
    ) -> Optional[dict]:
        """
        Return the payload of the first unexpired entry inside the box.

        Bounds are inclusive. When several entries match, the oldest insert
        (lowest id) is returned.
        """
        try:
            with self._session_factory() as session:
                row = self._box_query(session, lat_min, lat_max, lng_min, lng_max).first()
                return row.data if row is not None else None
        except SQLAlchemyError as e:
            raise CacheStoreError(f"Cache lookup failed: {e}") from e

    def find_all_in_box(
        self,
        lat_min: float,
        lat_max: float,
        lng_min: float,
        lng_max: float,
    ) -> List[Tuple[int, dict]]:
        """All unexpired (id, payload) pairs inside the box, oldest first."""
        try:
            with self._session_factory() as session:
                rows = self._box_query(session, lat_min, lat_max, lng_min, lng_max).all()
                return [(row.id, row.data) for row in rows]
        except SQLAlchemyError as e:
            raise CacheStoreError(f"Cache lookup failed: {e}") from e

    def insert(self, latitude: float, longitude: float, data: dict) -> None:
        """
        Insert a new entry stamped with the current time.

        An expired entry at the same coordinates is replaced; an unexpired one
        raises DuplicateEntryError.
        """
        now = self._clock()
        try:
            with self._session_factory.begin() as session:
                session.query(SoilCacheEntry).filter(and_(
                    SoilCacheEntry.latitude == latitude,
                    SoilCacheEntry.longitude == longitude,
                    SoilCacheEntry.created_at < self._cutoff(now),
                )).delete(synchronize_session=False)
                session.add(SoilCacheEntry(
                    latitude=latitude,
                    longitude=longitude,
                    data=data,
                    created_at=now,
                ))
        except IntegrityError as e:
            raise DuplicateEntryError(
                f"Entry already cached for ({latitude}, {longitude})"
            ) from e
        except SQLAlchemyError as e:
            raise CacheStoreError(f"Cache write failed: {e}") from e
        finally:
            self._maybe_sweep()

    def delete(self, entry_id: int) -> None:
        """Remove one entry by id."""
        try:
            with self._session_factory.begin() as session:
                session.query(SoilCacheEntry).filter(
                    SoilCacheEntry.id == entry_id
                ).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise CacheStoreError(f"Cache delete failed: {e}") from e

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete entries older than the TTL. Returns the number removed."""
        cutoff = self._cutoff(now)
        try:
            with self._session_factory.begin() as session:
                removed = (
                    session.query(SoilCacheEntry)
                    .filter(SoilCacheEntry.created_at < cutoff)
                    .delete(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            raise CacheStoreError(f"Cache purge failed: {e}") from e
        if removed:
            logger.info("Purged %d expired cache entries", removed)
        return removed

    def _maybe_sweep(self) -> None:
        now = self._clock()
        with self._sweep_lock:
            if self._last_sweep is not None and now - self._last_sweep < self.sweep_interval:
                return
            self._last_sweep = now
        try:
            self.purge_expired(now)
        except CacheStoreError as e:
            logger.warning("Expiry sweep failed: %s", e)

    def count(self) -> int:
        """Number of stored rows, expired or not."""
        with self._session_factory() as session:
            return session.query(SoilCacheEntry).count()
