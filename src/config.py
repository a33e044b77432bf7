"""
Runtime settings for the soil data service, read from environment variables.

Every setting has a default so the service and the CLI scripts run without
any environment configured.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

SOILGRIDS_URL = "https://rest.isric.org/soilgrids/v2.0/properties/query"
ELEVATION_URL = "https://api.open-elevation.com/api/v1/lookup"
WEATHER_URL = "https://api.open-meteo.com/v1/forecast"

# ~1.1 km box around a stored point
DEFAULT_CACHE_RADIUS_DEG = 0.01
DEFAULT_CACHE_TTL_SECONDS = 7 * 24 * 60 * 60

DEFAULT_CORS_ORIGINS = "http://localhost:3000,https://smartfarm.joelmbaka.site"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class Settings:
    """Service configuration."""
    soilgrids_url: str = SOILGRIDS_URL
    elevation_url: str = ELEVATION_URL
    weather_url: str = WEATHER_URL
    soil_timeout_s: float = 10.0
    elevation_timeout_s: float = 5.0
    weather_timeout_s: float = 5.0
    forecast_days: int = 7
    cache_radius_deg: float = DEFAULT_CACHE_RADIUS_DEG
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    database_url: str = "sqlite:///./soil_cache.db"
    environment: str = "development"
    cors_origins: List[str] = field(
        default_factory=lambda: DEFAULT_CORS_ORIGINS.split(",")
    )
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        origins = os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
        return cls(
            soilgrids_url=os.environ.get("SOILGRIDS_URL", SOILGRIDS_URL),
            elevation_url=os.environ.get("ELEVATION_URL", ELEVATION_URL),
            weather_url=os.environ.get("WEATHER_URL", WEATHER_URL),
            soil_timeout_s=_env_float("SOIL_TIMEOUT_S", 10.0),
            elevation_timeout_s=_env_float("ELEVATION_TIMEOUT_S", 5.0),
            weather_timeout_s=_env_float("WEATHER_TIMEOUT_S", 5.0),
            forecast_days=_env_int("FORECAST_DAYS", 7),
            cache_radius_deg=_env_float("CACHE_RADIUS_DEG", DEFAULT_CACHE_RADIUS_DEG),
            cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
            database_url=os.environ.get("DATABASE_URL", "sqlite:///./soil_cache.db"),
            environment=os.environ.get("ENVIRONMENT", "development"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, built once from the environment."""
    return Settings.from_env()
