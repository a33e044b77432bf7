"""
Open-Elevation client: point elevation lookup.

Elevation is informational only (nothing else is derived from it), so callers
substitute TERRAIN_DEFAULTS when it is unavailable. Slope is not computed and
is always reported as 0.

API docs: https://open-elevation.com/
"""

import logging
from typing import List

import requests
from pydantic import BaseModel

from src.config import ELEVATION_URL
from src.data.schema import TERRAIN_DEFAULTS, TerrainRecord
from src.location.errors import UpstreamFatalError

logger = logging.getLogger(__name__)


class ElevationResult(BaseModel):
    elevation: float


class ElevationResponse(BaseModel):
    results: List[ElevationResult]


def fetch_elevation(
    lat: float,
    lon: float,
    timeout: float = 5.0,
    base_url: str = ELEVATION_URL,
) -> dict:
    """
    Fetch the elevation payload for a single point.

    Raises:
        UpstreamFatalError: On request failure, timeout, or a non-JSON body.
            The pipeline degrades this to zero elevation.
    """
    try:
        resp = requests.get(
            base_url, params={"locations": f"{lat},{lon}"}, timeout=timeout,
        )
        resp.raise_for_status()
        return resp.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.warning("Open-Elevation API request failed: %s", e)
        raise UpstreamFatalError("elevation", "Failed to fetch elevation data") from e


def summarize_terrain(payload: dict) -> TerrainRecord:
    """Read results[0].elevation; malformed payloads give TERRAIN_DEFAULTS."""
    try:
        parsed = ElevationResponse.model_validate(payload)
        return TerrainRecord(elevation_m=parsed.results[0].elevation, slope_deg=0.0)
    except (IndexError, TypeError, ValueError) as e:
        logger.warning("Malformed elevation payload, using zero elevation: %s", e)
        return TERRAIN_DEFAULTS.model_copy()
