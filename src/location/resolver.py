"""
Location resolver: turns raw lat/lng query-string values into a validated
LocationQuery.
"""

import logging
import math
from typing import Optional

from src.data.schema import LocationQuery
from src.location.errors import ValidationError

logger = logging.getLogger(__name__)


def _parse_float(raw: str, name: str) -> float:
    try:
        value = float(raw.strip())
    except ValueError:
        raise ValidationError(f"{name} must be a number, got '{raw}'") from None
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"{name} must be a finite number, got '{raw}'")
    return value


def parse_location_query(lat: Optional[str], lng: Optional[str]) -> LocationQuery:
    """
    Validate lat/lng strings from a request.

    Raises:
        ValidationError: If either value is missing, not a number, or out of
            range.
    """
    if lat is None or lng is None or not lat.strip() or not lng.strip():
        raise ValidationError("Latitude and longitude are required")

    latitude = _parse_float(lat, "Latitude")
    longitude = _parse_float(lng, "Longitude")
    if not (-90 <= latitude <= 90):
        raise ValidationError(f"Latitude {latitude} out of range [-90, 90]")
    if not (-180 <= longitude <= 180):
        raise ValidationError(f"Longitude {longitude} out of range [-180, 180]")

    logger.debug("Parsed coordinates: lat=%.6f, lng=%.6f", latitude, longitude)
    return LocationQuery(latitude=latitude, longitude=longitude)
