"""
ISRIC SoilGrids v2.0 client: fetches modeled soil properties for a point and
turns the layered means into agronomic soil metrics (pH, organic matter,
texture class, nutrient proxies, drainage class).

API docs: https://rest.isric.org/soilgrids/v2.0/docs
License: CC-BY 4.0
"""

import logging
from typing import Dict, List, Optional

import requests
from pydantic import BaseModel, Field

from src.config import SOILGRIDS_URL
from src.data.schema import (
    DRAINAGE_INPUT_DEFAULTS,
    SOIL_DEFAULTS,
    SOIL_DEPTH_CM,
    Drainage,
    SoilRecord,
    SoilType,
)
from src.location.errors import UpstreamFatalError

logger = logging.getLogger(__name__)

# Properties requested from SoilGrids, with the provider's scaled units
SOILGRIDS_PROPERTIES = [
    "phh2o",     # pH in water (pH * 10)
    "soc",       # Soil organic carbon (dg/kg)
    "nitrogen",  # Total nitrogen (cg/kg)
    "cec",       # Cation exchange capacity (mmol(c)/kg)
    "bdod",      # Bulk density (cg/cm3)
    "clay",      # Clay content (g/kg)
    "silt",      # Silt content (g/kg)
    "sand",      # Sand content (g/kg)
]

# Depth bands covering the top 30cm; only the first is used for metrics
SOILGRIDS_DEPTHS = ["0-5cm", "5-15cm", "15-30cm"]

# Converts organic carbon to organic matter
VAN_BEMMELEN_FACTOR = 1.724


# ---------- Response schema ----------

class DepthValues(BaseModel):
    mean: Optional[float] = None


class LayerDepth(BaseModel):
    label: Optional[str] = None
    values: DepthValues = Field(default_factory=DepthValues)


class SoilLayer(BaseModel):
    name: str
    depths: List[LayerDepth] = Field(default_factory=list)


class SoilProperties(BaseModel):
    layers: List[SoilLayer]


class SoilGridsResponse(BaseModel):
    """Subset of the SoilGrids properties/query response we rely on."""
    properties: SoilProperties

    def first_depth_means(self) -> Dict[str, Optional[float]]:
        """
        Map each layer name to the mean of its first depth band.

        A layer without depth bands maps to None. If the provider repeats a
        layer name, the first occurrence wins.
        """
        means: Dict[str, Optional[float]] = {}
        for layer in self.properties.layers:
            if layer.name in means:
                continue
            means[layer.name] = layer.depths[0].values.mean if layer.depths else None
        return means


# ---------- Client ----------

def fetch_soilgrids(
    lat: float,
    lon: float,
    timeout: float = 10.0,
    base_url: str = SOILGRIDS_URL,
) -> dict:
    """
    Fetch mean soil properties for a point across the top three depth bands.

    Args:
        lat: Latitude (-90 to 90)
        lon: Longitude (-180 to 180)
        timeout: Request timeout in seconds
        base_url: SoilGrids properties/query endpoint

    Returns:
        The raw JSON payload.

    Raises:
        UpstreamFatalError: If the request fails, times out, or the body is
            not JSON. Soil data is mandatory for a response.
    """
    param_list = [("lat", lat), ("lon", lon), ("value", "mean")]
    for prop in SOILGRIDS_PROPERTIES:
        param_list.append(("property", prop))
    for depth in SOILGRIDS_DEPTHS:
        param_list.append(("depth", depth))

    try:
        resp = requests.get(
            base_url, params=param_list, timeout=timeout,
            headers={"Accept": "application/json"},
        )
        resp.raise_for_status()
        return resp.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error("SoilGrids API request failed: %s", e)
        raise UpstreamFatalError("soil", "Failed to fetch soil data") from e


# ---------- Classification ----------

def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def classify_soil_texture(
    clay_pct: Optional[float],
    silt_pct: Optional[float],
    sand_pct: Optional[float],
) -> SoilType:
    """
    Classify soil texture from clay/silt/sand percentages.

    Inputs are clamped to [0, 100]. Rules are checked in priority order and
    the first match wins. Any missing input gives SoilType.UNKNOWN.
    """
    if clay_pct is None or silt_pct is None or sand_pct is None:
        return SoilType.UNKNOWN

    clay = _clamp(clay_pct, 0.0, 100.0)
    silt = _clamp(silt_pct, 0.0, 100.0)
    sand = _clamp(sand_pct, 0.0, 100.0)

    if clay >= 40:
        return SoilType.CLAY
    if silt >= 80:
        return SoilType.SILT
    if sand >= 85:
        return SoilType.SAND
    if clay >= 27 and silt >= 28 and sand <= 45:
        return SoilType.CLAY_LOAM
    if silt >= 50 and 12 <= clay <= 27:
        return SoilType.SILTY_LOAM
    return SoilType.LOAM


def classify_drainage(clay_pct: float, sand_pct: float, bulk_density: float) -> Drainage:
    """
    Coarse drainage class from texture and bulk density (g/cm3).

    Percentages are clamped to [0, 100] and bulk density to [0.5, 2.0].
    """
    clay = _clamp(clay_pct, 0.0, 100.0)
    sand = _clamp(sand_pct, 0.0, 100.0)
    bd = _clamp(bulk_density, 0.5, 2.0)

    if sand > 50 and bd < 1.4:
        return Drainage.WELL_DRAINED
    if clay > 40:
        return Drainage.POORLY_DRAINED
    return Drainage.MODERATELY_DRAINED


def organic_matter_pct(soc_mean: float) -> float:
    """Organic matter (%) from the SoilGrids SOC mean (dg/kg)."""
    return soc_mean / 10 * VAN_BEMMELEN_FACTOR


# ---------- Normalizer ----------

def _scaled(value: Optional[float], divisor: float, default: Optional[float]) -> Optional[float]:
    return default if value is None else value / divisor


def normalize_soil(payload: dict) -> SoilRecord:
    """
    Convert a SoilGrids payload into a SoilRecord.

    Each metric reads the first depth band (0-5cm) of its layer and falls back
    to the SOIL_DEFAULTS value when that layer or band is absent. A payload
    that does not match the expected structure yields SOIL_DEFAULTS as a
    whole; this function never raises.
    """
    try:
        means = SoilGridsResponse.model_validate(payload).first_depth_means()

        # g/kg -> %
        clay_pct = _scaled(means.get("clay"), 10, None)
        silt_pct = _scaled(means.get("silt"), 10, None)
        sand_pct = _scaled(means.get("sand"), 10, None)

        soil_type = classify_soil_texture(clay_pct, silt_pct, sand_pct)
        drainage = classify_drainage(
            clay_pct if clay_pct is not None else DRAINAGE_INPUT_DEFAULTS["clay"] / 10,
            sand_pct if sand_pct is not None else DRAINAGE_INPUT_DEFAULTS["sand"] / 10,
            _scaled(means.get("bdod"), 100, DRAINAGE_INPUT_DEFAULTS["bdod"] / 100),
        )

        soc = means.get("soc")
        return SoilRecord(
            ph=_scaled(means.get("phh2o"), 10, SOIL_DEFAULTS.ph),
            organic_matter=(
                organic_matter_pct(soc) if soc is not None else SOIL_DEFAULTS.organic_matter
            ),
            soil_type=soil_type,
            nitrogen=_scaled(means.get("nitrogen"), 10, SOIL_DEFAULTS.nitrogen),
            phosphorus=0.0,
            potassium=_scaled(means.get("cec"), 10, SOIL_DEFAULTS.potassium),
            drainage=drainage,
            depth_cm=SOIL_DEPTH_CM,
        )
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Malformed SoilGrids payload, using default soil values: %s", e)
        return SOIL_DEFAULTS.model_copy(deep=True)
