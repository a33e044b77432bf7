"""
Canonical record definitions for the aggregated soil/terrain/climate response,
plus the fallback values used whenever an upstream payload is missing or
malformed.

Python attributes are snake_case; the JSON field names (aliases) match what
the web client reads.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SoilType(str, Enum):
    """USDA-style texture class, simplified to six buckets."""
    CLAY = "Clay"
    SILT = "Silt"
    SAND = "Sand"
    CLAY_LOAM = "Clay Loam"
    SILTY_LOAM = "Silty Loam"
    LOAM = "Loam"
    UNKNOWN = "Unknown"


class Drainage(str, Enum):
    WELL_DRAINED = "Well-drained"
    MODERATELY_DRAINED = "Moderately-drained"
    POORLY_DRAINED = "Poorly-drained"


class LocationQuery(BaseModel):
    """A point to aggregate data for."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class SoilRecord(BaseModel):
    model_config = {"populate_by_name": True}

    ph: float
    organic_matter: float = Field(..., alias="organicMatter", description="Organic matter (%)")
    soil_type: SoilType = Field(..., alias="soilType")
    nitrogen: float
    phosphorus: float = 0.0
    potassium: float = Field(..., description="CEC-derived potassium availability proxy")
    drainage: Drainage
    depth_cm: float = Field(30.0, alias="depth")


class TerrainRecord(BaseModel):
    model_config = {"populate_by_name": True}

    elevation_m: float = Field(..., alias="elevation")
    slope_deg: float = Field(0.0, alias="slope")


class TemperatureSummary(BaseModel):
    current: float
    min: float
    max: float


class DailyForecast(BaseModel):
    model_config = {"populate_by_name": True}

    date: str
    temperature: float = Field(..., description="Mean of daily max and min (C)")
    rainfall: float
    rain_probability: Optional[float] = Field(None, alias="rainProbability")


class ClimateRecord(BaseModel):
    model_config = {"populate_by_name": True}

    temperature: TemperatureSummary
    rainfall_mm: float = Field(..., alias="rainfall")
    humidity_pct: float = Field(..., alias="humidity")
    solar_radiation: float = Field(..., alias="solarRadiation")
    wind_speed: float = Field(..., alias="windSpeed")
    frost_days: int = Field(..., alias="frostDays")
    growing_season_days: int = Field(..., alias="growingSeasonLength")
    forecast: List[DailyForecast] = Field(default_factory=list)


class AggregatedResult(BaseModel):
    """The unit of caching and the /api/soil response body."""
    soil: SoilRecord
    terrain: TerrainRecord
    climate: ClimateRecord

    def to_payload(self) -> dict:
        """JSON-ready dict using the wire field names."""
        return self.model_dump(by_alias=True, mode="json")


# ---------- Fallback values ----------
# Referenced by the normalizers and by the tests; callers copy before mutating.

SOIL_DEPTH_CM = 30.0

SOIL_DEFAULTS = SoilRecord(
    ph=7.0,
    organic_matter=2.0,
    soil_type=SoilType.UNKNOWN,
    nitrogen=0.0,
    phosphorus=0.0,
    potassium=0.0,
    drainage=Drainage.MODERATELY_DRAINED,
    depth_cm=SOIL_DEPTH_CM,
)

# Raw SoilGrids means substituted when a drainage input layer is missing.
# Bulk density 130 cg/cm3 -> 1.3 before clamping.
DRAINAGE_INPUT_DEFAULTS = {
    "clay": 0.0,
    "sand": 0.0,
    "bdod": 130.0,
}

TERRAIN_DEFAULTS = TerrainRecord(elevation_m=0.0, slope_deg=0.0)

CLIMATE_DEFAULTS = ClimateRecord(
    temperature=TemperatureSummary(current=20.0, min=15.0, max=25.0),
    rainfall_mm=0.0,
    humidity_pct=60.0,
    solar_radiation=0.0,
    wind_speed=0.0,
    frost_days=0,
    growing_season_days=180,
    forecast=[],
)
