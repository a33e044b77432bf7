"""
Open-Meteo forecast client: fetches a 7-day hourly/daily forecast for a point
and summarizes it into agronomic climate metrics (temperature range, rainfall,
humidity, radiation, wind, frost days, growing-season days).

Free API, no key required.

API docs: https://open-meteo.com/en/docs
License: CC-BY 4.0
"""

import logging
from typing import List, Optional

import numpy as np
import requests
from pydantic import BaseModel, Field

from src.config import WEATHER_URL
from src.data.schema import (
    CLIMATE_DEFAULTS,
    ClimateRecord,
    DailyForecast,
    TemperatureSummary,
)
from src.location.errors import UpstreamFatalError

logger = logging.getLogger(__name__)

HOURLY_VARIABLES = [
    "temperature_2m",
    "relative_humidity_2m",
    "precipitation",
    "wind_speed_10m",
    "direct_radiation",
    "soil_temperature_0cm",
]

DAILY_VARIABLES = [
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_sum",
    "precipitation_probability_max",
]

HOURS_PER_DAY = 24
FROST_THRESHOLD_C = 0.0
GROWING_THRESHOLD_C = 5.0


# ---------- Response schema ----------
# Open-Meteo emits null for hours it has no value for, hence Optional items.

class HourlySeries(BaseModel):
    temperature_2m: List[Optional[float]]
    relative_humidity_2m: List[Optional[float]]
    wind_speed_10m: List[Optional[float]]
    direct_radiation: List[Optional[float]]
    precipitation: List[Optional[float]] = Field(default_factory=list)
    soil_temperature_0cm: List[Optional[float]] = Field(default_factory=list)


class DailySeries(BaseModel):
    temperature_2m_max: List[Optional[float]]
    temperature_2m_min: List[Optional[float]]
    precipitation_sum: List[Optional[float]]
    precipitation_probability_max: List[Optional[float]] = Field(default_factory=list)
    time: List[str] = Field(default_factory=list)


class ForecastResponse(BaseModel):
    hourly: HourlySeries
    daily: DailySeries


# ---------- Client ----------

def fetch_forecast(
    lat: float,
    lon: float,
    timeout: float = 5.0,
    forecast_days: int = 7,
    base_url: str = WEATHER_URL,
) -> dict:
    """
    Fetch the hourly and daily forecast for a location.

    The timezone is resolved by Open-Meteo from the coordinates so that daily
    aggregates line up with local days.

    Raises:
        UpstreamFatalError: On request failure, timeout, or a non-JSON body.
    """
    params = {
        "latitude": lat,
        "longitude": lon,
        "hourly": ",".join(HOURLY_VARIABLES),
        "daily": ",".join(DAILY_VARIABLES),
        "forecast_days": forecast_days,
        "timezone": "auto",
    }

    try:
        resp = requests.get(base_url, params=params, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error("Open-Meteo API request failed: %s", e)
        raise UpstreamFatalError("weather", "Failed to fetch weather data") from e


# ---------- Series helpers ----------

def _valid(values: List[Optional[float]]) -> List[float]:
    return [v for v in values if v is not None]


def _mean(values: List[Optional[float]]) -> float:
    valid = _valid(values)
    if not valid:
        raise ValueError("series has no values")
    return float(np.mean(valid))


def daily_chunks(hourly: List[Optional[float]], hours_per_day: int = HOURS_PER_DAY) -> List[np.ndarray]:
    """
    Split an hourly series into consecutive days.

    A shorter trailing block is kept as a day of its own. Nulls are dropped
    within each day; a day with no values at all is skipped.
    """
    days = []
    for start in range(0, len(hourly), hours_per_day):
        valid = _valid(hourly[start:start + hours_per_day])
        if valid:
            days.append(np.asarray(valid, dtype=float))
    return days


def count_frost_days(hourly_temps: List[Optional[float]]) -> int:
    """Days whose minimum hourly temperature is below 0C."""
    return int(sum(1 for day in daily_chunks(hourly_temps) if day.min() < FROST_THRESHOLD_C))


def count_growing_season_days(hourly_temps: List[Optional[float]]) -> int:
    """Days whose mean hourly temperature is above 5C."""
    return int(sum(1 for day in daily_chunks(hourly_temps) if day.mean() > GROWING_THRESHOLD_C))


def build_daily_forecast(daily: DailySeries) -> List[DailyForecast]:
    """One entry per forecast date; days missing max/min/rain are left out."""
    forecast = []
    for i, date in enumerate(daily.time):
        try:
            t_max = daily.temperature_2m_max[i]
            t_min = daily.temperature_2m_min[i]
            rain = daily.precipitation_sum[i]
        except IndexError:
            break
        if t_max is None or t_min is None or rain is None:
            continue
        probability = None
        if i < len(daily.precipitation_probability_max):
            probability = daily.precipitation_probability_max[i]
        forecast.append(DailyForecast(
            date=date,
            temperature=(t_max + t_min) / 2,
            rainfall=rain,
            rain_probability=probability,
        ))
    return forecast


# ---------- Normalizer ----------

def summarize_climate(payload: dict) -> ClimateRecord:
    """
    Summarize an Open-Meteo forecast payload into a ClimateRecord.

    Humidity, radiation and wind are means over the whole hourly horizon.
    Min/max temperature span all forecast days. A payload missing any of the
    required series yields CLIMATE_DEFAULTS; this function never raises.
    """
    try:
        parsed = ForecastResponse.model_validate(payload)
        hourly, daily = parsed.hourly, parsed.daily

        current = hourly.temperature_2m[0]
        rainfall = daily.precipitation_sum[0]
        if current is None or rainfall is None:
            raise ValueError("first hourly temperature or daily rainfall is null")

        daily_min = _valid(daily.temperature_2m_min)
        daily_max = _valid(daily.temperature_2m_max)
        if not daily_min or not daily_max:
            raise ValueError("daily temperature series has no values")

        return ClimateRecord(
            temperature=TemperatureSummary(
                current=current,
                min=min(daily_min),
                max=max(daily_max),
            ),
            rainfall_mm=rainfall,
            humidity_pct=_mean(hourly.relative_humidity_2m),
            solar_radiation=_mean(hourly.direct_radiation),
            wind_speed=_mean(hourly.wind_speed_10m),
            frost_days=count_frost_days(hourly.temperature_2m),
            growing_season_days=count_growing_season_days(hourly.temperature_2m),
            forecast=build_daily_forecast(daily),
        )
    except (IndexError, TypeError, ValueError) as e:
        logger.warning("Malformed Open-Meteo payload, using default climate values: %s", e)
        return CLIMATE_DEFAULTS.model_copy(deep=True)
