"""
Shared upstream payloads and HTTP fakes. No network access is needed by any
test: every provider call is answered from these fixtures.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def mock_response(data):
    """A requests.Response stand-in returning `data` from .json()."""
    resp = MagicMock()
    resp.json.return_value = data
    resp.raise_for_status = MagicMock()
    return resp


def _layer(name, means):
    labels = ["0-5cm", "5-15cm", "15-30cm"]
    return {
        "name": name,
        "depths": [
            {"label": label, "values": {"mean": mean}}
            for label, mean in zip(labels, means)
        ],
    }


@pytest.fixture
def soilgrids_payload():
    """Loamy topsoil: pH 6.5, clay 30%, silt 40%, sand 30%, bulk density 1.35."""
    return {
        "type": "Feature",
        "properties": {
            "layers": [
                _layer("phh2o", [65, 63, 62]),
                _layer("soc", [35, 30, 25]),
                _layer("nitrogen", [20, 18, 15]),
                _layer("cec", [150, 140, 130]),
                _layer("bdod", [135, 138, 140]),
                _layer("clay", [300, 320, 330]),
                _layer("silt", [400, 380, 370]),
                _layer("sand", [300, 300, 300]),
            ],
        },
    }


@pytest.fixture
def elevation_payload():
    return {"results": [{"latitude": -1.29, "longitude": 36.82, "elevation": 1661.0}]}


def _day(value, low=None):
    hours = [value] * 24
    if low is not None:
        hours[-1] = low
    return hours


@pytest.fixture
def forecast_payload():
    """
    Seven forecast days of hourly temperature:
        day 0: 10C all day            -> growing
        day 1: 10C, one hour at -1C   -> frost, growing (mean 9.54)
        day 2: 2C all day             -> neither
        day 3: -3C all day            -> frost
        days 4-6: 20C all day         -> growing
    """
    temperatures = (
        _day(10.0) + _day(10.0, low=-1.0) + _day(2.0) + _day(-3.0)
        + _day(20.0) + _day(20.0) + _day(20.0)
    )
    return {
        "latitude": -1.25,
        "longitude": 36.75,
        "timezone": "Africa/Nairobi",
        "hourly": {
            "time": [f"h{i}" for i in range(168)],
            "temperature_2m": temperatures,
            "relative_humidity_2m": [60.0] * 168,
            "precipitation": [0.1] * 168,
            "wind_speed_10m": [5.0] * 168,
            "direct_radiation": [0.0, 200.0] * 84,
            "soil_temperature_0cm": [18.0] * 168,
        },
        "daily": {
            "time": [f"2026-10-{d:02d}" for d in range(18, 25)],
            "temperature_2m_max": [25.0, 26.0, 24.0, 25.0, 23.0, 24.0, 25.0],
            "temperature_2m_min": [15.0, 16.0, 14.0, 15.0, 13.0, 14.0, 15.0],
            "precipitation_sum": [5.0, 0.0, 2.0, 1.0, 0.0, 3.0, 1.0],
            "precipitation_probability_max": [80, 20, 40, 30, 10, 60, 30],
        },
    }


@pytest.fixture
def fake_upstream(soilgrids_payload, elevation_payload, forecast_payload):
    """
    Build a requests.get replacement that answers by URL.

    Pass a provider name in `fail` ("soilgrids", "elevation", "open-meteo")
    to make that provider raise a connection error.
    """
    def build(fail=()):
        calls = []

        def fake_get(url, *args, **kwargs):
            calls.append(url)
            for key in fail:
                if key in url:
                    raise requests.exceptions.ConnectionError(f"{key} down")
            if "soilgrids" in url:
                return mock_response(soilgrids_payload)
            if "elevation" in url:
                return mock_response(elevation_payload)
            return mock_response(forecast_payload)

        fake_get.calls = calls
        return fake_get

    return build
