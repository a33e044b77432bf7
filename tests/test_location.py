"""
Unit tests for the upstream clients and normalizers.
All HTTP calls are mocked — no network access required.
"""

import sys
import pytest
from unittest.mock import patch
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from conftest import mock_response


# ---------- Resolver tests ----------

class TestResolver:
    def test_parse_valid_coordinates(self):
        from src.location.resolver import parse_location_query

        query = parse_location_query("-1.2921", " 36.8219 ")
        assert query.latitude == pytest.approx(-1.2921)
        assert query.longitude == pytest.approx(36.8219)

    @pytest.mark.parametrize("lat,lng", [(None, "36.8"), ("-1.29", None), ("", "36.8"), ("  ", "1")])
    def test_missing_raises(self, lat, lng):
        from src.location.errors import ValidationError
        from src.location.resolver import parse_location_query

        with pytest.raises(ValidationError, match="required"):
            parse_location_query(lat, lng)

    def test_non_numeric_raises(self):
        from src.location.errors import ValidationError
        from src.location.resolver import parse_location_query

        with pytest.raises(ValidationError, match="must be a number"):
            parse_location_query("abc", "36.8")

    def test_nan_raises(self):
        from src.location.errors import ValidationError
        from src.location.resolver import parse_location_query

        with pytest.raises(ValidationError, match="finite"):
            parse_location_query("nan", "36.8")

    def test_out_of_range_raises(self):
        from src.location.errors import ValidationError
        from src.location.resolver import parse_location_query

        with pytest.raises(ValidationError, match="out of range"):
            parse_location_query("91", "0")
        with pytest.raises(ValidationError, match="out of range"):
            parse_location_query("0", "-180.5")

    def test_validation_error_is_value_error(self):
        from src.location.errors import ValidationError

        assert issubclass(ValidationError, ValueError)


# ---------- SoilGrids tests ----------

class TestSoilGridsClient:
    def test_fetch_requests_all_properties_and_depths(self, soilgrids_payload):
        from src.location.soilgrids import (
            SOILGRIDS_DEPTHS, SOILGRIDS_PROPERTIES, fetch_soilgrids,
        )

        with patch("src.location.soilgrids.requests.get") as mock_get:
            mock_get.return_value = mock_response(soilgrids_payload)
            payload = fetch_soilgrids(-1.29, 36.82)

        assert payload == soilgrids_payload
        _, kwargs = mock_get.call_args
        params = kwargs["params"]
        assert [v for k, v in params if k == "property"] == SOILGRIDS_PROPERTIES
        assert [v for k, v in params if k == "depth"] == SOILGRIDS_DEPTHS
        assert ("value", "mean") in params
        assert kwargs["timeout"] == 10.0

    def test_fetch_failure_is_fatal(self):
        from src.location.errors import UpstreamFatalError
        from src.location.soilgrids import fetch_soilgrids
        import requests as req_module

        with patch("src.location.soilgrids.requests.get") as mock_get:
            mock_get.side_effect = req_module.exceptions.Timeout("timeout")

            with pytest.raises(UpstreamFatalError) as excinfo:
                fetch_soilgrids(-1.29, 36.82)

        assert excinfo.value.source == "soil"
        assert "soil" in str(excinfo.value)

    def test_fetch_non_json_is_fatal(self):
        from src.location.errors import UpstreamFatalError
        from src.location.soilgrids import fetch_soilgrids

        with patch("src.location.soilgrids.requests.get") as mock_get:
            resp = mock_response(None)
            resp.json.side_effect = ValueError("not json")
            mock_get.return_value = resp

            with pytest.raises(UpstreamFatalError):
                fetch_soilgrids(-1.29, 36.82)


class TestSoilNormalizer:
    def test_normalize_full_payload(self, soilgrids_payload):
        from src.data.schema import Drainage, SoilType
        from src.location.soilgrids import normalize_soil

        soil = normalize_soil(soilgrids_payload)

        assert soil.ph == pytest.approx(6.5)
        assert soil.organic_matter == pytest.approx(35 / 10 * 1.724)
        assert soil.nitrogen == pytest.approx(2.0)
        assert soil.potassium == pytest.approx(15.0)
        assert soil.phosphorus == 0.0
        assert soil.soil_type == SoilType.CLAY_LOAM
        assert soil.drainage == Drainage.MODERATELY_DRAINED
        assert soil.depth_cm == 30.0

    def test_missing_layers_use_defaults(self):
        from src.data.schema import SOIL_DEFAULTS, SoilType
        from src.location.soilgrids import normalize_soil

        soil = normalize_soil({"properties": {"layers": []}})

        assert soil.ph == SOIL_DEFAULTS.ph
        assert soil.organic_matter == SOIL_DEFAULTS.organic_matter
        assert soil.nitrogen == 0.0
        assert soil.potassium == 0.0
        assert soil.soil_type == SoilType.UNKNOWN

    def test_layer_without_depths_counts_as_missing(self, soilgrids_payload):
        from src.location.soilgrids import normalize_soil

        for layer in soilgrids_payload["properties"]["layers"]:
            if layer["name"] == "phh2o":
                layer["depths"] = []

        assert normalize_soil(soilgrids_payload).ph == 7.0

    def test_null_mean_counts_as_missing(self, soilgrids_payload):
        from src.data.schema import SoilType
        from src.location.soilgrids import normalize_soil

        for layer in soilgrids_payload["properties"]["layers"]:
            if layer["name"] == "sand":
                layer["depths"][0]["values"]["mean"] = None

        assert normalize_soil(soilgrids_payload).soil_type == SoilType.UNKNOWN

    def test_zero_reading_is_a_value(self, soilgrids_payload):
        from src.location.soilgrids import normalize_soil

        for layer in soilgrids_payload["properties"]["layers"]:
            if layer["name"] == "soc":
                layer["depths"][0]["values"]["mean"] = 0

        assert normalize_soil(soilgrids_payload).organic_matter == 0.0

    @pytest.mark.parametrize("payload", [
        None,
        {},
        {"properties": None},
        {"properties": {"layers": "not-a-list"}},
        {"properties": {"layers": [{"depths": []}]}},
        {"properties": {"layers": [{"name": "phh2o", "depths": [{"values": {"mean": "acid"}}]}]}},
    ])
    def test_malformed_payload_returns_full_defaults(self, payload):
        from src.data.schema import SOIL_DEFAULTS
        from src.location.soilgrids import normalize_soil

        assert normalize_soil(payload) == SOIL_DEFAULTS

    def test_defaults_are_not_shared(self):
        from src.data.schema import SOIL_DEFAULTS
        from src.location.soilgrids import normalize_soil

        soil = normalize_soil(None)
        soil.ph = 4.0
        assert SOIL_DEFAULTS.ph == 7.0


class TestSoilClassification:
    @pytest.mark.parametrize("clay,silt,sand,expected", [
        (50, 20, 30, "Clay"),
        (20, 85, 5, "Silt"),
        (5, 10, 90, "Sand"),
        (30, 30, 40, "Clay Loam"),
        (20, 55, 25, "Silty Loam"),
        (10, 40, 50, "Loam"),
        # priority: clay beats silt
        (45, 85, 0, "Clay"),
        # clamped above 100
        (150, 0, 0, "Clay"),
        # Silty Loam needs clay in [12, 27]
        (11, 60, 29, "Loam"),
        (26, 50, 24, "Silty Loam"),
        # Clay Loam is checked before Silty Loam
        (27, 50, 23, "Clay Loam"),
    ])
    def test_texture_table(self, clay, silt, sand, expected):
        from src.location.soilgrids import classify_soil_texture

        assert classify_soil_texture(clay, silt, sand).value == expected

    @pytest.mark.parametrize("clay,silt,sand", [(None, 40, 30), (30, None, 30), (30, 40, None)])
    def test_texture_unknown_when_input_missing(self, clay, silt, sand):
        from src.data.schema import SoilType
        from src.location.soilgrids import classify_soil_texture

        assert classify_soil_texture(clay, silt, sand) == SoilType.UNKNOWN

    def test_texture_is_total_over_grid(self):
        from src.data.schema import SoilType
        from src.location.soilgrids import classify_soil_texture

        known = set(SoilType) - {SoilType.UNKNOWN}
        for clay in range(0, 101, 10):
            for silt in range(0, 101, 10):
                for sand in range(0, 101, 10):
                    assert classify_soil_texture(clay, silt, sand) in known

    @pytest.mark.parametrize("clay,sand,bulk_density,expected", [
        (10, 60, 1.2, "Well-drained"),
        (50, 20, 1.5, "Poorly-drained"),
        (20, 30, 1.5, "Moderately-drained"),
        # sand must exceed 50
        (10, 50, 1.2, "Moderately-drained"),
        # dense sandy soil falls through to the clay rule
        (45, 55, 1.6, "Poorly-drained"),
        # bulk density clamped up to 0.5
        (10, 60, 0.01, "Well-drained"),
    ])
    def test_drainage_table(self, clay, sand, bulk_density, expected):
        from src.location.soilgrids import classify_drainage

        assert classify_drainage(clay, sand, bulk_density).value == expected

    @pytest.mark.parametrize("soc,expected", [(20, 3.448), (0, 0.0), (35, 6.034)])
    def test_organic_matter_formula(self, soc, expected):
        from src.location.soilgrids import organic_matter_pct

        assert organic_matter_pct(soc) == pytest.approx(expected)

    def test_drainage_from_payload_uses_bulk_density_scale(self, soilgrids_payload):
        from src.data.schema import Drainage
        from src.location.soilgrids import normalize_soil

        # sand 60%, bulk density 120 cg/cm3 -> 1.2 g/cm3
        for layer in soilgrids_payload["properties"]["layers"]:
            if layer["name"] == "sand":
                layer["depths"][0]["values"]["mean"] = 600
            if layer["name"] == "bdod":
                layer["depths"][0]["values"]["mean"] = 120

        assert normalize_soil(soilgrids_payload).drainage == Drainage.WELL_DRAINED


# ---------- Elevation tests ----------

class TestElevation:
    def test_fetch_elevation_success(self, elevation_payload):
        from src.location.elevation import fetch_elevation, summarize_terrain

        with patch("src.location.elevation.requests.get") as mock_get:
            mock_get.return_value = mock_response(elevation_payload)
            payload = fetch_elevation(-1.29, 36.82)

        _, kwargs = mock_get.call_args
        assert kwargs["params"] == {"locations": "-1.29,36.82"}
        assert kwargs["timeout"] == 5.0

        terrain = summarize_terrain(payload)
        assert terrain.elevation_m == 1661.0
        assert terrain.slope_deg == 0.0

    def test_fetch_elevation_failure_raises(self):
        from src.location.elevation import fetch_elevation
        from src.location.errors import UpstreamFatalError
        import requests as req_module

        with patch("src.location.elevation.requests.get") as mock_get:
            mock_get.side_effect = req_module.exceptions.ConnectionError("down")

            with pytest.raises(UpstreamFatalError) as excinfo:
                fetch_elevation(-1.29, 36.82)

        assert excinfo.value.source == "elevation"

    @pytest.mark.parametrize("payload", [None, {}, {"results": []}, {"results": [{}]}])
    def test_malformed_elevation_is_zero(self, payload):
        from src.location.elevation import summarize_terrain

        terrain = summarize_terrain(payload)
        assert terrain.elevation_m == 0.0
        assert terrain.slope_deg == 0.0


# ---------- Weather tests ----------

class TestWeatherClient:
    def test_fetch_forecast_params(self, forecast_payload):
        from src.location.weather import DAILY_VARIABLES, HOURLY_VARIABLES, fetch_forecast

        with patch("src.location.weather.requests.get") as mock_get:
            mock_get.return_value = mock_response(forecast_payload)
            payload = fetch_forecast(-1.29, 36.82)

        assert payload == forecast_payload
        _, kwargs = mock_get.call_args
        params = kwargs["params"]
        assert params["hourly"].split(",") == HOURLY_VARIABLES
        assert params["daily"].split(",") == DAILY_VARIABLES
        assert params["forecast_days"] == 7
        assert params["timezone"] == "auto"
        assert kwargs["timeout"] == 5.0

    def test_fetch_forecast_failure_is_fatal(self):
        from src.location.errors import UpstreamFatalError
        from src.location.weather import fetch_forecast
        import requests as req_module

        with patch("src.location.weather.requests.get") as mock_get:
            mock_get.side_effect = req_module.exceptions.Timeout("timeout")

            with pytest.raises(UpstreamFatalError) as excinfo:
                fetch_forecast(-1.29, 36.82)

        assert excinfo.value.source == "weather"


class TestClimateNormalizer:
    def test_summarize_full_payload(self, forecast_payload):
        from src.location.weather import summarize_climate

        climate = summarize_climate(forecast_payload)

        assert climate.temperature.current == 10.0
        assert climate.temperature.min == 13.0
        assert climate.temperature.max == 26.0
        assert climate.rainfall_mm == 5.0
        assert climate.humidity_pct == pytest.approx(60.0)
        assert climate.solar_radiation == pytest.approx(100.0)
        assert climate.wind_speed == pytest.approx(5.0)
        assert climate.frost_days == 2
        assert climate.growing_season_days == 5

    def test_forecast_entries(self, forecast_payload):
        from src.location.weather import summarize_climate

        forecast = summarize_climate(forecast_payload).forecast

        assert len(forecast) == 7
        assert forecast[0].date == "2026-10-18"
        assert forecast[0].temperature == pytest.approx(20.0)
        assert forecast[0].rainfall == 5.0
        assert forecast[0].rain_probability == 80

    def test_forecast_empty_without_dates(self, forecast_payload):
        from src.location.weather import summarize_climate

        del forecast_payload["daily"]["time"]
        assert summarize_climate(forecast_payload).forecast == []

    def test_chunks_split_by_24_hours(self):
        from src.location.weather import daily_chunks

        chunks = daily_chunks([1.0] * 168)
        assert len(chunks) == 7
        assert all(len(c) == 24 for c in chunks)

    def test_partial_trailing_day_is_counted(self):
        from src.location.weather import count_frost_days, count_growing_season_days, daily_chunks

        temps = [10.0] * 24 + [-2.0] * 6
        assert [len(c) for c in daily_chunks(temps)] == [24, 6]
        assert count_frost_days(temps) == 1
        assert count_growing_season_days(temps) == 1

    def test_partial_day_mean_uses_its_own_length(self):
        from src.location.weather import count_growing_season_days

        # 6 hours at 8C: mean 8 over the hours present
        assert count_growing_season_days([8.0] * 6) == 1

    def test_thresholds_are_strict(self):
        from src.location.weather import count_frost_days, count_growing_season_days

        assert count_frost_days([0.0] * 24) == 0
        assert count_growing_season_days([5.0] * 24) == 0

    def test_null_hours_are_skipped(self, forecast_payload):
        from src.location.weather import summarize_climate

        forecast_payload["hourly"]["relative_humidity_2m"][5] = None
        forecast_payload["hourly"]["temperature_2m"][30] = None

        climate = summarize_climate(forecast_payload)
        assert climate.humidity_pct == pytest.approx(60.0)
        assert climate.frost_days == 2

    @pytest.mark.parametrize("mutate", [
        lambda p: p.pop("hourly"),
        lambda p: p.pop("daily"),
        lambda p: p["hourly"].pop("temperature_2m"),
        lambda p: p["hourly"].update(temperature_2m=[]),
        lambda p: p["daily"].update(temperature_2m_min=[]),
        lambda p: p["daily"].update(precipitation_sum=[None] * 7),
        lambda p: p["hourly"].update(wind_speed_10m=[None] * 168),
    ])
    def test_malformed_payload_returns_full_defaults(self, forecast_payload, mutate):
        from src.data.schema import CLIMATE_DEFAULTS
        from src.location.weather import summarize_climate

        mutate(forecast_payload)
        assert summarize_climate(forecast_payload) == CLIMATE_DEFAULTS

    def test_none_payload_returns_defaults(self):
        from src.data.schema import CLIMATE_DEFAULTS
        from src.location.weather import summarize_climate

        climate = summarize_climate(None)
        assert climate == CLIMATE_DEFAULTS
        assert climate.growing_season_days == 180
