"""
Tests for the forecast providers (requests is mocked, no network)

Tests cover:
- Open-Meteo parsing, unit conversion and model selection
- Missing marine data falls back to a default wave height
- Failures reported as ForecastError with a reason
- Windy.com u/v wind components and credentials
"""

import asyncio
import logging
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from errors import ForecastError
from models import Coordinates
from weather_fetcher import (
    DEFAULT_WAVE_HEIGHT_M, WEATHER_APIS, WINDY_API_URL, OpenMeteoForecastProvider,
    WindyForecastProvider, kmh_to_knots, select_weather_model,
)

logger = logging.getLogger(__name__)

GIBRALTAR = Coordinates(36.1, -5.35)
CARIBBEAN = Coordinates(13.0, -61.0)


def json_response(data, status=200):
    response = Mock(ok=status < 400, status_code=status)
    response.json.return_value = data
    return response


WEATHER_DATA = {
    "hourly": {
        "time": ["2024-06-01T00:00", "2024-06-01T01:00", "2024-06-01T02:00"],
        "wind_speed_10m": [20.0, 30.0, None],
        "wind_direction_10m": [270, 280, 290],
        "wind_gusts_10m": [40.0, None, 50.0],
    }
}
MARINE_DATA = {"hourly": {"time": WEATHER_DATA["hourly"]["time"], "wave_height": [1.24, 1.5, 2.0]}}


# ============================================================================
# OPEN-METEO
# ============================================================================

def test_weather_model_by_region():
    assert select_weather_model(GIBRALTAR.lat, GIBRALTAR.lng) == ('ecmwf', WEATHER_APIS['ecmwf'])
    assert select_weather_model(CARIBBEAN.lat, CARIBBEAN.lng) == ('gfs', WEATHER_APIS['gfs'])


def test_open_meteo_forecast():
    session = Mock()
    session.get.side_effect = [json_response(WEATHER_DATA), json_response(MARINE_DATA)]
    provider = OpenMeteoForecastProvider(session=session)

    forecasts = asyncio.run(provider.forecast(GIBRALTAR, 72))

    assert len(forecasts) == 3
    first = forecasts[0]
    logger.info(f"First hour: {first}")
    assert first.timestamp == datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
    assert first.wind_speed == round(kmh_to_knots(20.0), 1)
    assert first.gust_speed == round(kmh_to_knots(40.0), 1)
    assert first.wind_direction == 270
    assert first.wave_height == 1.2
    # Missing gusts fall back to the sustained wind
    assert forecasts[1].gust_speed == forecasts[1].wind_speed
    assert forecasts[2].wind_speed == 0.0

    weather_call = session.get.call_args_list[0]
    assert weather_call.args[0] == WEATHER_APIS['ecmwf']
    assert weather_call.kwargs["params"]["forecast_days"] == 3


def test_open_meteo_horizon_limits_hours():
    session = Mock()
    session.get.side_effect = [json_response(WEATHER_DATA), json_response(MARINE_DATA)]

    forecasts = OpenMeteoForecastProvider(session=session).fetch(GIBRALTAR, 2)

    assert len(forecasts) == 2


def test_marine_failure_uses_default_waves():
    session = Mock()
    session.get.side_effect = [json_response(WEATHER_DATA), requests.Timeout("marine timed out")]

    forecasts = OpenMeteoForecastProvider(session=session).fetch(CARIBBEAN, 24)

    assert [f.wave_height for f in forecasts] == [DEFAULT_WAVE_HEIGHT_M] * 3


def test_open_meteo_network_error():
    session = Mock()
    session.get.side_effect = requests.ConnectionError("no route to host")

    with pytest.raises(ForecastError) as exc_info:
        OpenMeteoForecastProvider(session=session).fetch(GIBRALTAR, 24)
    assert exc_info.value.reason == ForecastError.NETWORK


def test_open_meteo_http_error():
    session = Mock()
    session.get.return_value = json_response({}, status=503)

    with pytest.raises(ForecastError) as exc_info:
        OpenMeteoForecastProvider(session=session).fetch(GIBRALTAR, 24)
    assert exc_info.value.reason == ForecastError.NETWORK


def test_open_meteo_malformed_response():
    session = Mock()
    session.get.return_value = json_response({"hourly": {}})

    with pytest.raises(ForecastError) as exc_info:
        OpenMeteoForecastProvider(session=session).fetch(GIBRALTAR, 24)
    assert exc_info.value.reason == ForecastError.MALFORMED

    bad_json = Mock(ok=True, status_code=200)
    bad_json.json.side_effect = ValueError("Expecting value")
    session.get.return_value = bad_json
    with pytest.raises(ForecastError) as exc_info:
        OpenMeteoForecastProvider(session=session).fetch(GIBRALTAR, 24)
    assert exc_info.value.reason == ForecastError.MALFORMED


# ============================================================================
# WINDY
# ============================================================================

WINDY_DATA = {
    "ts": [1717200000000, 1717203600000, 1717207200000],
    "wind_u-surface": [0.0, -10.0, 5.0],
    "wind_v-surface": [-10.0, 0.0, 5.0],
    "gust-surface": [15.0, None, 9.0],
    "waves-surface": [2.04, 1.0, None],
}


def test_windy_requires_api_key(monkeypatch):
    monkeypatch.delenv("WINDY_API_KEY", raising=False)
    session = Mock()

    for provider in (WindyForecastProvider(session=session),
                     WindyForecastProvider(api_key="YOUR_WINDY_API_KEY", session=session)):
        with pytest.raises(ForecastError) as exc_info:
            asyncio.run(provider.forecast(GIBRALTAR, 24))
        assert exc_info.value.reason == ForecastError.MISSING_CREDENTIALS
    session.post.assert_not_called()


def test_windy_key_from_environment(monkeypatch):
    monkeypatch.setenv("WINDY_API_KEY", "env-key")
    assert WindyForecastProvider().api_key == "env-key"


def test_windy_forecast():
    session = Mock()
    session.post.return_value = json_response(WINDY_DATA)
    provider = WindyForecastProvider(api_key="test-key", session=session)

    forecasts = provider.fetch(GIBRALTAR, 24)

    assert len(forecasts) == 3
    # v=-10: blowing towards the south, so wind from the north
    assert forecasts[0].wind_direction == 0
    assert forecasts[0].wind_speed == pytest.approx(19.4)
    assert forecasts[0].gust_speed == pytest.approx(29.2)
    assert forecasts[0].wave_height == 2.0
    assert forecasts[0].timestamp == datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
    # u=-10: blowing towards the west, so wind from the east
    assert forecasts[1].wind_direction == 90
    assert forecasts[1].gust_speed == forecasts[1].wind_speed
    # u=5, v=5: blowing north-east, so wind from the south-west
    assert forecasts[2].wind_direction == 225
    assert forecasts[2].wave_height == 0

    args, kwargs = session.post.call_args
    assert args[0] == WINDY_API_URL
    assert kwargs["json"]["key"] == "test-key"
    assert kwargs["json"]["lon"] == GIBRALTAR.lng


def test_windy_horizon_limits_hours():
    session = Mock()
    session.post.return_value = json_response(WINDY_DATA)

    forecasts = WindyForecastProvider(api_key="test-key", session=session).fetch(GIBRALTAR, 1)

    assert len(forecasts) == 2


def test_windy_invalid_response():
    session = Mock()
    session.post.return_value = json_response({"ts": []})

    with pytest.raises(ForecastError) as exc_info:
        WindyForecastProvider(api_key="test-key", session=session).fetch(GIBRALTAR, 24)
    assert exc_info.value.reason == ForecastError.MALFORMED
