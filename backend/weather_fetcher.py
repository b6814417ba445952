"""
Weather Fetcher - Point forecasts for the weather monitor

Two providers:
- Open-Meteo: FREE, NO API key. Weather API for wind/gusts, Marine API for waves
- Windy.com point forecast: needs an API key (https://api.windy.com/api-key)

FEATURES:
- Auto-selects best Open-Meteo model based on region (ECMWF for Europe/Med, GFS for Americas)
- Every failure is reported as a ForecastError with a reason, never as an empty forecast
- Blocking HTTP calls run in a worker thread so the monitor's event loop stays free
"""

import asyncio
import logging
import math
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests

from errors import ForecastError
from models import Coordinates, ForecastPoint

# Set up logging
logger = logging.getLogger(__name__)


# API endpoints (free, no API key needed!)
MARINE_API_URL = "https://marine-api.open-meteo.com/v1/marine"

# Weather API endpoints for different models
WEATHER_APIS = {
    'default': "https://api.open-meteo.com/v1/forecast",
    'ecmwf': "https://api.open-meteo.com/v1/ecmwf",      # European model - best for Europe/Med
    'gfs': "https://api.open-meteo.com/v1/gfs",          # US NOAA model - best for Americas
}

WINDY_API_URL = "https://api.windy.com/api/point-forecast/v2"
WINDY_PLACEHOLDER_KEY = "YOUR_WINDY_API_KEY"

REQUEST_TIMEOUT = 15  # seconds
DEFAULT_WAVE_HEIGHT_M = 1.0
MAX_FORECAST_DAYS = 16  # Open-Meteo limit


def kmh_to_knots(kmh: float) -> float:
    """Convert kilometers/hour to knots (the API returns km/h by default)"""
    return kmh * 0.539957


def ms_to_knots(ms: float) -> float:
    """Convert meters/second to knots (Windy returns m/s)"""
    return ms * 1.94384


def select_weather_model(lat: float, lng: float) -> Tuple[str, str]:
    """
    Select the best weather model based on geographic location.

    Returns:
        Tuple of (model_name, api_url)

    Model selection:
    - ECMWF: Europe, Mediterranean, Middle East, Africa (best high-resolution for these areas)
    - GFS: Americas, Pacific, default fallback
    """
    # ECMWF is best for: Europe, Mediterranean, Middle East, Africa
    # Roughly: longitude -30 to 60, latitude -40 to 75
    if -30 <= lng <= 60 and -40 <= lat <= 75:
        return ('ecmwf', WEATHER_APIS['ecmwf'])

    # GFS for Americas and rest of world
    return ('gfs', WEATHER_APIS['gfs'])


def _get_hourly_value(hourly: dict, key: str, hour_index: int, default: float) -> float:
    """Safely get a value from hourly data with fallback."""
    if key in hourly and hourly[key]:
        values = hourly[key]
        if hour_index < len(values) and values[hour_index] is not None:
            return values[hour_index]
    return default


def _parse_time(value: str) -> datetime:
    """Open-Meteo hourly times are 'YYYY-MM-DDTHH:MM' in UTC"""
    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class ForecastProvider(ABC):
    """Anything that can produce a point forecast"""

    @abstractmethod
    async def forecast(self, location: Coordinates, horizon_hours: int) -> List[ForecastPoint]:
        """
        Hourly forecast at location for the next horizon_hours.

        Raises:
            ForecastError: missing credentials, network failure or malformed response
        """


class OpenMeteoForecastProvider(ForecastProvider):
    """Open-Meteo weather + marine APIs"""

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    async def forecast(self, location: Coordinates, horizon_hours: int) -> List[ForecastPoint]:
        return await asyncio.to_thread(self.fetch, location, horizon_hours)

    def _get_json(self, url: str, params: Dict[str, Any], label: str) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise ForecastError(f"{label} API call failed: {e}", ForecastError.NETWORK)

        if not response.ok:
            raise ForecastError(f"{label} API returned status {response.status_code}", ForecastError.NETWORK)

        try:
            data = response.json()
        except ValueError as e:
            raise ForecastError(f"{label} API returned invalid JSON: {e}", ForecastError.MALFORMED)
        if not isinstance(data, dict):
            raise ForecastError(f"{label} API returned an unexpected payload", ForecastError.MALFORMED)
        return data

    def fetch(self, location: Coordinates, horizon_hours: int) -> List[ForecastPoint]:
        """Blocking fetch; use forecast() from async code"""
        model_name, weather_api_url = select_weather_model(location.lat, location.lng)
        forecast_days = max(1, min(MAX_FORECAST_DAYS, math.ceil(horizon_hours / 24)))
        logger.debug(f"  Fetching forecast at {location.lat:.2f}, {location.lng:.2f} "
                     f"({horizon_hours}h, model: {model_name.upper()})")

        weather_data = self._get_json(weather_api_url, {
            'latitude': location.lat,
            'longitude': location.lng,
            'hourly': 'wind_speed_10m,wind_direction_10m,wind_gusts_10m',
            'forecast_days': forecast_days,
            'timezone': 'UTC',
        }, "Weather")

        hourly = weather_data.get('hourly')
        if not isinstance(hourly, dict) or not hourly.get('time'):
            raise ForecastError("Weather API response has no hourly data", ForecastError.MALFORMED)

        # Waves are optional: inland or near-shore points have no marine data
        marine_hourly: Dict[str, Any] = {}
        try:
            marine_data = self._get_json(MARINE_API_URL, {
                'latitude': location.lat,
                'longitude': location.lng,
                'hourly': 'wave_height',
                'forecast_days': forecast_days,
                'timezone': 'UTC',
            }, "Marine")
            marine_hourly = marine_data.get('hourly') or {}
        except ForecastError as e:
            logger.warning(f"  Warning: {e}; using default wave height")

        forecasts = []
        try:
            for i, time_str in enumerate(hourly['time'][:max(1, horizon_hours)]):
                # Wind data (km/h from API)
                wind_kmh = _get_hourly_value(hourly, 'wind_speed_10m', i, 0.0)
                gust_kmh = _get_hourly_value(hourly, 'wind_gusts_10m', i, wind_kmh)
                forecasts.append(ForecastPoint(
                    timestamp=_parse_time(time_str),
                    wind_speed=round(kmh_to_knots(wind_kmh), 1),
                    wind_direction=round(_get_hourly_value(hourly, 'wind_direction_10m', i, 0)),
                    gust_speed=round(kmh_to_knots(gust_kmh), 1),
                    wave_height=round(_get_hourly_value(marine_hourly, 'wave_height', i, DEFAULT_WAVE_HEIGHT_M), 1),
                ))
        except (TypeError, ValueError) as e:
            raise ForecastError(f"Failed to parse weather data: {e}", ForecastError.MALFORMED)

        return forecasts


class WindyForecastProvider(ForecastProvider):
    """Windy.com point forecast API (GFS model)"""

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else os.environ.get('WINDY_API_KEY', '')
        self.session = session or requests.Session()

    async def forecast(self, location: Coordinates, horizon_hours: int) -> List[ForecastPoint]:
        return await asyncio.to_thread(self.fetch, location, horizon_hours)

    def fetch(self, location: Coordinates, horizon_hours: int) -> List[ForecastPoint]:
        if not self.api_key or self.api_key == WINDY_PLACEHOLDER_KEY:
            raise ForecastError(
                "Windy.com API key not configured. Please add your API key in settings.",
                ForecastError.MISSING_CREDENTIALS,
            )

        try:
            response = self.session.post(WINDY_API_URL, json={
                'lat': location.lat,
                'lon': location.lng,
                'model': 'gfs',
                'parameters': ['wind', 'gust', 'waves'],
                'levels': ['surface'],
                'key': self.api_key,
            }, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise ForecastError(f"No response from Windy.com API: {e}", ForecastError.NETWORK)

        if not response.ok:
            raise ForecastError(f"Windy.com API error: {response.status_code}", ForecastError.NETWORK)

        try:
            data = response.json()
        except ValueError as e:
            raise ForecastError(f"Invalid response from Windy.com API: {e}", ForecastError.MALFORMED)

        if not isinstance(data, dict) or not data.get('ts') or 'wind_u-surface' not in data:
            raise ForecastError("Invalid response from Windy.com API", ForecastError.MALFORMED)

        return self._parse(data, horizon_hours)

    def _parse(self, data: Dict[str, Any], horizon_hours: int) -> List[ForecastPoint]:
        timestamps = data['ts']
        wind_u = data.get('wind_u-surface') or []
        wind_v = data.get('wind_v-surface') or []
        gusts = data.get('gust-surface') or []
        waves = data.get('waves-surface') or []

        forecasts = []
        try:
            first = timestamps[0]
            for i, ts in enumerate(timestamps):
                # Timestamps are epoch milliseconds
                if ts - first > horizon_hours * 3600 * 1000:
                    break
                u = wind_u[i] if i < len(wind_u) and wind_u[i] is not None else 0
                v = wind_v[i] if i < len(wind_v) and wind_v[i] is not None else 0

                # u/v point where the wind blows TO; direction is where it comes FROM
                wind_ms = math.hypot(u, v)
                direction = math.degrees(math.atan2(-u, -v)) % 360
                gust_ms = gusts[i] if i < len(gusts) and gusts[i] is not None else wind_ms
                wave_height = waves[i] if i < len(waves) and waves[i] is not None else 0

                forecasts.append(ForecastPoint(
                    timestamp=datetime.fromtimestamp(ts / 1000, tz=timezone.utc),
                    wind_speed=round(ms_to_knots(wind_ms), 1),
                    wind_direction=round(direction) % 360,
                    gust_speed=round(ms_to_knots(gust_ms), 1),
                    wave_height=round(wave_height, 1),
                ))
        except (TypeError, ValueError, OverflowError) as e:
            raise ForecastError(f"Failed to parse wind forecast data: {e}", ForecastError.MALFORMED)

        return forecasts
