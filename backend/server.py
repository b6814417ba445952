"""
HTTP server for the sailing engine.

Thin FastAPI adapter: parses JSON, calls the engine, serializes results.
Run with: py -m uvicorn server:app --reload --port 8000
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from engine import SailingEngine
from errors import ConfigNotFound, NoActiveRoute, ValidationError
from models import (
    Coordinates, ForecastPoint, NavigationRecommendation, PositionSample, Route,
    SailingMode, SailRecommendation, TideData, Waypoint, WeatherHistoryEntry,
)
from notifications import alert_to_dict
from validation import (
    validate_boat_speed, validate_heading, validate_latitude, validate_longitude, validate_wave_height,
    validate_tide_speed, validate_wind_speed,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ============================================================================
# JSON CONVERSION
# ============================================================================

def _require(body: Dict[str, Any], field: str) -> Any:
    if not isinstance(body, dict) or body.get(field) is None:
        raise ValidationError(f"Missing required field: {field}")
    return body[field]


def _parse_mode(value: Any) -> SailingMode:
    try:
        return SailingMode(value or "speed")
    except ValueError:
        raise ValidationError(f"Unknown sailing mode: {value!r}")


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid timestamp: {value!r}")


def _parse_position(data: Any) -> Coordinates:
    return Coordinates(
        lat=validate_latitude(_require(data, "lat")),
        lng=validate_longitude(_require(data, "lng")),
    )


def _optional(body: Dict[str, Any], field: str, validator: Callable[[Any], float]) -> Optional[float]:
    value = body.get(field)
    return validator(value) if value is not None else None


def sample_from_dict(body: Dict[str, Any]) -> PositionSample:
    return PositionSample(
        position=_parse_position(_require(body, "position")),
        timestamp=_parse_time(body.get("timestamp")),
        boat_speed=_optional(body, "boatSpeed", validate_boat_speed),
        heading=_optional(body, "heading", validate_heading),
        wind_speed=_optional(body, "windSpeed", validate_wind_speed),
        wind_direction=_optional(body, "windDirection", validate_heading),
    )


def forecast_from_dict(data: Any) -> ForecastPoint:
    wind_speed = validate_wind_speed(_require(data, "windSpeed"))
    return ForecastPoint(
        timestamp=_parse_time(data.get("timestamp")),
        wind_speed=wind_speed,
        wind_direction=validate_heading(_require(data, "windDirection")),
        gust_speed=validate_wind_speed(data.get("gustSpeed", wind_speed)),
        wave_height=validate_wave_height(data.get("waveHeight", 0.0)),
    )


def recommendation_to_dict(rec: SailRecommendation) -> Dict[str, Any]:
    config = rec.configuration
    return {
        "configuration": {
            "mainSail": config.main_sail,
            "jib": config.jib,
            "asymmetrical": config.asymmetrical,
            "spinnaker": config.spinnaker,
            "codeZero": config.code_zero,
            "stormJib": config.storm_jib,
        },
        "label": config.label,
        "expectedSpeed": rec.expected_speed,
        "description": rec.description,
        "confidence": rec.confidence,
    }


def waypoint_to_dict(wp: Waypoint) -> Dict[str, Any]:
    return {
        "id": wp.id,
        "name": wp.name,
        "lat": wp.lat,
        "lng": wp.lng,
        "sequenceIndex": wp.sequence_index,
        "arrived": wp.arrived,
        "arrivalTime": wp.arrival_time.isoformat() if wp.arrival_time else None,
    }


def navigation_to_dict(nav: NavigationRecommendation) -> Dict[str, Any]:
    return {
        "currentWaypoint": waypoint_to_dict(nav.current_waypoint),
        "nextWaypoint": waypoint_to_dict(nav.next_waypoint),
        "distance": round(nav.distance, 2),
        "bearing": round(nav.bearing, 1),
        "trueWindAngle": round(nav.true_wind_angle, 1),
        "sailRecommendation": recommendation_to_dict(nav.sail_recommendation),
        "recommendedHeading": round(nav.recommended_heading, 1),
        "speedOverGround": round(nav.speed_over_ground, 1),
        "etaMinutes": round(nav.eta_minutes),
    }


def history_entry_to_dict(entry: WeatherHistoryEntry) -> Dict[str, Any]:
    actual = entry.actual_conditions
    return {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "location": {"lat": entry.location.lat, "lng": entry.location.lng},
        "forecast": {
            "timestamp": entry.forecast.timestamp.isoformat(),
            "windSpeed": entry.forecast.wind_speed,
            "windDirection": entry.forecast.wind_direction,
            "gustSpeed": entry.forecast.gust_speed,
            "waveHeight": entry.forecast.wave_height,
        },
        "actualConditions": {
            "windSpeed": actual.wind_speed,
            "windDirection": actual.wind_direction,
            "boatSpeed": actual.boat_speed,
        } if actual else None,
    }


# ============================================================================
# APP
# ============================================================================

def create_app(engine: SailingEngine) -> FastAPI:
    app = FastAPI(title="Sailing Engine")

    # Allow CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": f"Invalid input: {exc}"})

    @app.exception_handler(NoActiveRoute)
    async def no_active_route(request: Request, exc: NoActiveRoute):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(ConfigNotFound)
    async def config_not_found(request: Request, exc: ConfigNotFound):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    async def read_json(request: Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Request body must be JSON")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.post("/recommendation")
    async def recommendation(request: Request):
        body = await read_json(request)
        rec = engine.recommend(_require(body, "windSpeed"), _require(body, "windAngle"),
                               _parse_mode(body.get("mode")))
        return recommendation_to_dict(rec)

    @app.get("/optimal-angles")
    async def optimal_angles(windSpeed: float, sailConfig: Optional[str] = None):
        angles = engine.optimal_angles(windSpeed, sailConfig)
        return {
            side: {"angle": a.angle, "speed": a.speed, "vmg": a.vmg} if a else None
            for side, a in (("upwind", angles.upwind), ("downwind", angles.downwind))
        }

    @app.post("/route")
    async def set_route(request: Request):
        body = await read_json(request)
        points = _require(body, "waypoints")
        if not isinstance(points, list) or not all(isinstance(p, dict) for p in points):
            raise ValidationError("waypoints must be a list of objects")
        route = Route.from_points(
            body.get("name", "Route"),
            [(p.get("name", f"WP{i + 1}"), _require(p, "lat"), _require(p, "lng"))
             for i, p in enumerate(points)],
        )
        engine.set_route(route)
        logger.info(f"Route '{route.name}' set with {len(route.waypoints)} waypoints")
        return {"id": route.id, "name": route.name,
                "waypoints": [waypoint_to_dict(wp) for wp in route.waypoints]}

    @app.post("/position")
    async def update_position(request: Request):
        event = engine.update_position(sample_from_dict(await read_json(request)))
        return {
            "arrived": event.arrived,
            "waypoint": waypoint_to_dict(event.waypoint) if event.waypoint else None,
            "distanceToWaypoint": event.distance_to_waypoint,
            "routeComplete": engine.is_route_complete(),
        }

    @app.post("/navigation")
    async def navigation(request: Request):
        body = await read_json(request)
        tide = body.get("tide")
        nav = engine.navigation_guidance(
            sample_from_dict(body),
            forecast_from_dict(_require(body, "forecast")),
            _parse_mode(body.get("mode")),
            TideData(speed=validate_tide_speed(_require(tide, "speed")),
                     direction=validate_heading(_require(tide, "direction"))) if tide else None,
        )
        return navigation_to_dict(nav)

    @app.post("/monitoring/start")
    async def start_monitoring(request: Request):
        # Body is optional: {"position": {"lat": .., "lng": ..}}
        body = await read_json(request) if await request.body() else {}
        position = body.get("position")
        engine.start_monitoring(_parse_position(position) if position is not None else None)
        return {"running": engine.monitor.is_running}

    @app.post("/monitoring/stop")
    async def stop_monitoring():
        engine.stop_monitoring()
        return {"running": engine.monitor.is_running}

    @app.get("/monitoring/status")
    async def monitoring_status():
        return {"running": engine.monitor.is_running}

    @app.post("/weather/check")
    async def check_weather():
        return {"alerts": [alert_to_dict(a) for a in await engine.check_weather()]}

    @app.get("/alerts")
    async def alerts():
        return {"alerts": [alert_to_dict(a) for a in engine.alerts()]}

    @app.get("/weather/history")
    async def weather_history(limit: Optional[int] = None):
        return {"history": [history_entry_to_dict(h) for h in engine.weather_history(limit)]}

    @app.get("/weather/accuracy")
    async def weather_accuracy():
        accuracy = engine.forecast_accuracy()
        return {
            "sampleSize": accuracy.sample_size,
            "windSpeedError": round(accuracy.mean_wind_speed_error, 2),
            "windDirectionError": round(accuracy.mean_wind_direction_error, 1),
        }

    @app.get("/route/complete")
    async def route_complete():
        return {"complete": engine.is_route_complete()}

    return app


app = create_app(SailingEngine())
