"""
Sailing Engine - the query surface used by the server and by tests

Components are built explicitly and passed in; nothing here is a singleton.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from errors import NoActiveRoute
from models import (
    DEFAULT_MONITORING_CONFIG, Coordinates, ForecastPoint, MonitoringConfig,
    NavigationRecommendation, OptimalAngles, PositionSample, Route, SailingMode,
    SailRecommendation, TideData, WeatherAlert, WeatherHistoryEntry,
)
from navigation import NavigationService
from notifications import HttpNotificationDispatcher, NotificationDispatcher
from polar_model import LAGOON_440_POLAR, PolarModel
from route_tracker import ArrivalEvent, RouteTracker
from sail_advisor import SailAdvisor
from validation import validate_wind_speed
from weather_fetcher import ForecastProvider, OpenMeteoForecastProvider
from weather_monitor import ForecastAccuracy, WeatherMonitor, forecast_accuracy

# Set up logging
logger = logging.getLogger(__name__)


class SailingEngine:

    def __init__(
        self,
        polar: Optional[PolarModel] = None,
        provider: Optional[ForecastProvider] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        config: MonitoringConfig = DEFAULT_MONITORING_CONFIG,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.polar = polar or LAGOON_440_POLAR
        self.advisor = SailAdvisor(self.polar)
        self.tracker = RouteTracker()
        self.navigation = NavigationService(self.tracker, self.advisor)
        self.monitor = WeatherMonitor(
            provider or OpenMeteoForecastProvider(),
            dispatcher if dispatcher is not None else HttpNotificationDispatcher(),
            config,
            clock,
        )

    # Performance
    def recommend(self, wind_speed: float, wind_angle: float,
                  mode: SailingMode = SailingMode.SPEED) -> SailRecommendation:
        return self.advisor.recommend(wind_speed, wind_angle, mode)

    def optimal_angles(self, wind_speed: float, sail_config: Optional[str] = None) -> OptimalAngles:
        return self.polar.optimal_vmg_angles(validate_wind_speed(wind_speed), sail_config)

    # Route progress
    def set_route(self, route: Route):
        self.tracker.set_route(route)
        self.monitor.update_route(route)

    def update_position(self, sample: PositionSample) -> ArrivalEvent:
        """Feed a sensor sample to the tracker and the weather monitor"""
        event = self.tracker.update(sample)
        self.monitor.update_position(sample.position)
        return event

    def navigation_guidance(self, sample: PositionSample, forecast: ForecastPoint,
                            mode: SailingMode = SailingMode.SPEED,
                            tide: Optional[TideData] = None) -> NavigationRecommendation:
        return self.navigation.guidance(sample, forecast, mode, tide)

    def is_route_complete(self) -> bool:
        return self.tracker.is_complete()

    # Weather monitoring
    def start_monitoring(self, position: Optional[Coordinates] = None):
        """
        Start weather monitoring for the tracked route.

        Without a position the last tracked sample is used, then the first
        waypoint. Must be called from a running event loop.
        """
        route = self.tracker.route
        if route is None or not route.waypoints:
            raise NoActiveRoute("Set a route before starting weather monitoring")

        if position is None:
            history = self.tracker.history
            position = history[-1].position if history else route.waypoints[0].position
            logger.debug(f"Monitoring from {position.lat:.4f}, {position.lng:.4f}")

        self.monitor.start(route, position)

    def stop_monitoring(self):
        self.monitor.stop()

    async def check_weather(self) -> List[WeatherAlert]:
        """Run one monitoring cycle now"""
        if self.tracker.route is None:
            raise NoActiveRoute("Set a route before checking the weather")
        return await self.monitor.run_cycle()

    def alerts(self) -> List[WeatherAlert]:
        return self.monitor.alerts

    def weather_history(self, limit: Optional[int] = None) -> List[WeatherHistoryEntry]:
        return self.monitor.weather_history(limit)

    def record_actual_conditions(self, sample: PositionSample) -> Optional[WeatherHistoryEntry]:
        return self.monitor.record_actual_conditions(sample)

    def forecast_accuracy(self) -> ForecastAccuracy:
        return forecast_accuracy(self.monitor.weather_history())
