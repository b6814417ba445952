"""
Weather Monitor - Periodic forecast checks along the remaining route

Every cycle samples the forecast at:
1. the boat's current position
2. every waypoint not yet reached
3. points every 50nm on the straight line to the next waypoint

and raises alerts for high wind, high waves, storms and squalls, plus a
daylight-arrival warning for the final waypoint. The alert set is replaced
wholesale each cycle; alerts are not deduplicated across cycles.

Every successful forecast sample is kept in an append-only history so
forecasts can later be compared with observed conditions.
"""

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Sequence

from errors import ForecastError, ValidationError
from geo_math import distance_nm, interpolate_position
from models import (
    DEFAULT_MONITORING_CONFIG, AlertKind, AlertSeverity, Coordinates, ForecastPoint,
    MonitoringConfig, PositionSample, Route, WeatherAlert, WeatherHistoryEntry,
)
from notifications import NotificationDispatcher
from weather_fetcher import ForecastProvider

# Set up logging
logger = logging.getLogger(__name__)


INTERMEDIATE_CHECK_INTERVAL_NM = 50
DAYLIGHT_ASSUMED_SPEED_KNOTS = 6  # conservative, no speed estimate is available
DAYLIGHT_START_HOUR = 6
DAYLIGHT_END_HOUR = 18
STORM_WIND_KNOTS = 40
SQUALL_GUST_DIFFERENTIAL_KNOTS = 15
SCHEDULER_WAKEUP_SECONDS = 60

Clock = Callable[[], datetime]


def severity_for_ratio(value: float, threshold: float) -> AlertSeverity:
    """Severity from how far a value exceeds its threshold"""
    ratio = value / threshold
    if ratio >= 2.0:
        return AlertSeverity.CRITICAL
    if ratio >= 1.5:
        return AlertSeverity.HIGH
    if ratio >= 1.2:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


class ScheduledTask:
    """
    Runs a coroutine now and then every `interval` of wall-clock time.

    cancel() is idempotent and only prevents the next run; a run already in
    progress finishes.
    """

    def __init__(self, callback: Callable[[], Awaitable[object]], interval: timedelta,
                 clock: Clock = datetime.now):
        self._callback = callback
        self._interval = interval
        self._clock = clock
        self._stopped: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    def start(self):
        loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        self._task = loop.create_task(self._run())

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped.is_set()

    def cancel(self):
        if self._stopped is not None:
            self._stopped.set()

    async def _run(self):
        while not self._stopped.is_set():
            due = self._clock() + self._interval
            try:
                await self._callback()
            except Exception:
                logger.exception("Scheduled run failed")
            self.runs += 1
            await self._sleep_until(due)

    async def _sleep_until(self, due: datetime):
        # Wake up regularly so a changed wall clock is noticed
        while not self._stopped.is_set():
            remaining = (due - self._clock()).total_seconds()
            if remaining <= 0:
                return
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=min(remaining, SCHEDULER_WAKEUP_SECONDS))
            except asyncio.TimeoutError:
                pass


class WeatherMonitor:
    """Watches forecasts along a route and raises weather alerts"""

    def __init__(
        self,
        provider: ForecastProvider,
        dispatcher: Optional[NotificationDispatcher] = None,
        config: MonitoringConfig = DEFAULT_MONITORING_CONFIG,
        clock: Clock = datetime.now,
    ):
        self.provider = provider
        self.dispatcher = dispatcher
        self._config = config
        self._clock = clock
        self._schedule: Optional[ScheduledTask] = None
        self._route: Optional[Route] = None
        self._position: Optional[Coordinates] = None
        self._alerts: List[WeatherAlert] = []
        self._history: List[WeatherHistoryEntry] = []

    @property
    def config(self) -> MonitoringConfig:
        return self._config

    def update_config(self, **changes) -> MonitoringConfig:
        """Replace config fields; a new interval applies from the next start()"""
        self._config = self._config.with_updates(**changes)
        return self._config

    @property
    def is_running(self) -> bool:
        return self._schedule is not None and self._schedule.active

    @property
    def alerts(self) -> List[WeatherAlert]:
        return list(self._alerts)

    def start(self, route: Route, position: Coordinates):
        """
        Start monitoring weather along the route.

        Replaces any running schedule. The first check runs as soon as the
        event loop gets control, then every interval_hours. Must be called
        from a running event loop.
        """
        self.stop()
        self._route = route
        self._position = position
        self._schedule = ScheduledTask(
            self.run_cycle, timedelta(hours=self._config.interval_hours), self._clock
        )
        self._schedule.start()
        logger.info(f"Weather monitoring started for '{route.name}' "
                    f"(every {self._config.interval_hours}h, {self._config.forecast_days} days ahead)")

    def stop(self):
        """Stop monitoring; safe to call when not running"""
        if self._schedule is not None:
            self._schedule.cancel()
            self._schedule = None
            logger.info("Weather monitoring stopped")

    def update_position(self, position: Coordinates):
        self._position = position

    def update_route(self, route: Route):
        """Route to check from the next cycle on"""
        self._route = route

    # ------------------------------------------------------------------------
    # One monitoring cycle
    # ------------------------------------------------------------------------

    async def run_cycle(self) -> List[WeatherAlert]:
        """Perform weather check along route now"""
        route = self._route
        position = self._position
        if route is None or position is None:
            return []

        new_alerts: List[WeatherAlert] = []
        remaining = [wp for wp in route.waypoints if not wp.arrived]

        # Check current position
        await self._check_location(position, 0.0, new_alerts)

        # Check each waypoint
        for waypoint in remaining:
            await self._check_location(
                waypoint.position, distance_nm(position, waypoint.position), new_alerts
            )

        # Check intermediate points towards the next waypoint
        if remaining:
            await self._check_intermediate_points(position, remaining[0].position, new_alerts)

        if self._config.require_daylight_arrival and remaining:
            self._check_daylight_arrival(position, remaining[-1].position, new_alerts)

        self._alerts = new_alerts
        logger.info(f"Weather check for '{route.name}': {len(new_alerts)} alerts")

        if new_alerts:
            await self._send_notifications(new_alerts)
        return list(new_alerts)

    async def _check_location(self, location: Coordinates, distance: float, alerts: List[WeatherAlert]):
        try:
            forecasts = await self.provider.forecast(location, self._config.forecast_hours)
        except ForecastError as e:
            logger.warning(f"  Weather check error at {location.lat:.2f}, {location.lng:.2f} "
                           f"({e.reason}): {e}")
            return
        except Exception:
            logger.exception(f"  Error checking weather at {location.lat:.2f}, {location.lng:.2f}")
            return

        if not forecasts:
            logger.warning(f"  No forecast data at {location.lat:.2f}, {location.lng:.2f}")
            return

        self._history.append(WeatherHistoryEntry(
            id=f"hist-{uuid.uuid4().hex[:12]}",
            timestamp=self._clock(),
            location=location,
            forecast=forecasts[0],
        ))

        for forecast in forecasts:
            alerts.extend(self.evaluate_forecast(forecast, location, distance))

    def evaluate_forecast(self, forecast: ForecastPoint, location: Coordinates,
                          distance: float) -> List[WeatherAlert]:
        """Alerts raised by one forecast point"""
        config = self._config
        where = f"{location.lat:.2f}, {location.lng:.2f}"
        alerts = []

        if forecast.wind_speed > config.max_wind_knots:
            alerts.append(self._alert(
                AlertKind.HIGH_WIND,
                severity_for_ratio(forecast.wind_speed, config.max_wind_knots),
                location, distance,
                f"High wind forecast: {forecast.wind_speed} kts at {where}",
                "Consider delaying departure or altering course",
            ))

        if forecast.wave_height > config.max_wave_height_m:
            alerts.append(self._alert(
                AlertKind.HIGH_WAVES,
                severity_for_ratio(forecast.wave_height, config.max_wave_height_m),
                location, distance,
                f"High waves forecast: {forecast.wave_height}m at {where}",
                "Seek shelter or wait for conditions to improve",
            ))

        if config.avoid_storms and forecast.wind_speed > STORM_WIND_KNOTS:
            alerts.append(self._alert(
                AlertKind.STORM, AlertSeverity.CRITICAL, location, distance,
                f"Storm system detected: {forecast.wind_speed} kts winds, "
                f"{forecast.wave_height}m waves at {where}",
                "AVOID THIS AREA. Seek alternative route or safe harbor.",
            ))

        if forecast.gust_speed - forecast.wind_speed > SQUALL_GUST_DIFFERENTIAL_KNOTS:
            alerts.append(self._alert(
                AlertKind.SQUALL, AlertSeverity.HIGH, location, distance,
                f"Squall activity detected: Gusts up to {forecast.gust_speed} kts at {where}",
                "Prepare for sudden wind shifts and increased wind speed",
            ))

        return alerts

    async def _check_intermediate_points(self, position: Coordinates, next_position: Coordinates,
                                         alerts: List[WeatherAlert]):
        total_distance = distance_nm(position, next_position)
        num_checks = math.floor(total_distance / INTERMEDIATE_CHECK_INTERVAL_NM)

        for i in range(1, num_checks + 1):
            along = i * INTERMEDIATE_CHECK_INTERVAL_NM
            point = interpolate_position(position, next_position, along / total_distance)
            await self._check_location(point, along, alerts)

    def _check_daylight_arrival(self, position: Coordinates, final_position: Coordinates,
                                alerts: List[WeatherAlert]):
        distance = distance_nm(position, final_position)
        hours_to_arrival = distance / DAYLIGHT_ASSUMED_SPEED_KNOTS
        arrival_time = self._clock() + timedelta(hours=hours_to_arrival)

        if not DAYLIGHT_START_HOUR <= arrival_time.hour < DAYLIGHT_END_HOUR:
            alerts.append(self._alert(
                AlertKind.DAYLIGHT_ARRIVAL, AlertSeverity.MEDIUM, final_position, distance,
                f"Estimated arrival at {arrival_time:%Y-%m-%d %H:%M} is outside daylight hours",
                "Consider adjusting speed or departure time to arrive between 6 AM and 6 PM",
            ))

    def _alert(self, kind: AlertKind, severity: AlertSeverity, location: Coordinates,
               distance: float, message: str, recommendation: str) -> WeatherAlert:
        return WeatherAlert(
            id=f"alert-{uuid.uuid4().hex[:12]}",
            created_at=self._clock(),
            kind=kind,
            severity=severity,
            location=location,
            distance_nm=distance,
            message=message,
            recommendation=recommendation,
        )

    async def _send_notifications(self, alerts: Sequence[WeatherAlert]):
        if self.dispatcher is None or not (self._config.notify_push or self._config.notify_sms):
            return

        for alert in alerts:
            try:
                result = await self.dispatcher.dispatch(alert)
            except Exception as e:
                logger.warning(f"Error sending notification for {alert.kind.value} alert: {e}")
                continue
            if not result.success:
                logger.warning(f"Failed to send notification for {alert.kind.value} alert: {result.error}")

    # ------------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------------

    def weather_history(self, limit: Optional[int] = None) -> List[WeatherHistoryEntry]:
        """Forecast samples, newest first, optionally only the first `limit`"""
        history = sorted(self._history, key=lambda h: h.timestamp, reverse=True)
        if limit is not None:
            if limit < 0:
                raise ValidationError("History limit cannot be negative")
            history = history[:limit]
        return [replace(h) for h in history]

    def clear_history(self):
        self._history = []

    def record_actual_conditions(self, sample: PositionSample) -> Optional[WeatherHistoryEntry]:
        """Attach observed conditions to the newest history entry that has none"""
        for entry in reversed(self._history):
            if entry.actual_conditions is None:
                entry.actual_conditions = sample
                return replace(entry)
        return None


@dataclass(frozen=True)
class ForecastAccuracy:
    sample_size: int
    mean_wind_speed_error: float      # knots
    mean_wind_direction_error: float  # degrees


def forecast_accuracy(history: Sequence[WeatherHistoryEntry]) -> ForecastAccuracy:
    """Mean absolute forecast error over entries with observed wind"""
    speed_errors = []
    direction_errors = []
    for entry in history:
        actual = entry.actual_conditions
        if actual is None or actual.wind_speed is None or actual.wind_direction is None:
            continue
        speed_errors.append(abs(entry.forecast.wind_speed - actual.wind_speed))
        diff = abs(entry.forecast.wind_direction - actual.wind_direction) % 360
        direction_errors.append(min(diff, 360 - diff))

    if not speed_errors:
        return ForecastAccuracy(sample_size=0, mean_wind_speed_error=0.0, mean_wind_direction_error=0.0)

    return ForecastAccuracy(
        sample_size=len(speed_errors),
        mean_wind_speed_error=sum(speed_errors) / len(speed_errors),
        mean_wind_direction_error=sum(direction_errors) / len(direction_errors),
    )
