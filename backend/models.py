"""
Type definitions for the sailing performance & route-monitoring engine
Using Python dataclasses for clean, typed data structures
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import Iterable, List, Optional, Tuple

from errors import ValidationError
from validation import validate_latitude, validate_longitude, validate_positive


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Coordinates:
    """A point on Earth (latitude/longitude)"""
    lat: float  # Latitude (-90 to 90)
    lng: float  # Longitude (-180 to 180)


# ============================================================================
# POLAR DATA
# ============================================================================

@dataclass(frozen=True)
class PolarPoint:
    """One measured boat speed at a true wind angle"""
    twa: float    # degrees (0-360)
    speed: float  # knots
    vmg: float    # knots, negative when sailing away from the wind

    def __post_init__(self):
        if not 0 <= self.twa <= 360:
            raise ValidationError(f"Polar point angle {self.twa} outside 0-360")
        if self.speed < 0:
            raise ValidationError(f"Polar point speed {self.speed} cannot be negative")


@dataclass(frozen=True)
class PolarCurve:
    """Boat speed over wind angle at one true wind speed"""
    tws: float
    points: Tuple[PolarPoint, ...]

    def __post_init__(self):
        points = tuple(sorted(self.points, key=lambda p: p.twa))
        if not points:
            raise ValidationError(f"Curve at {self.tws} kts must have at least one data point")
        angles = [p.twa for p in points]
        if len(set(angles)) != len(angles):
            raise ValidationError(f"Curve at {self.tws} kts has duplicate wind angles")
        object.__setattr__(self, "points", points)


@dataclass(frozen=True)
class SailConfigEntry:
    """Polar curves for one sail plan, valid over a wind range"""
    label: str
    wind_range: Tuple[float, float]
    curves: Tuple[PolarCurve, ...]
    description: str = ""

    def __post_init__(self):
        curves = tuple(sorted(self.curves, key=lambda c: c.tws))
        if not curves:
            raise ValidationError(f'Sail configuration "{self.label}" must have at least one curve')
        low, high = self.wind_range
        if low > high:
            raise ValidationError(f'Sail configuration "{self.label}" has an inverted wind range')
        object.__setattr__(self, "curves", curves)
        object.__setattr__(self, "wind_range", (float(low), float(high)))

    @property
    def midpoint(self) -> float:
        return (self.wind_range[0] + self.wind_range[1]) / 2

    def covers(self, wind_speed: float) -> bool:
        return self.wind_range[0] <= wind_speed <= self.wind_range[1]


@dataclass(frozen=True)
class OptimalAngle:
    """Best angle found on a polar curve"""
    angle: float
    speed: float
    vmg: float


@dataclass(frozen=True)
class OptimalAngles:
    upwind: Optional[OptimalAngle]
    downwind: Optional[OptimalAngle]


# ============================================================================
# SAIL RECOMMENDATIONS
# ============================================================================

class SailingMode(Enum):
    """What the skipper is optimising for"""
    SPEED = "speed"
    COMFORT = "comfort"


@dataclass(frozen=True)
class SailConfiguration:
    """Which sails are flying"""
    main_sail: bool = False
    jib: bool = False
    asymmetrical: bool = False
    spinnaker: bool = False
    code_zero: bool = False
    storm_jib: bool = False

    @property
    def label(self) -> str:
        """Name of the matching sail configuration in the polar"""
        if self.storm_jib:
            return "Storm Jib + Reefed Main"
        if self.code_zero:
            return "Code Zero"
        if self.spinnaker:
            return "Main + Spinnaker"
        if self.asymmetrical:
            return "Main + Asymmetrical"
        return "Main + Jib"


@dataclass(frozen=True)
class SailRecommendation:
    configuration: SailConfiguration
    expected_speed: float  # knots, rounded to 0.1
    description: str
    confidence: int        # 0-100


# ============================================================================
# ROUTES
# ============================================================================

@dataclass
class Waypoint:
    """A named point on a route"""
    id: str
    name: str
    lat: float
    lng: float
    sequence_index: int = 0
    arrived: bool = False
    arrival_time: Optional[datetime] = None

    def __post_init__(self):
        self.lat = validate_latitude(self.lat)
        self.lng = validate_longitude(self.lng)

    @property
    def position(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)


@dataclass
class Route:
    """
    An ordered sequence of waypoints.

    Mutations go through the methods below so that sequence_index stays
    unique and monotonic (0..n-1) and last_modified is kept current.
    """
    id: str
    name: str
    waypoints: List[Waypoint] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    last_modified: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.waypoints.sort(key=lambda wp: wp.sequence_index)
        self._renumber()

    @classmethod
    def from_points(cls, name: str, points: Iterable[Tuple[str, float, float]]) -> "Route":
        """Build a route from imported (name, lat, lng) triples"""
        route = cls(id=_new_id("route"), name=name)
        for wp_name, lat, lng in points:
            route.add_waypoint(wp_name, lat, lng)
        return route

    def _renumber(self):
        for index, wp in enumerate(self.waypoints):
            wp.sequence_index = index

    def _touch(self):
        self._renumber()
        self.last_modified = datetime.now()

    def get_waypoint(self, waypoint_id: str) -> Waypoint:
        for wp in self.waypoints:
            if wp.id == waypoint_id:
                return wp
        raise KeyError(f"No waypoint with id {waypoint_id!r} in route {self.name!r}")

    def add_waypoint(self, name: str, lat: float, lng: float) -> Waypoint:
        waypoint = Waypoint(id=_new_id("wp"), name=name, lat=lat, lng=lng,
                            sequence_index=len(self.waypoints))
        self.waypoints.append(waypoint)
        self._touch()
        return waypoint

    def update_waypoint(self, waypoint_id: str, name: Optional[str] = None,
                        lat: Optional[float] = None, lng: Optional[float] = None) -> Waypoint:
        waypoint = self.get_waypoint(waypoint_id)
        new_lat = validate_latitude(lat) if lat is not None else waypoint.lat
        new_lng = validate_longitude(lng) if lng is not None else waypoint.lng
        if name is not None:
            waypoint.name = name
        waypoint.lat = new_lat
        waypoint.lng = new_lng
        self._touch()
        return waypoint

    def remove_waypoint(self, waypoint_id: str) -> Waypoint:
        waypoint = self.get_waypoint(waypoint_id)
        self.waypoints.remove(waypoint)
        self._touch()
        return waypoint

    def move_waypoint(self, waypoint_id: str, new_index: int):
        """Reorder: move a waypoint to new_index (clamped to the route length)"""
        waypoint = self.get_waypoint(waypoint_id)
        self.waypoints.remove(waypoint)
        new_index = max(0, min(new_index, len(self.waypoints)))
        self.waypoints.insert(new_index, waypoint)
        self._touch()


# ============================================================================
# SENSOR / ENVIRONMENT INPUTS
# ============================================================================

@dataclass(frozen=True)
class PositionSample:
    """One sensor reading from the boat"""
    position: Coordinates
    timestamp: datetime
    boat_speed: Optional[float] = None      # knots
    heading: Optional[float] = None         # degrees
    wind_speed: Optional[float] = None      # knots (true)
    wind_direction: Optional[float] = None  # degrees, where wind comes FROM


@dataclass(frozen=True)
class TideData:
    speed: float      # knots
    direction: float  # degrees, where the current flows TO


@dataclass(frozen=True)
class ForecastPoint:
    """Forecast conditions at one location and time"""
    timestamp: datetime
    wind_speed: float      # knots
    wind_direction: float  # degrees (0-360, where wind comes FROM)
    gust_speed: float      # knots
    wave_height: float     # meters


@dataclass(frozen=True)
class NavigationRecommendation:
    """Guidance towards the next waypoint"""
    current_waypoint: Waypoint
    next_waypoint: Waypoint
    distance: float             # nautical miles
    bearing: float              # degrees
    true_wind_angle: float      # degrees, 0-180
    sail_recommendation: SailRecommendation
    recommended_heading: float  # degrees, tide corrected when tide is given
    speed_over_ground: float    # knots
    eta_minutes: float
    forecast: ForecastPoint


# ============================================================================
# WEATHER MONITORING
# ============================================================================

class AlertKind(Enum):
    STORM = "storm"
    HIGH_WIND = "high_wind"
    HIGH_WAVES = "high_waves"
    SQUALL = "squall"
    DAYLIGHT_ARRIVAL = "daylight_arrival"


@total_ordering
class AlertSeverity(Enum):
    """Alert severity, ordered low < medium < high < critical"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, AlertSeverity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_ORDER = [AlertSeverity.LOW, AlertSeverity.MEDIUM, AlertSeverity.HIGH, AlertSeverity.CRITICAL]


@dataclass(frozen=True)
class WeatherAlert:
    id: str
    created_at: datetime
    kind: AlertKind
    severity: AlertSeverity
    location: Coordinates
    distance_nm: float  # from the vessel
    message: str
    recommendation: str


@dataclass
class WeatherHistoryEntry:
    """A forecast sample, optionally paired with what was actually observed"""
    id: str
    timestamp: datetime
    location: Coordinates
    forecast: ForecastPoint
    actual_conditions: Optional[PositionSample] = None


@dataclass(frozen=True)
class MonitoringConfig:
    """Thresholds and switches for weather monitoring"""
    interval_hours: float = 6
    forecast_days: float = 3
    max_wind_knots: float = 25
    max_wave_height_m: float = 3
    avoid_storms: bool = True
    require_daylight_arrival: bool = True
    notify_push: bool = True
    notify_sms: bool = False
    phone_number: Optional[str] = None

    def __post_init__(self):
        validate_positive(self.interval_hours, "Monitoring interval")
        validate_positive(self.forecast_days, "Forecast horizon")
        validate_positive(self.max_wind_knots, "Maximum wind speed")
        validate_positive(self.max_wave_height_m, "Maximum wave height")

    @property
    def forecast_hours(self) -> int:
        return int(round(self.forecast_days * 24))

    def with_updates(self, **changes) -> "MonitoringConfig":
        """Return a new config with some fields replaced"""
        return replace(self, **changes)


DEFAULT_MONITORING_CONFIG = MonitoringConfig()
