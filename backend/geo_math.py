"""
Geo Math - Navigation primitives

This module handles all the geographic calculations:
- Distance between points (Haversine formula)
- Bearing/direction between points
- ETA from distance and speed
- Course and speed over ground with a tidal current
- True/apparent wind angles

Everything here is a pure function.
"""

import math
from dataclasses import dataclass

from models import Coordinates


# Earth's radius in nautical miles
EARTH_RADIUS_NM = 3440.065


@dataclass(frozen=True)
class CourseOverGround:
    ground_course_deg: float     # 0-360
    speed_over_ground_knots: float


def to_radians(degrees: float) -> float:
    """Convert degrees to radians"""
    return degrees * (math.pi / 180)


def to_degrees(radians: float) -> float:
    """Convert radians to degrees"""
    return radians * (180 / math.pi)


def normalize_angle(angle: float) -> float:
    """Normalize angle to 0-360 range"""
    return angle % 360


def distance_nm(start: Coordinates, end: Coordinates) -> float:
    """
    Calculate distance between two points using Haversine formula.

    The Haversine formula calculates the shortest distance over the
    Earth's surface (great-circle distance).

    Args:
        start: Starting coordinates
        end: Ending coordinates

    Returns:
        Distance in nautical miles
    """
    lat1 = to_radians(start.lat)
    lat2 = to_radians(end.lat)
    delta_lat = to_radians(end.lat - start.lat)
    delta_lng = to_radians(end.lng - start.lng)

    # Haversine formula
    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1) * math.cos(lat2) *
         math.sin(delta_lng / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_NM * c


def bearing_deg(start: Coordinates, end: Coordinates) -> float:
    """
    Calculate the initial bearing (direction) from start to end.

    Returns:
        Bearing in degrees (0-360, where 0=North, 90=East, etc.)
    """
    lat1 = to_radians(start.lat)
    lat2 = to_radians(end.lat)
    delta_lng = to_radians(end.lng - start.lng)

    y = math.sin(delta_lng) * math.cos(lat2)
    x = (math.cos(lat1) * math.sin(lat2) -
         math.sin(lat1) * math.cos(lat2) * math.cos(delta_lng))

    bearing = to_degrees(math.atan2(y, x))

    # Normalize to 0-360
    return (bearing + 360) % 360


def eta_minutes(distance: float, speed_knots: float) -> float:
    """Minutes to cover distance at speed; 0 when not moving"""
    if speed_knots <= 0:
        return 0.0
    return (distance / speed_knots) * 60


def course_with_current(
    desired_course_deg: float,
    boat_speed_knots: float,
    current_speed_knots: float,
    current_direction_deg: float
) -> CourseOverGround:
    """
    Add the boat's and the current's velocity vectors.

    Args:
        desired_course_deg: Course steered through the water
        boat_speed_knots: Speed through the water
        current_speed_knots: Current (tide) speed
        current_direction_deg: Direction the current flows TO

    Returns:
        Resulting course and speed over ground
    """
    boat_x = boat_speed_knots * math.sin(to_radians(desired_course_deg))
    boat_y = boat_speed_knots * math.cos(to_radians(desired_course_deg))

    current_x = current_speed_knots * math.sin(to_radians(current_direction_deg))
    current_y = current_speed_knots * math.cos(to_radians(current_direction_deg))

    result_x = boat_x + current_x
    result_y = boat_y + current_y

    speed_over_ground = math.hypot(result_x, result_y)
    ground_course = normalize_angle(to_degrees(math.atan2(result_x, result_y)))

    return CourseOverGround(ground_course_deg=ground_course, speed_over_ground_knots=speed_over_ground)


def true_wind_angle(course_deg: float, wind_direction_deg: float) -> float:
    """
    True wind angle of a course, folded to 0-180° (port and starboard alike).

    Example:
        - Course 090°, wind from 090° → 0° (dead upwind)
        - Course 090°, wind from 270° → 180° (dead downwind)
    """
    relative = normalize_angle(abs(wind_direction_deg - course_deg))
    if relative > 180:
        relative = 360 - relative
    return relative


def interpolate_position(start: Coordinates, end: Coordinates, fraction: float) -> Coordinates:
    """
    Point at fraction of the way from start to end.

    Straight blend of latitude and longitude, not a great-circle point; good
    enough for sampling weather along a leg.
    """
    return Coordinates(
        lat=start.lat + (end.lat - start.lat) * fraction,
        lng=start.lng + (end.lng - start.lng) * fraction,
    )


def apparent_wind_angle(true_wind_angle_deg: float, true_wind_speed: float, boat_speed: float) -> float:
    """
    Apparent wind angle (0-360) felt on board.

    Vector sum of the true wind and the headwind made by the boat's own motion.
    """
    twa = to_radians(true_wind_angle_deg)
    wind_x = true_wind_speed * math.sin(twa)
    wind_y = true_wind_speed * math.cos(twa) + boat_speed
    return normalize_angle(to_degrees(math.atan2(wind_x, wind_y)))


def apparent_wind_speed(true_wind_angle_deg: float, true_wind_speed: float, boat_speed: float) -> float:
    """Apparent wind speed in knots (law of cosines)"""
    twa = to_radians(true_wind_angle_deg)
    return math.sqrt(
        true_wind_speed ** 2 + boat_speed ** 2 + 2 * true_wind_speed * boat_speed * math.cos(twa)
    )
