"""
Input validation for sensor and user supplied values.

Each validator returns the value as a float when it is inside its range and
raises ValidationError otherwise. Values are rejected, never clamped.
"""

import math
from typing import Union

from errors import ValidationError

Number = Union[int, float, str]


def _to_number(value: Number, label: str) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a valid number")
    if math.isnan(num) or math.isinf(num):
        raise ValidationError(f"{label} must be a valid number")
    return num


def _check_range(value: Number, label: str, low: float, high: float, unit: str) -> float:
    num = _to_number(value, label)
    if num < low:
        if low == 0:
            raise ValidationError(f"{label} cannot be negative")
        raise ValidationError(f"{label} must be between {low:g} and {high:g} {unit}")
    if num > high:
        if low == 0:
            raise ValidationError(f"{label} cannot exceed {high:g} {unit}")
        raise ValidationError(f"{label} must be between {low:g} and {high:g} {unit}")
    return num


def validate_wind_speed(value: Number) -> float:
    """Wind speed in knots, 0-100"""
    return _check_range(value, "Wind speed", 0, 100, "knots")


def validate_wind_angle(value: Number) -> float:
    """True wind angle in degrees, 0-360"""
    return _check_range(value, "TWA", 0, 360, "degrees")


def validate_boat_speed(value: Number) -> float:
    return _check_range(value, "Boat speed", 0, 50, "knots")


def validate_latitude(value: Number) -> float:
    return _check_range(value, "Latitude", -90, 90, "degrees")


def validate_longitude(value: Number) -> float:
    return _check_range(value, "Longitude", -180, 180, "degrees")


def validate_heading(value: Number) -> float:
    return _check_range(value, "Heading", 0, 360, "degrees")


def validate_wave_height(value: Number) -> float:
    return _check_range(value, "Wave height", 0, 30, "meters")


def validate_tide_speed(value: Number) -> float:
    return _check_range(value, "Tide speed", 0, 10, "knots")


def validate_positive(value: Number, label: str) -> float:
    """Strictly positive number (used for configuration values)"""
    num = _to_number(value, label)
    if num <= 0:
        raise ValidationError(f"{label} must be greater than 0")
    return num
