"""
Polar Model Module

This module turns a boat's polar diagram into speed and VMG predictions.
A polar diagram maps (wind_speed, wind_angle) → boat_speed, one table per
sail configuration.

Key Concepts:
- TWS (True Wind Speed): Wind speed in knots
- TWA (True Wind Angle): Angle between boat heading and wind direction (0-360°)
- Boat Speed: Speed in knots achieved at given TWS and TWA
- VMG (Velocity Made Good): Component of speed toward (or away from) the wind
- Sail configuration: A sail plan ("Main + Jib", "Code Zero", ...) with its own
  curves and the wind range it is meant for

Lookups never extrapolate: queries outside the grid are clamped to the
nearest edge curve / edge point.
"""

import json
import math
from bisect import bisect_right
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from errors import ConfigNotFound, ValidationError
from models import OptimalAngle, OptimalAngles, PolarCurve, PolarPoint, SailConfigEntry


# ============================================================================
# INTERPOLATION HELPERS
# ============================================================================

def _lerp(a: float, b: float, t: float) -> float:
    """Linear blend that returns a or b exactly at t=0 and t=1"""
    return a * (1 - t) + b * t


def _bracket(values: Sequence[float], x: float) -> Tuple[int, int, float]:
    """
    Find the indices enclosing x in a sorted sequence and the weight of the upper one.

    Returns (low, high, weight). Outside the range both indices point at the
    edge value; exactly on a value both indices point at it with weight 0.
    """
    last = len(values) - 1
    if x <= values[0]:
        return 0, 0, 0.0
    if x >= values[last]:
        return last, last, 0.0
    i = bisect_right(values, x) - 1
    if values[i] == x:
        return i, i, 0.0
    return i, i + 1, (x - values[i]) / (values[i + 1] - values[i])


def _interpolate_curve(curve: PolarCurve, wind_angle: float) -> Tuple[float, float]:
    """Speed and VMG on one curve, interpolated by angle"""
    angles = [p.twa for p in curve.points]
    low, high, weight = _bracket(angles, wind_angle)
    p_low = curve.points[low]
    p_high = curve.points[high]
    if low == high:
        return p_low.speed, p_low.vmg
    return _lerp(p_low.speed, p_high.speed, weight), _lerp(p_low.vmg, p_high.vmg, weight)


def _check_number(value: float, label: str) -> float:
    if value is None or math.isnan(value):
        raise ValidationError(f"{label} must be a valid number")
    return value


# ============================================================================
# POLAR MODEL
# ============================================================================

class PolarModel:
    """
    Performance grid for one boat, answering speed and VMG queries.

    Example:
        >>> model = LAGOON_440_POLAR
        >>> model.speed_at(12, 90)
        8.3
    """

    def __init__(
        self,
        entries: Iterable[SailConfigEntry],
        name: str = "Custom polar",
        boat_type: str = "",
        boat_model: str = "",
    ):
        self.entries: Tuple[SailConfigEntry, ...] = tuple(entries)
        if not self.entries:
            raise ConfigNotFound(f"Polar '{name}' has no sail configurations")
        labels = [e.label for e in self.entries]
        if len(set(labels)) != len(labels):
            raise ValidationError(f"Polar '{name}' has duplicate sail configuration names")
        self.name = name
        self.boat_type = boat_type
        self.boat_model = boat_model

    def __repr__(self):
        return f"PolarModel(name={self.name!r}, configs={list(self.labels)!r})"

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(e.label for e in self.entries)

    def has_config(self, label: str) -> bool:
        return label in self.labels

    def select_config(self, wind_speed: float, sail_config: Optional[str] = None) -> SailConfigEntry:
        """
        Pick the sail configuration used for a lookup.

        A named configuration must exist. Otherwise the first configuration
        whose wind range covers the wind speed wins, falling back to the one
        with the closest range midpoint.
        """
        if sail_config is not None:
            for entry in self.entries:
                if entry.label == sail_config:
                    return entry
            raise ConfigNotFound(f"No sail configuration named '{sail_config}' in polar '{self.name}'")

        for entry in self.entries:
            if entry.covers(wind_speed):
                return entry
        return min(self.entries, key=lambda e: abs(e.midpoint - wind_speed))

    def _lookup(self, wind_speed: float, wind_angle: float, sail_config: Optional[str]) -> Tuple[float, float]:
        _check_number(wind_speed, "Wind speed")
        _check_number(wind_angle, "Wind angle")
        entry = self.select_config(wind_speed, sail_config)
        curves = entry.curves

        low, high, weight = _bracket([c.tws for c in curves], wind_speed)
        speed_low, vmg_low = _interpolate_curve(curves[low], wind_angle)
        if low == high:
            return speed_low, vmg_low

        speed_high, vmg_high = _interpolate_curve(curves[high], wind_angle)
        return _lerp(speed_low, speed_high, weight), _lerp(vmg_low, vmg_high, weight)

    def speed_at(self, wind_speed: float, wind_angle: float, sail_config: Optional[str] = None) -> float:
        """
        Get boat speed for given wind conditions.

        Args:
            wind_speed: True wind speed in knots
            wind_angle: True wind angle (0-360°, not folded)
            sail_config: Sail configuration name, or None to pick by wind range

        Returns:
            Boat speed in knots
        """
        return self._lookup(wind_speed, wind_angle, sail_config)[0]

    def vmg_at(self, wind_speed: float, wind_angle: float, sail_config: Optional[str] = None) -> float:
        """VMG in knots (negative downwind) for given wind conditions"""
        return self._lookup(wind_speed, wind_angle, sail_config)[1]

    def optimal_vmg_angles(self, wind_speed: float, sail_config: Optional[str] = None) -> OptimalAngles:
        """
        Best upwind and downwind angles on the curve nearest to wind_speed.

        Upwind maximises VMG over angles < 90°, downwind minimises it (most
        negative) over angles > 90°. A side without candidate points is None.
        """
        _check_number(wind_speed, "Wind speed")
        entry = self.select_config(wind_speed, sail_config)
        curve = min(entry.curves, key=lambda c: abs(c.tws - wind_speed))

        upwind = None
        downwind = None
        for point in curve.points:
            if point.twa < 90 and (upwind is None or point.vmg > upwind.vmg):
                upwind = point
            elif point.twa > 90 and (downwind is None or point.vmg < downwind.vmg):
                downwind = point

        return OptimalAngles(
            upwind=OptimalAngle(upwind.twa, upwind.speed, upwind.vmg) if upwind else None,
            downwind=OptimalAngle(downwind.twa, downwind.speed, downwind.vmg) if downwind else None,
        )

    # ------------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------------

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "boatType": self.boat_type,
            "boatModel": self.boat_model,
            "polarData": [
                {
                    "sailConfig": entry.label,
                    "description": entry.description,
                    "windRange": {"min": entry.wind_range[0], "max": entry.wind_range[1]},
                    "curves": [
                        {
                            "tws": curve.tws,
                            "points": [
                                {"twa": p.twa, "speed": p.speed, "vmg": p.vmg}
                                for p in curve.points
                            ],
                        }
                        for curve in entry.curves
                    ],
                }
                for entry in self.entries
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "PolarModel":
        """Build a model from the polar diagram JSON layout"""
        if not data.get("name") or not data.get("polarData"):
            raise ValidationError("Invalid polar diagram format: missing required fields")

        entries = []
        try:
            for config in data["polarData"]:
                curves = [
                    PolarCurve(
                        tws=float(curve["tws"]),
                        points=tuple(
                            PolarPoint(
                                twa=float(p["twa"]),
                                speed=float(p["speed"]),
                                vmg=float(p["vmg"]) if p.get("vmg") is not None
                                else _vmg(float(p["speed"]), float(p["twa"])),
                            )
                            for p in curve["points"]
                        ),
                    )
                    for curve in config["curves"]
                ]
                wind_range = config.get("windRange") or {}
                tws_values = [c.tws for c in curves]
                entries.append(SailConfigEntry(
                    label=config["sailConfig"],
                    wind_range=(
                        float(wind_range.get("min", min(tws_values, default=0))),
                        float(wind_range.get("max", max(tws_values, default=0))),
                    ),
                    curves=tuple(curves),
                    description=config.get("description", ""),
                ))
        except ValidationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid polar diagram format: {e}")

        return cls(
            entries,
            name=data["name"],
            boat_type=data.get("boatType", ""),
            boat_model=data.get("boatModel", ""),
        )

    def merged_with(self, others: Iterable["PolarModel"]) -> "PolarModel":
        """Add the sail configurations of other polars that this one lacks"""
        entries = list(self.entries)
        known = set(self.labels)
        for other in others:
            for entry in other.entries:
                if entry.label not in known:
                    entries.append(entry)
                    known.add(entry.label)
        return PolarModel(entries, name=self.name, boat_type=self.boat_type, boat_model=self.boat_model)


def load_polar_json(text: str) -> PolarModel:
    """Import a polar diagram from a JSON string"""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Failed to import polar diagram: {e}")
    if not isinstance(data, dict):
        raise ValidationError("Failed to import polar diagram: expected a JSON object")
    return PolarModel.from_dict(data)


def dump_polar_json(model: PolarModel) -> str:
    return json.dumps(model.to_dict(), indent=2)


def export_polar_csv(model: PolarModel, sail_config_index: int = 0) -> str:
    """
    Export one sail configuration as CSV: a TWA column then one column per TWS.

    Cells are empty where a curve has no point at that angle.
    """
    if not 0 <= sail_config_index < len(model.entries):
        raise ConfigNotFound("Invalid sail configuration index")
    entry = model.entries[sail_config_index]

    lines = [
        f"Polar Diagram: {model.name}",
        f"Boat: {model.boat_type} - {model.boat_model}",
        f"Sail Configuration: {entry.label}",
        "",
        "TWA," + ",".join(f"{c.tws:g}" for c in entry.curves),
    ]
    all_angles = sorted({p.twa for c in entry.curves for p in c.points})
    for twa in all_angles:
        row = [f"{twa:g}"]
        for curve in entry.curves:
            speed = next((p.speed for p in curve.points if p.twa == twa), None)
            row.append(f"{speed:.2f}" if speed is not None else "")
        lines.append(",".join(row))
    return "\n".join(lines) + "\n"


# ============================================================================
# DEFAULT POLAR: LAGOON 440
# ============================================================================

def _vmg(speed: float, twa: float) -> float:
    return round(speed * math.cos(math.radians(twa)), 2)


def _entry(label: str, description: str, wind_range: Tuple[float, float],
           table: Dict[int, Dict[int, float]]) -> SailConfigEntry:
    """Build a config entry from {tws: {twa: speed}}; VMG is derived from the angle"""
    curves = tuple(
        PolarCurve(
            tws=float(tws),
            points=tuple(PolarPoint(twa=float(twa), speed=speed, vmg=_vmg(speed, twa))
                         for twa, speed in row.items()),
        )
        for tws, row in table.items()
    )
    return SailConfigEntry(label=label, wind_range=wind_range, curves=curves, description=description)


# Polar structure: {wind_speed_knots: {wind_angle_degrees: boat_speed_knots}}
# Wind angles are 0-180° (port/starboard symmetric); a catamaran does not point
# as high as a monohull, so nothing below 45°

MAIN_JIB_TABLE = {
    4:  {45: 2.2, 52: 2.7, 60: 3.1, 75: 3.5, 90: 3.7, 110: 3.8, 120: 3.6, 135: 3.2, 150: 2.8, 165: 2.5, 180: 2.3},
    6:  {45: 3.3, 52: 4.0, 60: 4.6, 75: 5.2, 90: 5.5, 110: 5.6, 120: 5.4, 135: 4.8, 150: 4.2, 165: 3.8, 180: 3.5},
    8:  {45: 4.2, 52: 5.0, 60: 5.8, 75: 6.5, 90: 6.9, 110: 7.0, 120: 6.8, 135: 6.1, 150: 5.4, 165: 4.9, 180: 4.5},
    10: {45: 4.9, 52: 5.8, 60: 6.6, 75: 7.5, 90: 7.9, 110: 8.1, 120: 7.9, 135: 7.2, 150: 6.4, 165: 5.8, 180: 5.4},
    12: {45: 5.4, 52: 6.3, 60: 7.1, 75: 8.0, 90: 8.3, 110: 8.7, 120: 8.6, 135: 8.0, 150: 7.2, 165: 6.6, 180: 6.1},
    16: {45: 5.9, 52: 6.8, 60: 7.6, 75: 8.6, 90: 9.0, 110: 9.5, 120: 9.6, 135: 9.2, 150: 8.5, 165: 7.8, 180: 7.2},
    20: {45: 6.1, 52: 7.0, 60: 7.8, 75: 8.9, 90: 9.4, 110: 10.0, 120: 10.3, 135: 10.1, 150: 9.4, 165: 8.7, 180: 8.0},
    25: {45: 6.0, 52: 6.9, 60: 7.7, 75: 8.8, 90: 9.5, 110: 10.3, 120: 10.7, 135: 10.6, 150: 10.0, 165: 9.3, 180: 8.6},
    30: {45: 5.6, 52: 6.5, 60: 7.3, 75: 8.4, 90: 9.2, 110: 10.1, 120: 10.5, 135: 10.5, 150: 10.0, 165: 9.4, 180: 8.8},
    35: {45: 5.0, 52: 5.9, 60: 6.7, 75: 7.8, 90: 8.6, 110: 9.5, 120: 9.9, 135: 10.0, 150: 9.6, 165: 9.1, 180: 8.5},
}

CODE_ZERO_TABLE = {
    2:  {60: 1.6, 75: 1.9, 90: 2.1, 110: 2.2, 120: 2.1, 135: 1.9, 150: 1.6},
    4:  {60: 3.3, 75: 3.9, 90: 4.3, 110: 4.4, 120: 4.2, 135: 3.8, 150: 3.3},
    6:  {60: 4.8, 75: 5.7, 90: 6.2, 110: 6.4, 120: 6.2, 135: 5.6, 150: 4.9},
    8:  {60: 5.9, 75: 6.9, 90: 7.5, 110: 7.8, 120: 7.6, 135: 6.9, 150: 6.1},
    12: {60: 7.0, 75: 8.2, 90: 8.9, 110: 9.3, 120: 9.2, 135: 8.5, 150: 7.6},
}

ASYMMETRICAL_TABLE = {
    8:  {90: 6.6, 110: 7.4, 120: 7.5, 135: 7.2, 150: 6.6, 165: 5.8},
    12: {90: 8.2, 110: 9.3, 120: 9.6, 135: 9.3, 150: 8.6, 165: 7.6},
    16: {90: 8.9, 110: 10.2, 120: 10.7, 135: 10.6, 150: 9.9, 165: 8.9},
    20: {90: 9.2, 110: 10.6, 120: 11.3, 135: 11.4, 150: 10.8, 165: 9.8},
}

SPINNAKER_TABLE = {
    10: {120: 7.7, 135: 7.9, 150: 7.5, 165: 6.9, 180: 6.4},
    15: {120: 9.4, 135: 9.8, 150: 9.5, 165: 8.8, 180: 8.2},
    20: {120: 10.4, 135: 11.0, 150: 10.8, 165: 10.1, 180: 9.4},
    25: {120: 10.9, 135: 11.7, 150: 11.6, 165: 11.0, 180: 10.3},
}

STORM_TABLE = {
    30: {52: 5.2, 60: 6.0, 75: 7.0, 90: 7.6, 110: 8.0, 120: 8.1, 135: 8.0, 150: 7.6, 165: 7.1, 180: 6.6},
    40: {52: 4.6, 60: 5.5, 75: 6.6, 90: 7.3, 110: 7.9, 120: 8.1, 135: 8.2, 150: 7.9, 165: 7.5, 180: 7.0},
    50: {52: 3.8, 60: 4.7, 75: 5.9, 90: 6.7, 110: 7.4, 120: 7.7, 135: 7.9, 150: 7.7, 165: 7.3, 180: 6.9},
}

LAGOON_440_POLAR = PolarModel(
    [
        _entry("Main + Jib", "Standard configuration", (4, 35), MAIN_JIB_TABLE),
        _entry("Code Zero", "Light air reaching", (0, 12), CODE_ZERO_TABLE),
        _entry("Main + Asymmetrical", "Reaching to broad reaching", (8, 20), ASYMMETRICAL_TABLE),
        _entry("Main + Spinnaker", "Deep downwind", (10, 25), SPINNAKER_TABLE),
        _entry("Storm Jib + Reefed Main", "Heavy weather", (30, 60), STORM_TABLE),
    ],
    name="Lagoon 440",
    boat_type="Catamaran",
    boat_model="Lagoon 440",
)
