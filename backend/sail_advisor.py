"""
Sail Advisor - Picks a sail plan for the current wind

The decision is a fixed table: wind speed band → angle bucket → sailing mode
gives one sail combination and a speed multiplier. The multiplier is the
expected gain/loss against the raw polar prediction for that combination
(reefed sails lose speed, a code zero in light air gains it).

Wind bands (knots, upper bound inclusive):
- very light  <= 4
- light       <= 8
- moderate    <= 15
- strong      <= 25
- heavy       <= 35
- storm        > 35

Angle buckets (degrees, true wind angle as given):
- upwind < 60, close reach < 90, beam < 120, broad < 150, running >= 150

Angles are not folded: callers steering a course pass the 0-180° angle
from geo_math.true_wind_angle.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from models import SailConfiguration, SailingMode, SailRecommendation
from polar_model import LAGOON_440_POLAR, PolarModel
from validation import validate_wind_angle, validate_wind_speed

# Set up logging
logger = logging.getLogger(__name__)


# Below this the polar is a guess: light air performance varies a lot
LIGHT_AIR_THRESHOLD = 4
HIGH_CONFIDENCE = 85
LOW_CONFIDENCE = 65


class WindBand(Enum):
    VERY_LIGHT = "very_light"
    LIGHT = "light"
    MODERATE = "moderate"
    STRONG = "strong"
    HEAVY = "heavy"
    STORM = "storm"


class AngleBucket(Enum):
    UPWIND = "upwind"
    CLOSE_REACH = "close_reach"
    BEAM_REACH = "beam_reach"
    BROAD_REACH = "broad_reach"
    RUNNING = "running"


def classify_wind(wind_speed: float) -> WindBand:
    if wind_speed > 35:
        return WindBand.STORM
    if wind_speed > 25:
        return WindBand.HEAVY
    if wind_speed > 15:
        return WindBand.STRONG
    if wind_speed > 8:
        return WindBand.MODERATE
    if wind_speed > 4:
        return WindBand.LIGHT
    return WindBand.VERY_LIGHT


def classify_angle(wind_angle: float) -> AngleBucket:
    """Bucket a wind angle in degrees"""
    if wind_angle < 60:
        return AngleBucket.UPWIND
    if wind_angle < 90:
        return AngleBucket.CLOSE_REACH
    if wind_angle < 120:
        return AngleBucket.BEAM_REACH
    if wind_angle < 150:
        return AngleBucket.BROAD_REACH
    return AngleBucket.RUNNING


MAIN_JIB = SailConfiguration(main_sail=True, jib=True)
MAIN_ASYMMETRICAL = SailConfiguration(main_sail=True, asymmetrical=True)
MAIN_SPINNAKER = SailConfiguration(main_sail=True, spinnaker=True)
CODE_ZERO = SailConfiguration(code_zero=True)
STORM_JIB = SailConfiguration(main_sail=True, storm_jib=True)

_FORWARD = (AngleBucket.UPWIND, AngleBucket.CLOSE_REACH)


def select_sails(band: WindBand, bucket: AngleBucket, mode: SailingMode) -> Tuple[SailConfiguration, str, float]:
    """
    The decision table.

    Returns:
        (sail configuration, description, speed multiplier)
    """
    speed_mode = mode == SailingMode.SPEED

    if band == WindBand.STORM:
        return STORM_JIB, "Storm conditions: Deep reefed main + storm jib", 0.6

    if band == WindBand.HEAVY:
        if bucket in _FORWARD:
            return MAIN_JIB, "Heavy wind upwind: Reefed main + reefed jib", 0.8
        return MAIN_JIB, "Heavy wind downwind: Reefed main + jib", 0.85

    if band == WindBand.STRONG:
        if bucket == AngleBucket.UPWIND:
            return MAIN_JIB, "Close hauled: Full main + jib", 1.0
        if bucket == AngleBucket.CLOSE_REACH:
            return MAIN_JIB, "Close reach: Full main + jib", 1.0
        if bucket == AngleBucket.BEAM_REACH:
            return MAIN_JIB, "Beam reach: Full main + jib", 1.0
        if bucket == AngleBucket.BROAD_REACH:
            if speed_mode:
                return MAIN_ASYMMETRICAL, "Broad reach: Asymmetrical spinnaker", 1.15
            return MAIN_JIB, "Broad reach: Main + jib (comfort mode)", 0.95
        if speed_mode:
            return MAIN_SPINNAKER, "Running: Spinnaker", 1.1
        return MAIN_JIB, "Running: Wing-on-wing main + jib", 0.9

    if band == WindBand.MODERATE:
        if bucket in _FORWARD:
            return MAIN_JIB, "Moderate upwind: Full main + jib", 1.0
        if bucket == AngleBucket.BEAM_REACH:
            return MAIN_JIB, "Moderate reaching: Full main + jib", 1.0
        if speed_mode:
            return MAIN_ASYMMETRICAL, "Moderate downwind: Asymmetrical spinnaker", 1.2
        return MAIN_JIB, "Moderate downwind: Main + jib", 0.95

    if band == WindBand.LIGHT:
        if bucket in _FORWARD:
            return MAIN_JIB, "Light wind upwind: Full main + jib", 1.0
        if speed_mode:
            return CODE_ZERO, "Light wind downwind: Code Zero", 1.25
        return MAIN_JIB, "Light wind downwind: Full main + jib", 1.0

    return CODE_ZERO, "Very light wind: Code Zero only", 1.2


class SailAdvisor:
    """Recommends a sail plan and predicts the resulting boat speed"""

    def __init__(self, polar: Optional[PolarModel] = None):
        self.polar = polar or LAGOON_440_POLAR

    def recommend(self, wind_speed: float, wind_angle: float, mode: SailingMode) -> SailRecommendation:
        """
        Recommend sail configuration based on wind conditions.

        Args:
            wind_speed: True wind speed in knots (0-100)
            wind_angle: True wind angle in degrees (0-360)
            mode: SailingMode.SPEED or SailingMode.COMFORT

        Returns:
            SailRecommendation with the expected speed rounded to 0.1 knot
        """
        wind_speed = validate_wind_speed(wind_speed)
        wind_angle = validate_wind_angle(wind_angle)
        mode = SailingMode(mode)

        configuration, description, multiplier = select_sails(
            classify_wind(wind_speed), classify_angle(wind_angle), mode
        )

        label = configuration.label
        polar_config = label if self.polar.has_config(label) else None
        # Polar tables stop at 180°, larger angles clamp to that edge
        base_speed = self.polar.speed_at(wind_speed, wind_angle, polar_config)

        logger.debug(f"Sails for {wind_speed:.1f}kt @ {wind_angle:.0f}° ({mode.value}): "
                     f"{label} x{multiplier} on {base_speed:.2f}kt")

        return SailRecommendation(
            configuration=configuration,
            expected_speed=round(base_speed * multiplier, 1),
            description=description,
            confidence=HIGH_CONFIDENCE if wind_speed > LIGHT_AIR_THRESHOLD else LOW_CONFIDENCE,
        )
