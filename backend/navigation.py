"""
Navigation guidance towards the next waypoint of the tracked route
"""

import logging
from typing import Optional

from errors import NoActiveRoute
from geo_math import bearing_deg, course_with_current, distance_nm, eta_minutes, true_wind_angle
from models import (
    ForecastPoint, NavigationRecommendation, PositionSample,
    SailingMode, TideData, Waypoint,
)
from route_tracker import RouteTracker
from sail_advisor import SailAdvisor
from validation import validate_heading, validate_tide_speed

# Set up logging
logger = logging.getLogger(__name__)


class NavigationService:
    """Combines route progress, forecast wind and tide into a recommendation"""

    def __init__(self, tracker: RouteTracker, advisor: SailAdvisor):
        self.tracker = tracker
        self.advisor = advisor

    def guidance(
        self,
        sample: PositionSample,
        forecast: ForecastPoint,
        mode: SailingMode,
        tide: Optional[TideData] = None
    ) -> NavigationRecommendation:
        """
        Get navigation recommendation for the next waypoint.

        Args:
            sample: Current sensor sample (position is what matters)
            forecast: Wind forecast used for the sail recommendation
            mode: Speed or comfort
            tide: Optional current; when given the heading and speed are
                  corrected for it

        Raises:
            NoActiveRoute: no route is set, or the route is complete
        """
        if self.tracker.route is None:
            raise NoActiveRoute("No route is being tracked")
        next_waypoint = self.tracker.next_waypoint
        if next_waypoint is None:
            raise NoActiveRoute(f"Route '{self.tracker.route.name}' has no waypoint left")

        current_waypoint = self.tracker.previous_waypoint or Waypoint(
            id="start",
            name="Current Position",
            lat=sample.position.lat,
            lng=sample.position.lng,
            sequence_index=-1,
        )

        distance = distance_nm(sample.position, next_waypoint.position)
        bearing = bearing_deg(sample.position, next_waypoint.position)
        wind_angle = true_wind_angle(bearing, forecast.wind_direction)

        recommendation = self.advisor.recommend(forecast.wind_speed, wind_angle, mode)

        heading = bearing
        speed = recommendation.expected_speed
        if tide is not None:
            validate_tide_speed(tide.speed)
            validate_heading(tide.direction)
            adjusted = course_with_current(bearing, speed, tide.speed, tide.direction)
            heading = adjusted.ground_course_deg
            speed = adjusted.speed_over_ground_knots

        eta = eta_minutes(distance, speed)
        logger.debug(f"To '{next_waypoint.name}': {distance:.1f}nm @ {bearing:.0f}°, "
                     f"steer {heading:.0f}°, ETA {eta:.0f} min")

        return NavigationRecommendation(
            current_waypoint=current_waypoint,
            next_waypoint=next_waypoint,
            distance=distance,
            bearing=bearing,
            true_wind_angle=wind_angle,
            sail_recommendation=recommendation,
            recommended_heading=heading,
            speed_over_ground=speed,
            eta_minutes=eta,
            forecast=forecast,
        )
