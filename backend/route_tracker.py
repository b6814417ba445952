"""
Route Tracker - Follows the boat along a route

States:
- INACTIVE: no route (or a route without waypoints)
- TRACKING: heading for the first waypoint not yet reached
- COMPLETE: every waypoint reached

Each position update goes into a bounded history (newest 100 samples) used
for average speed and distance travelled.

The route is tracked by reference: edits made to it after set_route (adding,
removing or moving waypoints) are followed, and the tracker always sails to
the first waypoint not yet reached.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Deque, List, Optional

from geo_math import distance_nm
from models import PositionSample, Route, Waypoint
from validation import validate_latitude, validate_longitude

# Set up logging
logger = logging.getLogger(__name__)


# About 185 meters. Fixed: tests and recorded tracks depend on this value.
WAYPOINT_ARRIVAL_THRESHOLD_NM = 0.1
MAX_HISTORY_LENGTH = 100


class TrackerState(Enum):
    INACTIVE = "inactive"
    TRACKING = "tracking"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ArrivalEvent:
    """Result of a position update"""
    arrived: bool
    waypoint: Optional[Waypoint] = None
    distance_to_waypoint: Optional[float] = None  # nm, None when not tracking


class RouteTracker:
    """Tracks progress along one route at a time"""

    def __init__(self):
        self._route: Optional[Route] = None
        self._pointer = 0
        self._history: Deque[PositionSample] = deque(maxlen=MAX_HISTORY_LENGTH)
        self._state = TrackerState.INACTIVE

    @property
    def route(self) -> Optional[Route]:
        return self._route

    @property
    def state(self) -> TrackerState:
        self._follow_route_edits()
        return self._state

    @property
    def current_waypoint_index(self) -> int:
        self._follow_route_edits()
        return self._pointer

    @property
    def history(self) -> List[PositionSample]:
        return list(self._history)

    @property
    def next_waypoint(self) -> Optional[Waypoint]:
        self._follow_route_edits()
        if self._state != TrackerState.TRACKING:
            return None
        return self._route.waypoints[self._pointer]

    @property
    def previous_waypoint(self) -> Optional[Waypoint]:
        """Last waypoint reached, None before the first arrival"""
        self._follow_route_edits()
        if self._route is None or self._pointer == 0:
            return None
        return self._route.waypoints[self._pointer - 1]

    def _follow_route_edits(self):
        """
        Re-point at the first waypoint not yet reached.

        The tracked route is the caller's object, so waypoints may have been
        added, removed or reordered since the last update.
        """
        if self._route is None:
            return

        waypoints = self._route.waypoints
        pointer = next((i for i, wp in enumerate(waypoints) if not wp.arrived), len(waypoints))
        if not waypoints:
            state = TrackerState.INACTIVE
        elif pointer >= len(waypoints):
            state = TrackerState.COMPLETE
        else:
            state = TrackerState.TRACKING

        if state != self._state:
            logger.info(f"Route '{self._route.name}' edited: {self._state.value} -> {state.value}")
        self._pointer = pointer
        self._state = state

    def remaining_waypoints(self) -> List[Waypoint]:
        if self._route is None:
            return []
        return [wp for wp in self._route.waypoints if not wp.arrived]

    def set_route(self, route: Route):
        """Start tracking a route from its first waypoint"""
        self._route = route
        self._pointer = 0
        self._history.clear()

        for wp in route.waypoints:
            wp.arrived = False
            wp.arrival_time = None

        self._state = TrackerState.TRACKING if route.waypoints else TrackerState.INACTIVE
        logger.info(f"Tracking route '{route.name}' ({len(route.waypoints)} waypoints)")

    def update(self, sample: PositionSample) -> ArrivalEvent:
        """
        Record a position and check arrival at the waypoint being sailed to.

        At most one waypoint is marked arrived per update.
        """
        validate_latitude(sample.position.lat)
        validate_longitude(sample.position.lng)
        self._history.append(sample)

        self._follow_route_edits()
        if self._state != TrackerState.TRACKING:
            return ArrivalEvent(arrived=False)

        waypoint = self._route.waypoints[self._pointer]
        distance = distance_nm(sample.position, waypoint.position)
        if distance > WAYPOINT_ARRIVAL_THRESHOLD_NM:
            return ArrivalEvent(arrived=False, distance_to_waypoint=distance)

        waypoint.arrived = True
        waypoint.arrival_time = sample.timestamp
        self._pointer += 1
        logger.info(f"Arrived at waypoint '{waypoint.name}' ({distance:.3f} nm)")

        if self._pointer >= len(self._route.waypoints):
            self._state = TrackerState.COMPLETE
            logger.info(f"Route '{self._route.name}' complete")

        return ArrivalEvent(arrived=True, waypoint=waypoint, distance_to_waypoint=distance)

    def average_speed(self, window_minutes: float = 10, now: Optional[datetime] = None) -> float:
        """Mean boat speed over samples in the last window_minutes that carry a speed"""
        if not self._history:
            return 0.0

        now = now or datetime.now(self._history[-1].timestamp.tzinfo)
        cutoff = now - timedelta(minutes=window_minutes)
        speeds = [s.boat_speed for s in self._history if s.timestamp >= cutoff and s.boat_speed]

        if not speeds:
            return 0.0
        return sum(speeds) / len(speeds)

    def distance_traveled(self) -> float:
        """Sum of the legs between consecutive history samples, in nm"""
        samples = list(self._history)
        return sum(distance_nm(a.position, b.position) for a, b in zip(samples, samples[1:]))

    def is_complete(self) -> bool:
        return self.state == TrackerState.COMPLETE

    def reset(self):
        """Forget the route and all history"""
        self._route = None
        self._pointer = 0
        self._history.clear()
        self._state = TrackerState.INACTIVE
