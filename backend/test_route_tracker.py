"""
Tests for route tracking

Tests cover:
- Arrival threshold (0.1 nm)
- Pointer advance, one waypoint per update
- Route completion
- Position history, average speed and distance travelled
"""

import logging
import math
from datetime import datetime, timedelta

import pytest

from errors import ValidationError
from geo_math import EARTH_RADIUS_NM
from models import Coordinates, PositionSample, Route
from route_tracker import MAX_HISTORY_LENGTH, RouteTracker, TrackerState

logger = logging.getLogger(__name__)

T0 = datetime(2024, 6, 1, 12, 0)


def north_of(position, nm):
    """Point nm nautical miles due north of position"""
    return Coordinates(lat=position.lat + math.degrees(nm / EARTH_RADIUS_NM), lng=position.lng)


def sample(position, minutes=0, boat_speed=None):
    return PositionSample(position=position, timestamp=T0 + timedelta(minutes=minutes), boat_speed=boat_speed)


def make_route():
    return Route.from_points("Test passage", [
        ("Marina", 36.0, -5.0),
        ("Headland", 36.0, -4.5),
        ("Anchorage", 36.2, -4.2),
    ])


# ============================================================================
# ARRIVAL
# ============================================================================

def test_arrival_within_threshold():
    tracker = RouteTracker()
    route = make_route()
    tracker.set_route(route)

    first = route.waypoints[0]
    event = tracker.update(sample(north_of(first.position, 0.0999999)))

    assert event.arrived
    assert event.waypoint is first
    assert first.arrived
    assert first.arrival_time == T0
    assert tracker.current_waypoint_index == 1
    assert tracker.next_waypoint is route.waypoints[1]


def test_no_arrival_just_outside_threshold():
    tracker = RouteTracker()
    route = make_route()
    tracker.set_route(route)

    event = tracker.update(sample(north_of(route.waypoints[0].position, 0.1000001)))

    logger.info(f"Distance to waypoint: {event.distance_to_waypoint}")
    assert not event.arrived
    assert event.distance_to_waypoint > 0.1
    assert tracker.current_waypoint_index == 0


def test_one_waypoint_per_update():
    """Two waypoints at the same spot need two updates"""
    route = Route.from_points("Loop", [("A", 10.0, 10.0), ("B", 10.0, 10.0)])
    tracker = RouteTracker()
    tracker.set_route(route)
    here = Coordinates(10.0, 10.0)

    assert tracker.update(sample(here)).waypoint.name == "A"
    assert not route.waypoints[1].arrived
    assert tracker.update(sample(here, 1)).waypoint.name == "B"
    assert tracker.is_complete()


def test_route_completion():
    tracker = RouteTracker()
    route = make_route()
    tracker.set_route(route)

    for minutes, wp in enumerate(route.waypoints):
        assert not tracker.is_complete()
        tracker.update(sample(wp.position, minutes * 30))

    assert tracker.is_complete()
    assert tracker.state == TrackerState.COMPLETE
    assert tracker.next_waypoint is None
    assert tracker.remaining_waypoints() == []

    # Further updates are recorded but never arrive
    event = tracker.update(sample(route.waypoints[0].position, 200))
    assert not event.arrived


def test_set_route_resets_progress():
    tracker = RouteTracker()
    route = make_route()
    tracker.set_route(route)
    tracker.update(sample(route.waypoints[0].position))

    tracker.set_route(route)

    assert tracker.current_waypoint_index == 0
    assert not any(wp.arrived for wp in route.waypoints)
    assert tracker.history == []


def test_empty_route_is_inactive():
    tracker = RouteTracker()
    tracker.set_route(Route(id="r", name="Empty"))

    assert tracker.state == TrackerState.INACTIVE
    assert tracker.next_waypoint is None
    assert not tracker.update(sample(Coordinates(0, 0))).arrived


# ============================================================================
# ROUTE EDITS WHILE TRACKING
# ============================================================================

def test_removing_next_waypoint_completes_route():
    tracker = RouteTracker()
    route = Route.from_points("Short hop", [("A", 36.0, -5.0), ("B", 36.0, -4.5)])
    tracker.set_route(route)
    tracker.update(sample(route.waypoints[0].position))

    route.remove_waypoint(route.waypoints[1].id)
    event = tracker.update(sample(Coordinates(36.0, -4.9), 10))

    assert not event.arrived
    assert tracker.is_complete()
    assert tracker.next_waypoint is None
    assert tracker.previous_waypoint.name == "A"


def test_removing_every_waypoint_makes_tracker_inactive():
    tracker = RouteTracker()
    route = make_route()
    tracker.set_route(route)

    for wp in list(route.waypoints):
        route.remove_waypoint(wp.id)

    assert not tracker.update(sample(Coordinates(36.0, -5.0))).arrived
    assert tracker.state == TrackerState.INACTIVE
    assert tracker.next_waypoint is None
    assert tracker.previous_waypoint is None


def test_reordered_route_sails_to_first_unreached_waypoint():
    tracker = RouteTracker()
    route = make_route()
    tracker.set_route(route)
    marina, headland, anchorage = route.waypoints
    tracker.update(sample(marina.position))

    route.move_waypoint(anchorage.id, 0)

    # Anchorage now leads and has not been reached
    assert tracker.current_waypoint_index == 0
    assert tracker.next_waypoint is anchorage
    event = tracker.update(sample(anchorage.position, 30))
    assert event.arrived and event.waypoint is anchorage
    assert tracker.next_waypoint is headland


def test_waypoint_added_after_completion_resumes_tracking():
    tracker = RouteTracker()
    route = Route.from_points("Hop", [("A", 36.0, -5.0)])
    tracker.set_route(route)
    tracker.update(sample(route.waypoints[0].position))
    assert tracker.is_complete()

    extra = route.add_waypoint("B", 36.0, -4.5)

    assert tracker.state == TrackerState.TRACKING
    assert tracker.next_waypoint is extra


def test_invalid_position_rejected():
    tracker = RouteTracker()
    tracker.set_route(make_route())
    with pytest.raises(ValidationError):
        tracker.update(sample(Coordinates(95, 0)))
    assert tracker.history == []


# ============================================================================
# HISTORY
# ============================================================================

def test_history_is_bounded():
    tracker = RouteTracker()
    for i in range(MAX_HISTORY_LENGTH + 20):
        tracker.update(sample(Coordinates(0, i * 0.001), i))

    history = tracker.history
    assert len(history) == MAX_HISTORY_LENGTH
    assert history[0].timestamp == T0 + timedelta(minutes=20)


def test_average_speed_window():
    tracker = RouteTracker()
    tracker.update(sample(Coordinates(0, 0), 0, boat_speed=2.0))
    tracker.update(sample(Coordinates(0, 0.01), 15, boat_speed=6.0))
    tracker.update(sample(Coordinates(0, 0.02), 20, boat_speed=8.0))
    tracker.update(sample(Coordinates(0, 0.03), 25))

    now = T0 + timedelta(minutes=25)
    assert tracker.average_speed(10, now=now) == pytest.approx(7.0)
    assert tracker.average_speed(60, now=now) == pytest.approx(16.0 / 3)
    assert RouteTracker().average_speed() == 0.0


def test_distance_traveled():
    tracker = RouteTracker()
    start = Coordinates(0, 0)
    tracker.update(sample(start))
    tracker.update(sample(north_of(start, 1), 10))
    tracker.update(sample(north_of(start, 3), 20))

    assert tracker.distance_traveled() == pytest.approx(3.0)


def test_reset():
    tracker = RouteTracker()
    tracker.set_route(make_route())
    tracker.update(sample(Coordinates(36.0, -5.0)))

    tracker.reset()

    assert tracker.route is None
    assert tracker.state == TrackerState.INACTIVE
    assert tracker.history == []
    assert not tracker.is_complete()
