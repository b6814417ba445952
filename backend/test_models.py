"""
Tests for the data model: routes, configs, severities
"""

import logging

import pytest

from errors import ValidationError
from models import (
    DEFAULT_MONITORING_CONFIG, AlertSeverity, MonitoringConfig, PolarCurve,
    PolarPoint, Route, SailConfiguration, Waypoint,
)

logger = logging.getLogger(__name__)


def make_route():
    return Route.from_points("Coastal hop", [
        ("Start", 43.30, 5.36),
        ("Cape", 43.21, 5.52),
        ("Bay", 43.17, 5.60),
    ])


# ============================================================================
# ROUTE EDITING
# ============================================================================

def test_sequence_indices_follow_order():
    route = make_route()
    assert [wp.sequence_index for wp in route.waypoints] == [0, 1, 2]


def test_add_and_remove_waypoint():
    route = make_route()
    modified = route.last_modified

    added = route.add_waypoint("Harbour", 43.10, 5.70)
    assert added.sequence_index == 3
    assert route.last_modified >= modified

    route.remove_waypoint(route.waypoints[1].id)
    assert [wp.name for wp in route.waypoints] == ["Start", "Bay", "Harbour"]
    assert [wp.sequence_index for wp in route.waypoints] == [0, 1, 2]


def test_move_waypoint():
    route = make_route()
    bay = route.waypoints[2]

    route.move_waypoint(bay.id, 0)
    assert [wp.name for wp in route.waypoints] == ["Bay", "Start", "Cape"]
    assert bay.sequence_index == 0

    # Index past the end is clamped
    route.move_waypoint(bay.id, 10)
    assert route.waypoints[-1] is bay
    assert bay.sequence_index == 2


def test_update_waypoint():
    route = make_route()
    cape = route.waypoints[1]

    route.update_waypoint(cape.id, name="Cap Croisette", lat=43.21)
    assert cape.name == "Cap Croisette"
    assert cape.lng == 5.52

    with pytest.raises(ValidationError):
        route.update_waypoint(cape.id, lat=91)
    assert cape.lat == 43.21


def test_unknown_waypoint():
    with pytest.raises(KeyError):
        make_route().get_waypoint("missing")


def test_waypoint_coordinates_validated():
    with pytest.raises(ValidationError):
        Waypoint(id="wp", name="Nowhere", lat=0, lng=181)


def test_waypoints_sorted_on_construction():
    route = Route(id="r", name="Unsorted", waypoints=[
        Waypoint(id="b", name="B", lat=1, lng=1, sequence_index=5),
        Waypoint(id="a", name="A", lat=0, lng=0, sequence_index=2),
    ])
    assert [wp.id for wp in route.waypoints] == ["a", "b"]
    assert [wp.sequence_index for wp in route.waypoints] == [0, 1]


# ============================================================================
# POLAR DATA
# ============================================================================

def test_polar_curve_validation():
    curve = PolarCurve(tws=10, points=(PolarPoint(90, 8.0, 0.0), PolarPoint(60, 7.0, 3.5)))
    assert [p.twa for p in curve.points] == [60, 90]

    with pytest.raises(ValidationError):
        PolarCurve(tws=10, points=())
    with pytest.raises(ValidationError):
        PolarCurve(tws=10, points=(PolarPoint(60, 7.0, 3.5), PolarPoint(60, 7.1, 3.5)))
    with pytest.raises(ValidationError):
        PolarPoint(60, -1.0, 0.0)


# ============================================================================
# SAILS, ALERTS, MONITORING CONFIG
# ============================================================================

def test_sail_configuration_label():
    assert SailConfiguration(main_sail=True, storm_jib=True).label == "Storm Jib + Reefed Main"
    assert SailConfiguration(code_zero=True).label == "Code Zero"
    assert SailConfiguration(main_sail=True, spinnaker=True).label == "Main + Spinnaker"
    assert SailConfiguration(main_sail=True, jib=True).label == "Main + Jib"


def test_alert_severity_order():
    assert AlertSeverity.LOW < AlertSeverity.MEDIUM < AlertSeverity.HIGH < AlertSeverity.CRITICAL
    assert max([AlertSeverity.HIGH, AlertSeverity.CRITICAL, AlertSeverity.LOW]) == AlertSeverity.CRITICAL


def test_monitoring_config_defaults():
    config = DEFAULT_MONITORING_CONFIG
    assert config.interval_hours == 6
    assert config.forecast_hours == 72
    assert config.max_wind_knots == 25
    assert config.max_wave_height_m == 3
    assert config.avoid_storms and config.require_daylight_arrival
    assert config.notify_push and not config.notify_sms


def test_monitoring_config_updates():
    config = DEFAULT_MONITORING_CONFIG.with_updates(max_wind_knots=30, notify_sms=True)

    assert config.max_wind_knots == 30
    assert config.notify_sms
    assert DEFAULT_MONITORING_CONFIG.max_wind_knots == 25

    with pytest.raises(ValidationError):
        MonitoringConfig(interval_hours=0)
    with pytest.raises(ValidationError):
        DEFAULT_MONITORING_CONFIG.with_updates(max_wave_height_m=-1)
