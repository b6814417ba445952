"""
Tests for the engine query surface wiring
"""

import asyncio
import logging
from datetime import datetime

import pytest

from engine import SailingEngine
from errors import NoActiveRoute
from models import Coordinates, MonitoringConfig, PositionSample, Route
from test_weather_monitor import FakeDispatcher, FakeProvider, forecast

logger = logging.getLogger(__name__)


def make_engine(provider, dispatcher):
    return SailingEngine(provider=provider, dispatcher=dispatcher,
                         config=MonitoringConfig(require_daylight_arrival=False))


def test_start_monitoring_from_last_position():
    provider = FakeProvider(forecasts=[forecast(wind=45)])
    dispatcher = FakeDispatcher()
    engine = make_engine(provider, dispatcher)
    engine.set_route(Route.from_points("Strait", [("Tarifa", 36.0, -5.6)]))
    engine.update_position(PositionSample(position=Coordinates(36.1, -5.35), timestamp=datetime.now()))

    async def scenario():
        engine.start_monitoring()
        await asyncio.sleep(0.05)
        engine.stop_monitoring()

    asyncio.run(scenario())

    assert provider.calls[0][0] == Coordinates(36.1, -5.35)
    # high wind + storm at the position and at the waypoint
    assert len(engine.alerts()) == 4
    assert len(dispatcher.sent) == 4
    assert not engine.monitor.is_running


def test_start_monitoring_without_samples_uses_first_waypoint():
    provider = FakeProvider()
    engine = make_engine(provider, FakeDispatcher())
    engine.set_route(Route.from_points("Strait", [("Tarifa", 36.0, -5.6), ("Ceuta", 35.9, -5.3)]))

    async def scenario():
        engine.start_monitoring()
        await asyncio.sleep(0.05)
        engine.stop_monitoring()

    asyncio.run(scenario())

    assert provider.calls[0][0] == Coordinates(36.0, -5.6)


def test_optimal_angles_and_recommend():
    engine = make_engine(FakeProvider(), FakeDispatcher())

    assert engine.optimal_angles(12).upwind.angle == 52
    assert engine.recommend(12, 90).expected_speed == 8.3
    assert not engine.is_route_complete()


def test_check_weather_needs_route():
    engine = make_engine(FakeProvider(), FakeDispatcher())

    with pytest.raises(NoActiveRoute):
        asyncio.run(engine.check_weather())
