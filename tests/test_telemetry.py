import random
from datetime import timedelta

import pytest

from evsim.sessions import SessionManager
from evsim.state_machine import ChargerModel
from evsim.storage import MemoryStore
from evsim.telemetry import TelemetryGenerator


@pytest.fixture
def generator():
    model = ChargerModel("wtl-302509990001")
    sessions = SessionManager(model, MemoryStore())
    return TelemetryGenerator(model, sessions, period=1.0, rng=random.Random(3))


def test_status_disconnected_without_clients(generator):
    frame = generator.sample()
    assert frame["type"] == "telemetry"
    assert frame["deviceId"] == "wtl-302509990001"
    assert frame["telemetry"]["status"] == "disconnected"
    assert frame["lastSession"] is None


def test_idle_sample_reports_no_current(generator):
    generator.model.state.clients.add(object())
    telemetry = generator.sample()["telemetry"]
    assert telemetry["status"] == "connected"
    assert 220 <= telemetry["voltageV"] <= 240
    assert telemetry["currentA"] == 0
    assert telemetry["powerKW"] == 0


def test_charging_sample_within_limits(generator):
    generator.model.state.clients.add(object())
    generator.sessions.start_session()
    telemetry = generator.sample()["telemetry"]

    limit = generator.model.settings.limit_a
    assert telemetry["status"] == "charging"
    assert 0.8 * limit <= telemetry["currentA"] <= limit
    expected = round(telemetry["voltageV"] * telemetry["currentA"] * telemetry["phases"] / 1000, 2)
    assert telemetry["powerKW"] == expected


def test_energy_integrated_over_elapsed_time(generator):
    state = generator.model.state
    session = generator.sessions.start_session()
    t1 = session.start_at + timedelta(seconds=1)

    frame = generator.sample(now=t1)
    first = state.session_energy_kwh
    assert first == pytest.approx(state.power_kw / 3600)
    assert frame["lastSession"]["sessionId"] == session.session_id

    # a second timer sampling at the same instant adds nothing
    generator.sample(now=t1)
    assert state.session_energy_kwh == pytest.approx(first)

    # a long gap is capped at one period
    generator.sample(now=t1 + timedelta(seconds=30))
    assert state.session_energy_kwh == pytest.approx(first + state.power_kw / 3600)
    assert state.lifetime_energy_kwh == pytest.approx(state.session_energy_kwh)


def test_energy_monotonic_and_frozen_after_stop(generator):
    state = generator.model.state
    session = generator.sessions.start_session()
    readings = []
    for i in range(1, 5):
        generator.sample(now=session.start_at + timedelta(seconds=i))
        readings.append(state.session_energy_kwh)
    assert readings == sorted(readings)

    generator.sessions.stop_session("done")
    lifetime = state.lifetime_energy_kwh
    generator.sample(now=session.start_at + timedelta(seconds=10))
    assert session.energy_kwh == pytest.approx(readings[-1])
    assert state.lifetime_energy_kwh == lifetime
