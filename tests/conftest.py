from __future__ import annotations

import math

import pytest

from venuetrust.config.settings import Settings, get_settings
from venuetrust.core.geo import EARTH_RADIUS_M
from venuetrust.domain.models import GeofenceTarget, LocationSample, MotionSample, VerificationConfig
from venuetrust.verification.session import VerificationSession
from venuetrust.verification.state_machine import TrustStateMachine

# Taipei 101.
VENUE_LAT = 25.0340
VENUE_LON = 121.5645

METERS_PER_DEG_LAT = EARTH_RADIUS_M * math.pi / 180.0


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeTicker:
    def __init__(self, interval: float, callback):
        self.interval = interval
        self.callback = callback
        self.started = 0
        self.cancelled = 0

    def start(self) -> None:
        self.started += 1

    def cancel(self) -> None:
        self.cancelled += 1


class RecordingTickerFactory:
    def __init__(self):
        self.tickers: list[FakeTicker] = []

    def __call__(self, interval: float, callback) -> FakeTicker:
        ticker = FakeTicker(interval, callback)
        self.tickers.append(ticker)
        return ticker


def sample_north(meters: float, t_ms: int, *, accuracy_m: float = 10.0, simulated=False) -> LocationSample:
    """A fix `meters` due north of the venue center."""
    return LocationSample(
        latitude=VENUE_LAT + meters / METERS_PER_DEG_LAT,
        longitude=VENUE_LON,
        horizontal_accuracy_m=accuracy_m,
        timestamp_ms=t_ms,
        simulated=simulated,
    )


def motion(g: float, t_ms: int) -> MotionSample:
    return MotionSample(acceleration_magnitude_g=g, timestamp_ms=t_ms)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def target() -> GeofenceTarget:
    return GeofenceTarget(center_latitude=VENUE_LAT, center_longitude=VENUE_LON, radius_m=500, venue_id="venue-101")


@pytest.fixture
def config() -> VerificationConfig:
    return VerificationConfig()


@pytest.fixture
def machine() -> TrustStateMachine:
    return TrustStateMachine()


@pytest.fixture
def session(target, config) -> VerificationSession:
    return VerificationSession(session_id="s-test", target=target, config=config, started_at=0.0)


@pytest.fixture
def no_prime_settings() -> Settings:
    """Default settings without the blocking initial `read_once` call."""
    settings = get_settings()
    return settings.model_copy(update={"engine": settings.engine.model_copy(update={"prime_with_current_fix": False})})
