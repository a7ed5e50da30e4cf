from __future__ import annotations

import threading

import pytest
from conftest import RecordingTickerFactory, motion, sample_north

from venuetrust.domain.codes import ReasonCode, TrustState
from venuetrust.domain.models import GeofenceTarget
from venuetrust.errors import (
    InvalidSample,
    InvalidTarget,
    LocationTimeout,
    PermissionDenied,
    SessionAlreadyActive,
    SourceUnavailable,
    UnknownSession,
)
from venuetrust.sources import PushSource
from venuetrust.verification.engine import SessionHandle, VerificationEngine


@pytest.fixture
def engine(clock, no_prime_settings):
    return VerificationEngine(settings=no_prime_settings, clock=clock, ticker_factory=None)


def _run_seconds(engine, handle, clock, samples: dict[int, object], until: int) -> None:
    """Advance the fake clock second by second, feeding samples due at each second before ticking."""
    for t in range(0, until + 1):
        clock.now = float(t)
        if t in samples:
            engine.feed_location(handle, samples[t])
        if t > 0:
            engine.tick(handle)


def test_steady_fixes_for_thirty_seconds_verify_and_allow_submission(engine, clock, target):
    handle = engine.start(target)
    samples = {t: sample_north(0, t * 1_000, accuracy_m=10) for t in range(0, 31, 3)}

    _run_seconds(engine, handle, clock, samples, until=30)

    status = engine.get_status(handle)
    assert status.state is TrustState.VERIFIED
    assert status.dwell_seconds == 30
    assert status.sample_count == 11
    decision = engine.can_submit(handle)
    assert decision.allowed
    assert decision.reasons == []


def test_sixth_fix_jumping_a_kilometre_is_spoof(engine, clock, target):
    handle = engine.start(target)
    samples = {t: sample_north(0, t * 1_000) for t in (0, 3, 6, 9, 12)}
    samples[14] = sample_north(1000, 14_000)

    _run_seconds(engine, handle, clock, samples, until=20)

    status = engine.get_status(handle)
    assert status.state is TrustState.SPOOF_DETECTED
    assert status.spoof_ever_detected
    decision = engine.can_submit(handle)
    assert not decision.allowed
    assert ReasonCode.SPOOF_DETECTED in decision.reasons


def test_can_submit_blocks_outside_radius_even_after_full_dwell(engine, clock, target):
    handle = engine.start(target)
    _run_seconds(engine, handle, clock, {0: sample_north(0, 0)}, until=30)
    assert engine.get_status(handle).state is TrustState.VERIFIED

    clock.now = 45.0
    engine.feed_location(handle, sample_north(800, 45_000))

    decision = engine.can_submit(handle)
    assert not decision.allowed
    assert ReasonCode.OUTSIDE_RADIUS in decision.reasons


def test_can_submit_without_any_fix(engine, target):
    handle = engine.start(target)
    decision = engine.can_submit(handle)
    assert not decision.allowed
    assert decision.reasons[0] is ReasonCode.NO_LOCATION_FIX


def test_incomplete_dwell_is_advisory_only(engine, clock, target):
    handle = engine.start(target)
    _run_seconds(engine, handle, clock, {0: sample_north(0, 0)}, until=5)

    decision = engine.can_submit(handle)
    assert decision.allowed
    assert decision.reasons == [ReasonCode.INCOMPLETE_DWELL]


def test_poor_accuracy_blocks_submission(engine, clock, target):
    handle = engine.start(target)
    engine.feed_location(handle, sample_north(0, 0, accuracy_m=75))

    decision = engine.can_submit(handle)
    assert not decision.allowed
    assert ReasonCode.POOR_ACCURACY in decision.reasons


def test_submission_metadata_and_review_payload(engine, clock, target):
    handle = engine.start(target)
    engine.feed_motion(handle, motion(1.3, 100))
    _run_seconds(engine, handle, clock, {0: sample_north(0, 0, simulated=False)}, until=12)

    meta = engine.submission_metadata(handle)
    assert meta.venue_id == "venue-101"
    assert meta.final_state is TrustState.INSIDE_VERIFYING
    assert meta.dwell_seconds_at_submit == 12
    assert meta.motion_ever_observed
    assert meta.mock_location_reported is False

    payload = meta.to_review_payload()
    assert payload["verificationTime"] == 12
    assert payload["motionDetected"] is True
    assert payload["locationHistoryCount"] == 1
    assert payload["locationAccuracy"] == 10.0
    assert payload["isMockLocation"] is False
    assert payload["suspiciousActivities"] == []


def test_review_payload_omits_mock_flag_when_unknown(engine, target):
    handle = engine.start(target)
    engine.feed_location(handle, sample_north(0, 0, simulated=None))

    payload = engine.submission_metadata(handle).to_review_payload()
    assert "isMockLocation" not in payload


def test_invalid_target_is_rejected(engine, target):
    with pytest.raises(InvalidTarget):
        engine.start(target.model_copy(update={"radius_m": 0}))
    # Nothing was registered, so a valid start still works.
    engine.start(target)


def test_second_start_while_active_is_rejected(engine, target):
    first = engine.start(target)
    with pytest.raises(SessionAlreadyActive):
        engine.start(target)

    engine.stop(first)
    second = engine.start(target)
    assert second != first


def test_stopped_sessions_do_not_accumulate(engine, target):
    handles = []
    for _ in range(500):
        handle = engine.start(target)
        engine.stop(handle)
        handles.append(handle)

    assert len(engine._sessions) == 1
    # The most recent stopped session stays readable for metadata after submit.
    assert not engine.get_status(handles[-1]).active
    with pytest.raises(UnknownSession):
        engine.get_status(handles[0])


def test_feed_rejects_wrong_sample_type(engine, target):
    handle = engine.start(target)
    with pytest.raises(InvalidSample):
        engine.feed_location(handle, motion(1.2, 0))


def test_unknown_handle(engine):
    with pytest.raises(UnknownSession):
        engine.get_status(SessionHandle("nope"))


def test_overrides_apply_per_session(engine, clock, target):
    handle = engine.start(target, overrides={"required_dwell_seconds": 5})
    _run_seconds(engine, handle, clock, {0: sample_north(0, 0)}, until=5)
    assert engine.get_status(handle).state is TrustState.VERIFIED


def test_dispose_releases_subscriptions_and_ticker(clock, no_prime_settings, target):
    source = PushSource()
    tickers = RecordingTickerFactory()
    engine = VerificationEngine(
        source, source.motion(), settings=no_prime_settings, clock=clock, ticker_factory=tickers
    )

    handle = engine.start(target)
    assert source.subscriber_count == 2
    assert tickers.tickers[0].started == 1

    source.push_location(sample_north(0, 0))
    clock.now = 1.0
    tickers.tickers[0].callback()
    before = engine.get_status(handle)
    assert before.dwell_seconds == 1

    engine.dispose(handle)
    engine.dispose(handle)

    assert source.subscriber_count == 0
    assert tickers.tickers[0].cancelled == 1

    clock.now = 10.0
    source.push_location(sample_north(0, 2_000))
    tickers.tickers[0].callback()
    engine.feed_location(handle, sample_north(0, 3_000))
    engine.tick(handle)

    after = engine.get_status(handle)
    assert not after.active
    assert after.dwell_seconds == before.dwell_seconds
    assert after.sample_count == before.sample_count


def test_permission_denied_leaves_engine_reusable(clock, no_prime_settings, target):
    source = PushSource(permission_granted=False)
    engine = VerificationEngine(source, settings=no_prime_settings, clock=clock, ticker_factory=None)

    with pytest.raises(PermissionDenied) as exc_info:
        engine.start(target)
    assert exc_info.value.retryable
    assert source.subscriber_count == 0

    source.permission_granted = True
    engine.start(target)
    assert source.subscriber_count == 1


def test_unavailable_source_releases_subscriptions_acquired_so_far(clock, target):
    source = PushSource(available=False)
    tickers = RecordingTickerFactory()
    engine = VerificationEngine(source, source.motion(), clock=clock, ticker_factory=tickers)

    with pytest.raises(SourceUnavailable):
        engine.start(target)

    assert source.subscriber_count == 0
    assert tickers.tickers == []


def test_initial_fix_primes_the_session(clock, target):
    source = PushSource()
    engine = VerificationEngine(source, clock=clock, ticker_factory=None)
    pusher = threading.Timer(0.05, source.push_location, args=(sample_north(20, 0),))
    pusher.start()

    handle = engine.start(target, fix_timeout_seconds=5.0)
    pusher.join()

    status = engine.get_status(handle)
    assert status.state is TrustState.INSIDE_VERIFYING
    assert status.distance_m == pytest.approx(20, abs=0.5)
    assert status.sample_count == 1


def test_restart_after_moving_ignores_the_previous_sessions_fix(clock, target):
    source = PushSource()
    engine = VerificationEngine(source, clock=clock, ticker_factory=None)

    first = engine.start(target, fix_timeout_seconds=0.01)
    source.push_location(sample_north(2000, 0))
    assert engine.get_status(first).state is TrustState.OUTSIDE_RADIUS
    engine.stop(first)

    clock.now = 3600.0
    second = engine.start(target, fix_timeout_seconds=0.05)
    assert engine.get_status(second).sample_count == 0

    source.push_location(sample_north(0, 3_600_000))

    status = engine.get_status(second)
    assert status.state is TrustState.INSIDE_VERIFYING
    assert status.sample_count == 1


class _RecordingLocationSource:
    def __init__(self):
        self.read_timeouts: list[float] = []

    def request_permission(self) -> bool:
        return True

    def read_once(self, *, timeout_seconds: float, max_accuracy_m: float):
        self.read_timeouts.append(timeout_seconds)
        raise LocationTimeout("no fix")

    def subscribe(self, callback, *, min_interval_seconds: float, distance_filter_m: float):
        return PushSource().subscribe(callback)


def test_explicit_zero_fix_timeout_is_passed_through(clock, target):
    source = _RecordingLocationSource()
    engine = VerificationEngine(source, clock=clock, ticker_factory=None)

    handle = engine.start(target, fix_timeout_seconds=0)
    engine.stop(handle)
    engine.start(target)

    assert source.read_timeouts == [0, engine.settings.engine.fix_timeout_seconds]


def test_initial_fix_timeout_is_not_fatal(clock, target):
    source = PushSource()
    engine = VerificationEngine(source, clock=clock, ticker_factory=None)

    handle = engine.start(target, fix_timeout_seconds=0.01)

    assert engine.get_status(handle).state is TrustState.ACQUIRING
    assert source.subscriber_count == 1


def test_engine_context_manager_stops_active_session(clock, no_prime_settings, target):
    source = PushSource()
    with VerificationEngine(source, settings=no_prime_settings, clock=clock, ticker_factory=None) as engine:
        handle = engine.start(target)
    assert source.subscriber_count == 0
    assert not engine.get_status(handle).active


def test_concurrent_feeds_are_serialized(engine, clock, target):
    handle = engine.start(target)
    per_thread = 50

    def feeder(offset: int) -> None:
        for i in range(per_thread):
            engine.feed_location(handle, sample_north(0, (i * 4 + offset) * 1_000))
            engine.tick(handle)

    threads = [threading.Thread(target=feeder, args=(k,)) for k in range(4)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    status = engine.get_status(handle)
    session = engine._runtime(handle).actor.session
    assert session.accepted_sample_count + session.dropped_sample_count == 4 * per_thread
    assert len(session.sample_history) <= session.config.sample_history_capacity
    timestamps = [s.timestamp_ms for s in session.sample_history]
    assert timestamps == sorted(timestamps)
    assert status.dwell_seconds == 0
