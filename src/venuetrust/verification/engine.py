"""
Verification session controller.

`VerificationEngine` is the public entry point used by the review-submission flow:

    engine = VerificationEngine(location_source, motion_source)
    handle = engine.start(GeofenceTarget(center_latitude=..., center_longitude=..., radius_m=300))
    ...                                   # sources push samples, the ticker advances dwell
    decision = engine.can_submit(handle)  # final gate, re-evaluated at submit time
    meta = engine.submission_metadata(handle)
    engine.stop(handle)

One engine serves one caller and allows one active session at a time. Each session
owns a `SessionActor`, so source callbacks, ticks and direct calls are serialized.
Subscriptions and the ticker are acquired through an `ExitStack` and released exactly
once, on `stop()` or on any failure inside `start()`.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from venuetrust.config.overrides import apply_config_overrides
from venuetrust.config.settings import Settings, get_settings
from venuetrust.core.ticker import TickerFactory, interval_ticker_factory
from venuetrust.domain.codes import ReasonCode, TrustState
from venuetrust.domain.models import (
    GeofenceTarget,
    LocationSample,
    MotionSample,
    SessionStatus,
    SubmissionDecision,
    SubmissionMetadata,
    VerificationConfig,
)
from venuetrust.errors import (
    InvalidSample,
    LocationTimeout,
    PermissionDenied,
    SessionAlreadyActive,
    UnknownSession,
)
from venuetrust.sources import LocationSource, MotionSource
from venuetrust.verification.events import LocationSampleArrived, MotionSampleArrived, SessionActor, Stop, Tick
from venuetrust.verification.session import VerificationSession
from venuetrust.verification.state_machine import TrustStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionHandle:
    """Opaque reference to a session returned by `VerificationEngine.start()`."""

    session_id: str


@dataclass
class _SessionRuntime:
    actor: SessionActor
    resources: ExitStack = field(default_factory=ExitStack)
    stopped: bool = False
    stop_lock: threading.Lock = field(default_factory=threading.Lock)


class VerificationEngine:
    def __init__(
        self,
        location_source: LocationSource | None = None,
        motion_source: MotionSource | None = None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        ticker_factory: TickerFactory | None = interval_ticker_factory,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self._location_source = location_source
        self._motion_source = motion_source
        self._settings = settings or get_settings()
        self._clock = clock
        self._ticker_factory = ticker_factory
        self._id_factory = id_factory
        self._machine = TrustStateMachine()
        self._sessions: dict[str, _SessionRuntime] = {}
        self._active_id: str | None = None
        self._lock = threading.Lock()

    @property
    def settings(self) -> Settings:
        return self._settings

    # -- lifecycle -------------------------------------------------------------

    def start(
        self,
        target: GeofenceTarget,
        config: VerificationConfig | None = None,
        *,
        overrides: Mapping[str, Any] | None = None,
        fix_timeout_seconds: float | None = None,
    ) -> SessionHandle:
        """Start a verification session for `target`.

        Raises:
            InvalidTarget: If the radius is not positive.
            InvalidCoordinate: If the venue center is out of range.
            SessionAlreadyActive: If this engine already runs an active session.
            PermissionDenied: If the location source refuses access (retryable).
            SourceUnavailable: If location services are off (retryable).
        """
        target.validate_target()
        cfg = apply_config_overrides(config or self._settings.verification, overrides)
        engine_cfg = self._settings.engine

        with self._lock:
            if self._active_id is not None:
                raise SessionAlreadyActive(f"Session {self._active_id} is still active; stop it first")
            session_id = self._id_factory()
            session = VerificationSession(session_id=session_id, target=target, config=cfg, started_at=self._clock())
            runtime = _SessionRuntime(actor=SessionActor(session, self._machine))
            self._sessions[session_id] = runtime
            self._active_id = session_id
        handle = SessionHandle(session_id)
        if fix_timeout_seconds is None:
            fix_timeout_seconds = engine_cfg.fix_timeout_seconds

        try:
            with ExitStack() as stack:
                self._acquire(handle, runtime, stack, cfg, fix_timeout_seconds)
                runtime.resources = stack.pop_all()
        except BaseException:
            with self._lock:
                self._sessions.pop(session_id, None)
                if self._active_id == session_id:
                    self._active_id = None
            session.active = False
            raise

        logger.info(
            "Started session %s venue=%s radius=%.0fm dwell=%ss",
            session_id,
            target.venue_id,
            target.radius_m,
            cfg.required_dwell_seconds,
        )
        return handle

    def _acquire(
        self,
        handle: SessionHandle,
        runtime: _SessionRuntime,
        stack: ExitStack,
        cfg: VerificationConfig,
        fix_timeout_seconds: float,
    ) -> None:
        engine_cfg = self._settings.engine
        actor = runtime.actor
        self._machine.begin(actor.session)

        loc = self._location_source
        if loc is not None:
            if not loc.request_permission():
                raise PermissionDenied("Location permission was not granted")
            sub = loc.subscribe(
                lambda s: self._on_source_location(handle, s),
                min_interval_seconds=engine_cfg.location_min_interval_seconds,
                distance_filter_m=engine_cfg.location_distance_filter_m,
            )
            stack.callback(sub.cancel)

        if self._motion_source is not None:
            sub = self._motion_source.subscribe(
                lambda s: self._on_source_motion(handle, s),
                interval_seconds=engine_cfg.motion_interval_seconds,
            )
            stack.callback(sub.cancel)

        if loc is not None and engine_cfg.prime_with_current_fix:
            try:
                fix = loc.read_once(timeout_seconds=fix_timeout_seconds, max_accuracy_m=cfg.max_accuracy_m)
            except LocationTimeout:
                # Not fatal: the subscription may still deliver, and the session reports TIMEOUT if not.
                logger.info("Initial fix timed out after %.1fs session=%s", fix_timeout_seconds, handle.session_id)
            else:
                actor.submit(LocationSampleArrived(fix))

        if self._ticker_factory is not None:
            ticker = self._ticker_factory(engine_cfg.tick_interval_seconds, lambda: self._on_ticker(handle))
            stack.callback(ticker.cancel)
            ticker.start()

    def stop(self, handle: SessionHandle, reason: str = "stopped") -> None:
        """Stop the session and release its subscriptions and ticker. Safe to call repeatedly.

        The stopped session stays readable (status, decision, metadata) until the next
        session is stopped; older stopped sessions are dropped and their handles
        raise `UnknownSession`.
        """
        runtime = self._runtime(handle)
        with runtime.stop_lock:
            if runtime.stopped:
                return
            runtime.stopped = True
        try:
            runtime.actor.submit(Stop(now=self._clock(), reason=reason))
        finally:
            runtime.resources.close()
            with self._lock:
                if self._active_id == handle.session_id:
                    self._active_id = None
                self._sessions = {
                    sid: rt for sid, rt in self._sessions.items() if sid == handle.session_id or not rt.stopped
                }

    def dispose(self, handle: SessionHandle) -> None:
        self.stop(handle, reason="disposed")

    def close(self) -> None:
        """Stop the active session, if any."""
        with self._lock:
            active = self._active_id
        if active is not None:
            self.stop(SessionHandle(active), reason="engine closed")

    def __enter__(self) -> "VerificationEngine":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- inputs ----------------------------------------------------------------

    def feed_location(self, handle: SessionHandle, sample: LocationSample) -> None:
        if not isinstance(sample, LocationSample):
            raise InvalidSample(f"Expected LocationSample, got {type(sample).__name__}")
        self._runtime(handle).actor.submit(LocationSampleArrived(sample))

    def feed_motion(self, handle: SessionHandle, sample: MotionSample) -> None:
        if not isinstance(sample, MotionSample):
            raise InvalidSample(f"Expected MotionSample, got {type(sample).__name__}")
        self._runtime(handle).actor.submit(MotionSampleArrived(sample))

    def tick(self, handle: SessionHandle) -> None:
        self._runtime(handle).actor.submit(Tick(now=self._clock()))

    def _on_source_location(self, handle: SessionHandle, sample: LocationSample) -> None:
        runtime = self._sessions.get(handle.session_id)
        if runtime is not None:
            runtime.actor.submit(LocationSampleArrived(sample))

    def _on_source_motion(self, handle: SessionHandle, sample: MotionSample) -> None:
        runtime = self._sessions.get(handle.session_id)
        if runtime is not None:
            runtime.actor.submit(MotionSampleArrived(sample))

    def _on_ticker(self, handle: SessionHandle) -> None:
        runtime = self._sessions.get(handle.session_id)
        if runtime is not None:
            runtime.actor.submit(Tick(now=self._clock()))

    # -- outputs ---------------------------------------------------------------

    def get_status(self, handle: SessionHandle) -> SessionStatus:
        return self._runtime(handle).actor.read(lambda s: s.snapshot())

    def can_submit(self, handle: SessionHandle) -> SubmissionDecision:
        """Final submission gate, evaluated on live distance/accuracy rather than dwell."""
        return self._runtime(handle).actor.read(_decide)

    def submission_metadata(self, handle: SessionHandle) -> SubmissionMetadata:
        now = self._clock()
        return self._runtime(handle).actor.read(lambda s: _metadata(s, now))

    def _runtime(self, handle: SessionHandle) -> _SessionRuntime:
        runtime = self._sessions.get(handle.session_id)
        if runtime is None:
            raise UnknownSession(f"Unknown session {handle.session_id}")
        return runtime


def _decide(session: VerificationSession) -> SubmissionDecision:
    reasons: list[ReasonCode] = []
    if session.state is TrustState.SPOOF_DETECTED or session.spoof_ever_detected:
        reasons.append(ReasonCode.SPOOF_DETECTED)
    if session.current_distance_m is None:
        reasons.append(ReasonCode.NO_LOCATION_FIX)
    else:
        if not session.within_radius():
            reasons.append(ReasonCode.OUTSIDE_RADIUS)
        if not session.accuracy_ok():
            reasons.append(ReasonCode.POOR_ACCURACY)
    allowed = not reasons
    # Advisory: the caller may still offer "submit anyway".
    if session.dwell_seconds < session.config.required_dwell_seconds:
        reasons.append(ReasonCode.INCOMPLETE_DWELL)
    return SubmissionDecision(allowed=allowed, reasons=reasons)


def _metadata(session: VerificationSession, now: float) -> SubmissionMetadata:
    return SubmissionMetadata(
        session_id=session.session_id,
        venue_id=session.target.venue_id,
        final_state=session.state,
        distance_at_submit_m=session.current_distance_m,
        accuracy_at_submit_m=session.current_accuracy_m,
        dwell_seconds_at_submit=session.dwell_seconds,
        motion_ever_observed=session.motion_ever_observed,
        spoof_ever_detected=session.spoof_ever_detected,
        sample_count=session.accepted_sample_count,
        verification_seconds=round(session.age_seconds(now), 3),
        mock_location_reported=session.mock_location_reported(),
        suspicious_activities=list(session.suspicious_activities),
        generated_at=datetime.now(timezone.utc),
    )
