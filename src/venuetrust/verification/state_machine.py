"""
Trust state machine.

Combines detector outcomes and elapsed dwell time into a `TrustState`:

    INIT -> ACQUIRING -> INSIDE_VERIFYING -> VERIFIED
                 \\-> POOR_SIGNAL (recoverable)
    any -> OUTSIDE_RADIUS (terminal; not from VERIFIED)
    any -> SPOOF_DETECTED (terminal; wins over every other transition)

Dwell only accrues on ticks, and only while the latest accepted sample passed every
gate. A failing sample pauses the timer; it never resets it. A genuine exit of the
radius or a detected teleport ends the session's progress for good.
"""

from __future__ import annotations

import logging

from venuetrust.domain.codes import ReasonCode, TrustState
from venuetrust.domain.models import LocationSample, MotionSample
from venuetrust.verification.detectors import DetectorResult, motion_presence, run_location_detectors
from venuetrust.verification.ingestion import ingest
from venuetrust.verification.session import VerificationSession

logger = logging.getLogger(__name__)

_ACQUIRING_STATES = frozenset({TrustState.INIT, TrustState.ACQUIRING, TrustState.POOR_SIGNAL})


class TrustStateMachine:
    """Stateless rules applied to a `VerificationSession`."""

    def begin(self, session: VerificationSession) -> None:
        if session.state is TrustState.INIT:
            self._transition(session, TrustState.ACQUIRING, "session started")

    def on_location(self, session: VerificationSession, sample: LocationSample) -> list[DetectorResult]:
        """Ingest `sample`, run detectors, then apply transitions. Returns detector results."""
        if not session.active:
            return []
        ingested = ingest(session, sample)
        if not ingested.accepted:
            return []
        session.timed_out = False

        results = run_location_detectors(session, sample, ingested.previous)
        failed = {r.reason: r for r in results if not r.passed}
        for r in failed.values():
            session.record_suspicious(r.reason, sample.timestamp_ms, **r.details)

        inside = session.within_radius()
        session.latest_sample_trusted = inside and not failed

        if ReasonCode.SPOOF_DETECTED in failed:
            if not session.spoof_ever_detected:
                logger.warning(
                    "Teleport detected session=%s details=%s", session.session_id, failed[ReasonCode.SPOOF_DETECTED].details
                )
            session.spoof_ever_detected = True
            if session.state is not TrustState.SPOOF_DETECTED:
                self._transition(session, TrustState.SPOOF_DETECTED, "implausible position jump")
            return results

        state = session.state
        if state is TrustState.SPOOF_DETECTED:
            return results

        if not inside:
            if state not in (TrustState.VERIFIED, TrustState.OUTSIDE_RADIUS):
                self._transition(
                    session,
                    TrustState.OUTSIDE_RADIUS,
                    f"distance {session.current_distance_m:.0f}m > radius {session.target.radius_m:.0f}m",
                )
            return results

        if state in _ACQUIRING_STATES:
            self._advance_acquiring(session, failed)
        return results

    def on_motion(self, session: VerificationSession, sample: MotionSample) -> DetectorResult | None:
        if not session.active or session.motion_ever_observed:
            return None
        result = motion_presence(session, sample)
        if result.passed:
            session.motion_ever_observed = True
            logger.debug("Motion observed session=%s %s", session.session_id, result.details)
        return result

    def on_tick(self, session: VerificationSession, now: float) -> None:
        if not session.active:
            return
        age = session.age_seconds(now)

        if (
            session.state in _ACQUIRING_STATES
            and session.accepted_sample_count == 0
            and not session.timed_out
            and age >= session.config.first_fix_timeout_seconds
        ):
            session.timed_out = True
            logger.info("No location fix within %.0fs session=%s", age, session.session_id)

        if session.state is not TrustState.INSIDE_VERIFYING:
            return
        if not (session.latest_sample_trusted and session.within_radius() and session.accuracy_ok()):
            return
        # Dwell can never run ahead of the session's wall-clock age.
        if session.dwell_seconds + 1 > age:
            return
        session.dwell_seconds += 1
        self._check_dwell_complete(session)

    def _advance_acquiring(self, session: VerificationSession, failed: dict[ReasonCode, DetectorResult]) -> None:
        if not failed:
            session.poor_signal_streak = 0
            session.ever_inside_verifying = True
            self._transition(session, TrustState.INSIDE_VERIFYING, "inside radius with a trusted fix")
            self._check_dwell_complete(session)
            return

        if ReasonCode.POOR_ACCURACY not in failed:
            session.poor_signal_streak = 0
            return

        session.poor_signal_streak += 1
        if (
            session.state is not TrustState.POOR_SIGNAL
            and not session.ever_inside_verifying
            and session.poor_signal_streak > session.config.poor_signal_sample_limit
        ):
            self._transition(
                session,
                TrustState.POOR_SIGNAL,
                f"{session.poor_signal_streak} consecutive fixes above {session.config.max_accuracy_m:.0f}m accuracy",
            )

    def _check_dwell_complete(self, session: VerificationSession) -> None:
        if session.dwell_seconds >= session.config.required_dwell_seconds:
            self._transition(session, TrustState.VERIFIED, f"dwell {session.dwell_seconds}s reached")

    def _transition(self, session: VerificationSession, new_state: TrustState, why: str) -> None:
        old = session.state
        if old is new_state:
            return
        session.state = new_state
        logger.info("Session %s: %s -> %s (%s)", session.session_id, old.value, new_state.value, why)
