"""
Mutable per-session verification state.

Only the session actor mutates a `VerificationSession`; everything else reads
snapshots (`snapshot()`) so callers never observe a half-applied sample.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from venuetrust.core.ring_buffer import RingBuffer
from venuetrust.domain.codes import ReasonCode, SimulatedFlag, TrustState
from venuetrust.domain.models import (
    GeofenceTarget,
    LocationSample,
    SessionStatus,
    SuspiciousActivity,
    VerificationConfig,
)


@dataclass
class VerificationSession:
    session_id: str
    target: GeofenceTarget
    config: VerificationConfig
    started_at: float
    state: TrustState = TrustState.INIT
    sample_history: RingBuffer[LocationSample] = field(init=False)
    dwell_seconds: int = 0
    current_distance_m: float | None = None
    current_accuracy_m: float | None = None
    motion_ever_observed: bool = False
    spoof_ever_detected: bool = False
    ever_inside_verifying: bool = False
    poor_signal_streak: int = 0
    # Gate outcome of the most recent accepted sample; ticks only count dwell while True.
    latest_sample_trusted: bool = False
    accepted_sample_count: int = 0
    dropped_sample_count: int = 0
    simulated_reports: dict[SimulatedFlag, int] = field(default_factory=dict)
    suspicious_activities: list[SuspiciousActivity] = field(default_factory=list)
    timed_out: bool = False
    active: bool = True
    ended_at: float | None = None

    def __post_init__(self) -> None:
        self.sample_history = RingBuffer(self.config.sample_history_capacity)

    @property
    def last_sample(self) -> LocationSample | None:
        return self.sample_history.last()

    def age_seconds(self, now: float) -> float:
        end = self.ended_at if self.ended_at is not None else now
        return max(0.0, end - self.started_at)

    def record_suspicious(self, code: ReasonCode, timestamp_ms: int, **details: object) -> None:
        self.suspicious_activities.append(SuspiciousActivity(code=code, timestamp_ms=timestamp_ms, details=details))

    def mock_location_reported(self) -> bool | None:
        """Aggregate the tri-state simulated flag over every accepted fix."""
        if self.simulated_reports.get(SimulatedFlag.TRUE, 0):
            return True
        if self.simulated_reports.get(SimulatedFlag.UNKNOWN, 0) or not self.simulated_reports:
            return None
        return False

    def within_radius(self) -> bool:
        return self.current_distance_m is not None and self.current_distance_m <= self.target.radius_m

    def accuracy_ok(self) -> bool:
        return self.current_accuracy_m is not None and self.current_accuracy_m <= self.config.max_accuracy_m

    def snapshot(self) -> SessionStatus:
        advisories: list[ReasonCode] = []
        if self.timed_out:
            advisories.append(ReasonCode.TIMEOUT)
        if self.current_accuracy_m is not None and not self.accuracy_ok():
            advisories.append(ReasonCode.POOR_ACCURACY)
        if self.dwell_seconds < self.config.required_dwell_seconds:
            advisories.append(ReasonCode.INCOMPLETE_DWELL)
        return SessionStatus(
            session_id=self.session_id,
            state=self.state,
            distance_m=self.current_distance_m,
            accuracy_m=self.current_accuracy_m,
            dwell_seconds=self.dwell_seconds,
            required_dwell_seconds=self.config.required_dwell_seconds,
            motion_ever_observed=self.motion_ever_observed,
            spoof_ever_detected=self.spoof_ever_detected,
            timed_out=self.timed_out,
            active=self.active,
            sample_count=self.accepted_sample_count,
            advisories=advisories,
        )
