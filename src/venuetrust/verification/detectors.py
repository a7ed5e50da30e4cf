"""
Anomaly detectors.

Each detector is a pure function of the session (read-only) and the new sample and
returns a `DetectorResult`. Side effects (latching the spoof flag, recording the
audit trail, moving the state machine) belong to the state machine, so detectors
can be unit-tested in isolation.

Location detectors run in a fixed order: accuracy, spoofed source, teleport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from venuetrust.core.geo import distance_m
from venuetrust.domain.codes import ReasonCode, SimulatedFlag
from venuetrust.domain.models import LocationSample, MotionSample
from venuetrust.verification.session import VerificationSession


@dataclass(frozen=True)
class DetectorResult:
    """Outcome of one detector plus details for the audit trail."""

    name: str
    passed: bool
    reason: ReasonCode = ReasonCode.OK
    details: dict[str, Any] = field(default_factory=dict)


def accuracy_gate(
    session: VerificationSession, sample: LocationSample, previous: LocationSample | None = None
) -> DetectorResult:
    limit = session.config.max_accuracy_m
    acc = float(sample.horizontal_accuracy_m)
    if acc > limit:
        return DetectorResult(
            "accuracy", False, ReasonCode.POOR_ACCURACY, {"accuracy_m": acc, "max_accuracy_m": limit}
        )
    return DetectorResult("accuracy", True)


def spoofed_source_gate(
    session: VerificationSession, sample: LocationSample, previous: LocationSample | None = None
) -> DetectorResult:
    # Only an explicit TRUE fails; UNKNOWN passes without being treated as verified-safe.
    if sample.simulated is SimulatedFlag.TRUE:
        return DetectorResult("spoofed_source", False, ReasonCode.SIMULATED_LOCATION, {"simulated": "TRUE"})
    return DetectorResult("spoofed_source", True, details={"simulated": sample.simulated.value})


def teleport_gate(
    session: VerificationSession, sample: LocationSample, previous: LocationSample | None = None
) -> DetectorResult:
    if previous is None:
        return DetectorResult("teleport", True)

    cfg = session.config
    elapsed_s = (sample.timestamp_ms - previous.timestamp_ms) / 1000.0
    if elapsed_s <= 0:
        # Ingestion never hands us these; nothing meaningful to compare.
        return DetectorResult("teleport", True)

    moved_m = distance_m(previous.latitude, previous.longitude, sample.latitude, sample.longitude)
    speed_mps = moved_m / elapsed_s
    details = {"elapsed_s": elapsed_s, "moved_m": round(moved_m, 1), "implied_speed_mps": round(speed_mps, 2)}
    if elapsed_s < cfg.teleport_min_gap_seconds and speed_mps > cfg.teleport_speed_threshold_mps:
        return DetectorResult("teleport", False, ReasonCode.SPOOF_DETECTED, details)
    return DetectorResult("teleport", True, details=details)


LocationDetector = Callable[[VerificationSession, LocationSample, "LocationSample | None"], DetectorResult]

LOCATION_DETECTORS: tuple[LocationDetector, ...] = (accuracy_gate, spoofed_source_gate, teleport_gate)


def run_location_detectors(
    session: VerificationSession, sample: LocationSample, previous: LocationSample | None
) -> list[DetectorResult]:
    """Run every location detector in order (no short-circuit, so the audit trail is complete)."""
    return [detector(session, sample, previous) for detector in LOCATION_DETECTORS]


def motion_presence(session: VerificationSession, sample: MotionSample) -> DetectorResult:
    """Advisory only: does this reading look like a device being carried/handled?"""
    magnitude = float(sample.acceleration_magnitude_g)
    threshold = session.config.motion_threshold_g
    if magnitude > threshold:
        return DetectorResult("motion", True, details={"magnitude_g": magnitude})
    return DetectorResult("motion", False, details={"magnitude_g": magnitude, "threshold_g": threshold})
