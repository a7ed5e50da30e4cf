"""
Domain models.

These types are the contract between the engine and its callers:
- raw inputs (`LocationSample`, `MotionSample`) are frozen dataclasses because they
  are created at sensor rate and validated once at construction,
- session inputs (`GeofenceTarget`, `VerificationConfig`) and outputs
  (`SessionStatus`, `SubmissionDecision`, `SubmissionMetadata`) are Pydantic models
  so they validate early and serialize to JSON consistently.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from venuetrust.core.geo import validate_coordinate
from venuetrust.domain.codes import ReasonCode, SimulatedFlag, TrustState
from venuetrust.errors import InvalidSample, InvalidTarget


@dataclass(frozen=True)
class LocationSample:
    """One position fix from the location source."""

    latitude: float
    longitude: float
    horizontal_accuracy_m: float
    timestamp_ms: int
    simulated: SimulatedFlag = SimulatedFlag.UNKNOWN
    speed_mps: float | None = None

    def __post_init__(self) -> None:
        validate_coordinate(self.latitude, self.longitude)
        acc = float(self.horizontal_accuracy_m)
        if not math.isfinite(acc) or acc < 0:
            raise InvalidSample(f"horizontal_accuracy_m must be a finite value >= 0, got {self.horizontal_accuracy_m!r}")
        if not isinstance(self.simulated, SimulatedFlag):
            # Accept raw platform booleans (or None) for convenience.
            object.__setattr__(self, "simulated", SimulatedFlag.from_platform(self.simulated))


@dataclass(frozen=True)
class MotionSample:
    """Accelerometer magnitude (in g) at a point in time."""

    acceleration_magnitude_g: float
    timestamp_ms: int

    def __post_init__(self) -> None:
        if not math.isfinite(float(self.acceleration_magnitude_g)):
            raise InvalidSample("acceleration_magnitude_g must be finite")


class GeofenceTarget(BaseModel):
    """Circular region around a venue used as the presence boundary."""

    model_config = ConfigDict(frozen=True)

    center_latitude: float
    center_longitude: float
    radius_m: float = 500
    venue_id: str | None = None

    def validate_target(self) -> "GeofenceTarget":
        """Raise `InvalidTarget` / `InvalidCoordinate` for unusable targets."""
        if not math.isfinite(float(self.radius_m)) or self.radius_m <= 0:
            raise InvalidTarget(f"radius_m must be > 0, got {self.radius_m}")
        validate_coordinate(self.center_latitude, self.center_longitude)
        return self


class VerificationConfig(BaseModel):
    """Tuning knobs for a single verification session."""

    model_config = ConfigDict(frozen=True)

    max_accuracy_m: float = Field(50, gt=0)
    required_dwell_seconds: int = Field(30, ge=0)
    teleport_speed_threshold_mps: float = Field(33, gt=0)
    teleport_min_gap_seconds: float = Field(5, ge=0)
    sample_history_capacity: int = Field(10, ge=2)
    poor_signal_sample_limit: int = Field(3, ge=1)
    first_fix_timeout_seconds: float = Field(15, gt=0)
    motion_threshold_g: float = Field(1.1, gt=1.0)


class SuspiciousActivity(BaseModel):
    """One gate failure recorded in the session audit trail."""

    code: ReasonCode
    timestamp_ms: int
    details: dict[str, Any] = Field(default_factory=dict)


class SessionStatus(BaseModel):
    """Read-only snapshot of a session."""

    session_id: str
    state: TrustState
    distance_m: float | None = None
    accuracy_m: float | None = None
    dwell_seconds: int = 0
    required_dwell_seconds: int
    motion_ever_observed: bool = False
    spoof_ever_detected: bool = False
    timed_out: bool = False
    active: bool = True
    sample_count: int = 0
    advisories: list[ReasonCode] = Field(default_factory=list)


class SubmissionDecision(BaseModel):
    """Final gate result: whether the review may be submitted now, and why (not)."""

    allowed: bool
    reasons: list[ReasonCode] = Field(default_factory=list)


class SubmissionMetadata(BaseModel):
    """Audit record attached to an outbound review payload."""

    session_id: str
    venue_id: str | None = None
    final_state: TrustState
    distance_at_submit_m: float | None = None
    accuracy_at_submit_m: float | None = None
    dwell_seconds_at_submit: int = 0
    motion_ever_observed: bool = False
    spoof_ever_detected: bool = False
    sample_count: int = 0
    verification_seconds: float = 0.0
    # None when at least one fix did not report the signal and none reported a mock.
    mock_location_reported: bool | None = None
    suspicious_activities: list[SuspiciousActivity] = Field(default_factory=list)
    generated_at: datetime

    def to_review_payload(self) -> dict[str, Any]:
        """Render the security fields the review API accepts alongside a review."""
        payload: dict[str, Any] = {
            "verificationTime": int(round(self.verification_seconds)),
            "motionDetected": self.motion_ever_observed,
            "locationHistoryCount": self.sample_count,
            "suspiciousActivities": [a.model_dump(mode="json") for a in self.suspicious_activities],
        }
        if self.accuracy_at_submit_m is not None:
            payload["locationAccuracy"] = self.accuracy_at_submit_m
        if self.mock_location_reported is not None:
            payload["isMockLocation"] = self.mock_location_reported
        return payload
