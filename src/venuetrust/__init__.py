"""Location trust verification for on-site venue reviews."""

from venuetrust.core.geo import distance_m
from venuetrust.domain.codes import ReasonCode, SimulatedFlag, TrustState
from venuetrust.domain.models import (
    GeofenceTarget,
    LocationSample,
    MotionSample,
    SessionStatus,
    SubmissionDecision,
    SubmissionMetadata,
    VerificationConfig,
)
from venuetrust.verification.engine import SessionHandle, VerificationEngine

__version__ = "0.1.0"

__all__ = [
    "GeofenceTarget",
    "LocationSample",
    "MotionSample",
    "ReasonCode",
    "SessionHandle",
    "SessionStatus",
    "SimulatedFlag",
    "SubmissionDecision",
    "SubmissionMetadata",
    "TrustState",
    "VerificationConfig",
    "VerificationEngine",
    "distance_m",
]
