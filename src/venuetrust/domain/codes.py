"""
Enumerations shared across layers.

Values are plain strings so they serialize cleanly into status snapshots and
review payloads without custom encoders.
"""

from __future__ import annotations

from enum import Enum


class ReasonCode(str, Enum):
    """Structured reason attached to errors, detector results and submission decisions."""

    PERMISSION_DENIED = "PERMISSION_DENIED"
    SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    INVALID_COORDINATE = "INVALID_COORDINATE"
    INVALID_TARGET = "INVALID_TARGET"
    INVALID_SAMPLE = "INVALID_SAMPLE"
    POOR_ACCURACY = "POOR_ACCURACY"
    OUTSIDE_RADIUS = "OUTSIDE_RADIUS"
    SPOOF_DETECTED = "SPOOF_DETECTED"
    SIMULATED_LOCATION = "SIMULATED_LOCATION"
    INCOMPLETE_DWELL = "INCOMPLETE_DWELL"
    NO_LOCATION_FIX = "NO_LOCATION_FIX"
    SESSION_ACTIVE = "SESSION_ACTIVE"
    UNKNOWN_SESSION = "UNKNOWN_SESSION"
    OK = "OK"


class TrustState(str, Enum):
    INIT = "INIT"
    ACQUIRING = "ACQUIRING"
    INSIDE_VERIFYING = "INSIDE_VERIFYING"
    VERIFIED = "VERIFIED"
    OUTSIDE_RADIUS = "OUTSIDE_RADIUS"
    POOR_SIGNAL = "POOR_SIGNAL"
    SPOOF_DETECTED = "SPOOF_DETECTED"


class SimulatedFlag(str, Enum):
    """Platform mock-location indicator.

    Not every platform reports this signal, so `UNKNOWN` is a first-class value.
    `UNKNOWN` passes the spoofed-source gate but is never reported as verified-safe.
    """

    TRUE = "TRUE"
    FALSE = "FALSE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_platform(cls, value: bool | None) -> "SimulatedFlag":
        if value is None:
            return cls.UNKNOWN
        return cls.TRUE if value else cls.FALSE
