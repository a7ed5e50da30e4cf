"""
Exception taxonomy.

Every error carries a structured `ReasonCode` and a `retryable` hint so callers can
decide between prompting the user to retry and failing the flow, without parsing
messages.

Programmer errors (bad coordinates, bad targets, bad samples) also subclass
`ValueError` so they fail fast at the call site like any other bad argument.
"""

from __future__ import annotations

from venuetrust.domain.codes import ReasonCode


class VerificationError(Exception):
    code: ReasonCode = ReasonCode.SOURCE_UNAVAILABLE
    retryable: bool = False

    def __init__(self, message: str = "", *, code: ReasonCode | None = None):
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code


class PermissionDenied(VerificationError):
    code = ReasonCode.PERMISSION_DENIED
    retryable = True


class SourceUnavailable(VerificationError):
    code = ReasonCode.SOURCE_UNAVAILABLE
    retryable = True


class LocationTimeout(SourceUnavailable):
    code = ReasonCode.TIMEOUT


class InvalidCoordinate(VerificationError, ValueError):
    code = ReasonCode.INVALID_COORDINATE


class InvalidTarget(VerificationError, ValueError):
    code = ReasonCode.INVALID_TARGET


class InvalidSample(VerificationError, ValueError):
    code = ReasonCode.INVALID_SAMPLE


class SessionAlreadyActive(VerificationError, RuntimeError):
    code = ReasonCode.SESSION_ACTIVE


class UnknownSession(VerificationError, KeyError):
    code = ReasonCode.UNKNOWN_SESSION

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else self.__class__.__name__
