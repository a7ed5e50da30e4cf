"""
Offline trace replay.

Feeds a recorded trace through a `VerificationEngine` on a simulated clock, issuing
one tick per elapsed second between samples. Used by the CLI to debug field reports
("why was this review blocked?") without a device.

Trace format: JSON Lines, one event per line, ordered by `t_ms`:

    {"type": "location", "t_ms": 0, "lat": 25.03, "lon": 121.56, "accuracy_m": 12, "mock": false}
    {"type": "motion", "t_ms": 400, "g": 1.24}

`mock` may be omitted or null when the platform does not report it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from venuetrust.config.settings import Settings
from venuetrust.domain.codes import SimulatedFlag
from venuetrust.domain.models import (
    GeofenceTarget,
    LocationSample,
    MotionSample,
    SessionStatus,
    SubmissionDecision,
    SubmissionMetadata,
    VerificationConfig,
)
from venuetrust.verification.engine import VerificationEngine

TraceEvent = LocationSample | MotionSample


@dataclass
class SimulatedClock:
    now: float = 0.0

    def __call__(self) -> float:
        return self.now


@dataclass(frozen=True)
class ReplayResult:
    status: SessionStatus
    decision: SubmissionDecision
    metadata: SubmissionMetadata


def parse_trace_record(record: Any) -> TraceEvent:
    if not isinstance(record, dict):
        raise ValueError(f"Trace record must be a JSON object, got {type(record).__name__}")
    kind = str(record.get("type", "location")).lower()
    t_ms = int(record["t_ms"])
    if kind == "motion":
        return MotionSample(acceleration_magnitude_g=float(record["g"]), timestamp_ms=t_ms)
    if kind != "location":
        raise ValueError(f"Unknown trace event type: {kind!r}")
    speed = record.get("speed_mps")
    return LocationSample(
        latitude=float(record["lat"]),
        longitude=float(record["lon"]),
        horizontal_accuracy_m=float(record["accuracy_m"]),
        timestamp_ms=t_ms,
        simulated=SimulatedFlag.from_platform(record.get("mock")),
        speed_mps=float(speed) if speed is not None else None,
    )


def load_trace(path: str | Path) -> list[TraceEvent]:
    events: list[TraceEvent] = []
    with Path(path).open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                events.append(parse_trace_record(json.loads(line)))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"{path}:{lineno}: {exc}") from exc
    return events


def replay(
    events: Iterable[TraceEvent],
    target: GeofenceTarget,
    *,
    settings: Settings,
    config: VerificationConfig | None = None,
    tail_seconds: int = 0,
) -> ReplayResult:
    """Replay `events` (trace time starts at 0 ms) and return the final status and decision."""
    clock = SimulatedClock()
    engine = VerificationEngine(settings=settings, clock=clock, ticker_factory=None)
    handle = engine.start(target, config)
    try:
        ticks = 0
        for event in events:
            event_s = event.timestamp_ms / 1000.0
            while ticks + 1 <= event_s:
                ticks += 1
                clock.now = float(ticks)
                engine.tick(handle)
            clock.now = max(clock.now, event_s)
            if isinstance(event, MotionSample):
                engine.feed_motion(handle, event)
            else:
                engine.feed_location(handle, event)
        for _ in range(tail_seconds):
            ticks += 1
            clock.now = float(ticks)
            engine.tick(handle)
        return ReplayResult(
            status=engine.get_status(handle),
            decision=engine.can_submit(handle),
            metadata=engine.submission_metadata(handle),
        )
    finally:
        engine.stop(handle)
