"""
Session events and the single-consumer actor that applies them.

Location callbacks, motion callbacks, the tick scheduler and direct caller calls can
all arrive on different threads. They are funnelled into one FIFO queue per session;
whichever thread holds the processing lock drains it, so state is only ever mutated by
one consumer at a time and strictly in arrival order.

`submit()` returns once the queue has been drained past the submitted event, so a
status read after a feed call always reflects that feed.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, TypeVar, Union

from venuetrust.domain.models import LocationSample, MotionSample
from venuetrust.verification.session import VerificationSession
from venuetrust.verification.state_machine import TrustStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LocationSampleArrived:
    sample: LocationSample


@dataclass(frozen=True)
class MotionSampleArrived:
    sample: MotionSample


@dataclass(frozen=True)
class Tick:
    now: float


@dataclass(frozen=True)
class Stop:
    now: float
    reason: str = "stopped"


SessionEvent = Union[LocationSampleArrived, MotionSampleArrived, Tick, Stop]


class SessionActor:
    def __init__(self, session: VerificationSession, machine: TrustStateMachine):
        self.session = session
        self._machine = machine
        self._pending: deque[SessionEvent] = deque()
        self._queue_lock = threading.Lock()
        self._process_lock = threading.RLock()
        self._local = threading.local()

    def submit(self, event: SessionEvent) -> None:
        with self._queue_lock:
            self._pending.append(event)
        self._drain()

    def _drain(self) -> None:
        # Re-entrant submit (a callback fired while handling an event): the outer loop drains it.
        if getattr(self._local, "draining", False):
            return
        with self._process_lock:
            self._local.draining = True
            try:
                while True:
                    with self._queue_lock:
                        if not self._pending:
                            return
                        event = self._pending.popleft()
                    self._handle(event)
            finally:
                self._local.draining = False

    def read(self, fn: Callable[[VerificationSession], T]) -> T:
        """Run a read-only `fn` against the session between events."""
        with self._process_lock:
            return fn(self.session)

    def _handle(self, event: SessionEvent) -> None:
        session = self.session
        if not session.active:
            logger.debug("Ignoring %s for stopped session=%s", type(event).__name__, session.session_id)
            return

        if isinstance(event, LocationSampleArrived):
            self._machine.on_location(session, event.sample)
        elif isinstance(event, MotionSampleArrived):
            self._machine.on_motion(session, event.sample)
        elif isinstance(event, Tick):
            self._machine.on_tick(session, event.now)
        elif isinstance(event, Stop):
            session.active = False
            session.ended_at = event.now
            logger.info(
                "Session %s stopped (%s) state=%s dwell=%ss samples=%s",
                session.session_id,
                event.reason,
                session.state.value,
                session.dwell_seconds,
                session.accepted_sample_count,
            )
        else:
            raise TypeError(f"Unsupported session event: {event!r}")
