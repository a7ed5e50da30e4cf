"""
Location / motion source contracts.

Sources are owned by the host application (a mobile bridge, a replay file, a test
stub); the engine only subscribes to them. Any object with the right methods works,
so these are `typing.Protocol`s rather than base classes.

`PushSource` is a small in-process implementation of both contracts: the host pushes
samples into it and it fans them out to live subscribers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Protocol

from venuetrust.domain.models import LocationSample, MotionSample
from venuetrust.errors import LocationTimeout, SourceUnavailable

logger = logging.getLogger(__name__)

LocationCallback = Callable[[LocationSample], None]
MotionCallback = Callable[[MotionSample], None]


class Subscription(Protocol):
    def cancel(self) -> None: ...


class LocationSource(Protocol):
    def request_permission(self) -> bool:
        """Return True when the user granted location access."""
        ...

    def read_once(self, *, timeout_seconds: float, max_accuracy_m: float) -> LocationSample:
        """Return a single fix obtained after this call; never a cached earlier position.

        Raises:
            LocationTimeout: If no fix arrives within `timeout_seconds`.
            SourceUnavailable: If location services are disabled or failing.
        """
        ...

    def subscribe(
        self, callback: LocationCallback, *, min_interval_seconds: float, distance_filter_m: float
    ) -> Subscription: ...


class MotionSource(Protocol):
    def subscribe(self, callback: MotionCallback, *, interval_seconds: float) -> Subscription: ...


@dataclass
class _PushSubscription:
    source: "PushSource"
    callback: Callable[..., None]
    kind: str
    cancelled: bool = False

    def cancel(self) -> None:
        self.source._remove(self)


class PushSource:
    """Host-driven source implementing both `LocationSource` and `MotionSource`."""

    def __init__(self, *, permission_granted: bool = True, available: bool = True):
        self.permission_granted = permission_granted
        self.available = available
        self._latest_fix: LocationSample | None = None
        # Bumped on every pushed fix; `read_once` waits for a bump after its own call.
        self._fix_seq = 0
        self._subs: list[_PushSubscription] = []
        self._lock = threading.Lock()
        self._fix_arrived = threading.Condition(self._lock)

    # -- LocationSource --------------------------------------------------------

    def request_permission(self) -> bool:
        return self.permission_granted

    def read_once(self, *, timeout_seconds: float, max_accuracy_m: float) -> LocationSample:
        if not self.available:
            raise SourceUnavailable("Location services are disabled")
        with self._fix_arrived:
            # `max_accuracy_m` is a hint for real hardware; pushed fixes are returned as-is.
            seen = self._fix_seq
            ok = self._fix_arrived.wait_for(lambda: self._fix_seq > seen, timeout=timeout_seconds)
            if not ok:
                raise LocationTimeout(f"No fix within {timeout_seconds:.1f}s")
            return self._latest_fix  # type: ignore[return-value]

    def subscribe(
        self,
        callback: LocationCallback,
        *,
        min_interval_seconds: float = 0.0,
        distance_filter_m: float = 0.0,
    ) -> _PushSubscription:
        return self._add(callback, "location")

    # -- MotionSource ----------------------------------------------------------

    def subscribe_motion(self, callback: MotionCallback, *, interval_seconds: float = 0.0) -> _PushSubscription:
        return self._add(callback, "motion")

    # -- host side -------------------------------------------------------------

    def push_location(self, sample: LocationSample) -> None:
        with self._fix_arrived:
            self._latest_fix = sample
            self._fix_seq += 1
            self._fix_arrived.notify_all()
            subs = [s for s in self._subs if s.kind == "location"]
        for sub in subs:
            if not sub.cancelled:
                sub.callback(sample)

    def push_motion(self, sample: MotionSample) -> None:
        with self._lock:
            subs = [s for s in self._subs if s.kind == "motion"]
        for sub in subs:
            if not sub.cancelled:
                sub.callback(sample)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def motion(self) -> "MotionView":
        """Expose this source through the `MotionSource` protocol."""
        return MotionView(self)

    def _add(self, callback: Callable[..., None], kind: str) -> _PushSubscription:
        sub = _PushSubscription(source=self, callback=callback, kind=kind)
        with self._lock:
            self._subs.append(sub)
        return sub

    def _remove(self, sub: _PushSubscription) -> None:
        with self._lock:
            if sub.cancelled:
                return
            sub.cancelled = True
            self._subs = [s for s in self._subs if s is not sub]
        logger.debug("Released %s subscription", sub.kind)


@dataclass(frozen=True)
class MotionView:
    """Adapter so one `PushSource` can be passed as both the location and motion source."""

    source: PushSource

    def subscribe(self, callback: MotionCallback, *, interval_seconds: float = 0.0) -> _PushSubscription:
        return self.source.subscribe_motion(callback, interval_seconds=interval_seconds)
