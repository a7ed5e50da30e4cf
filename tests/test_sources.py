from __future__ import annotations

import threading

import pytest
from conftest import motion, sample_north

from venuetrust.errors import LocationTimeout, SourceUnavailable
from venuetrust.sources import PushSource


def test_read_once_ignores_fixes_pushed_before_the_call():
    source = PushSource()
    source.push_location(sample_north(2000, 0))

    with pytest.raises(LocationTimeout):
        source.read_once(timeout_seconds=0.02, max_accuracy_m=50)


def test_read_once_returns_the_next_pushed_fix():
    source = PushSource()
    source.push_location(sample_north(2000, 0))
    fresh = sample_north(5, 60_000)
    pusher = threading.Timer(0.02, source.push_location, args=(fresh,))
    pusher.start()

    assert source.read_once(timeout_seconds=5.0, max_accuracy_m=50) is fresh
    pusher.join()


def test_read_once_when_disabled():
    with pytest.raises(SourceUnavailable):
        PushSource(available=False).read_once(timeout_seconds=0.01, max_accuracy_m=50)


def test_cancelled_subscriptions_stop_receiving():
    source = PushSource()
    fixes, readings = [], []
    loc = source.subscribe(fixes.append)
    mot = source.motion().subscribe(readings.append)

    source.push_location(sample_north(0, 0))
    source.push_motion(motion(1.2, 0))
    loc.cancel()
    loc.cancel()
    mot.cancel()
    source.push_location(sample_north(0, 1_000))
    source.push_motion(motion(1.2, 1_000))

    assert len(fixes) == 1
    assert len(readings) == 1
    assert source.subscriber_count == 0
