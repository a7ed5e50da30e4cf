"""
Sample ingestion.

Accepts a location sample into the session history when it is strictly newer than
the last accepted one, and refreshes the live distance/accuracy before any detector
looks at it. Out-of-order and duplicate samples are dropped, never queued.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from venuetrust.core.geo import distance_m
from venuetrust.domain.models import LocationSample
from venuetrust.verification.session import VerificationSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    previous: LocationSample | None = None
    evicted: LocationSample | None = None


def ingest(session: VerificationSession, sample: LocationSample) -> IngestResult:
    previous = session.last_sample
    if previous is not None and sample.timestamp_ms <= previous.timestamp_ms:
        session.dropped_sample_count += 1
        logger.debug(
            "Dropping out-of-order sample ts=%s (last accepted ts=%s) session=%s",
            sample.timestamp_ms,
            previous.timestamp_ms,
            session.session_id,
        )
        return IngestResult(accepted=False, previous=previous)

    evicted = session.sample_history.append(sample)
    session.accepted_sample_count += 1
    session.simulated_reports[sample.simulated] = session.simulated_reports.get(sample.simulated, 0) + 1

    target = session.target
    session.current_distance_m = distance_m(
        target.center_latitude, target.center_longitude, sample.latitude, sample.longitude
    )
    session.current_accuracy_m = float(sample.horizontal_accuracy_m)
    return IngestResult(accepted=True, previous=previous, evicted=evicted)
