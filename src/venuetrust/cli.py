"""
VenueTrust CLI entrypoint.

This CLI is intended for local debugging of field traces without a device.
It delegates all verification logic to `venuetrust.replay.replay`.
"""

from __future__ import annotations

import argparse
import json
from typing import Any

from venuetrust.config.overrides import apply_config_overrides
from venuetrust.config.settings import get_settings
from venuetrust.core.geo import distance_m
from venuetrust.core.logging import configure_logging
from venuetrust.domain.models import GeofenceTarget
from venuetrust.replay import load_trace, replay


def _parse_override_pairs(pairs: list[str]) -> dict[str, float]:
    """Parse `KEY=VALUE` CLI arguments into a config overrides dict."""
    out: dict[str, float] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid --set '{pair}', expected KEY=VALUE")
        key, value = pair.split("=", 1)
        out[key.strip()] = float(value)
    return out


def _cmd_replay(args: argparse.Namespace) -> int:
    """Handle the `replay` subcommand."""
    settings = get_settings()
    radius = float(args.radius) if args.radius is not None else float(settings.geofence.default_radius_m)
    target = GeofenceTarget(
        center_latitude=float(args.venue_lat),
        center_longitude=float(args.venue_lon),
        radius_m=radius,
        venue_id=args.venue_id,
    )
    config = apply_config_overrides(settings.verification, _parse_override_pairs(args.set or []))

    result = replay(load_trace(args.trace), target, settings=settings, config=config, tail_seconds=int(args.tail))

    if args.json:
        payload = {
            "status": result.status.model_dump(mode="json"),
            "decision": result.decision.model_dump(mode="json"),
            "metadata": result.metadata.model_dump(mode="json"),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0 if result.decision.allowed else 2

    status = result.status
    print(f"Final state: {status.state.value}")
    if status.distance_m is not None:
        print(f"  distance={status.distance_m:.1f}m accuracy={status.accuracy_m:.1f}m")
    print(f"  dwell={status.dwell_seconds}/{status.required_dwell_seconds}s samples={status.sample_count}")
    print(f"  motion={status.motion_ever_observed} spoof={status.spoof_ever_detected}")
    reasons = ", ".join(r.value for r in result.decision.reasons) or "-"
    print(f"Submission: {'ALLOWED' if result.decision.allowed else 'BLOCKED'} ({reasons})")
    for activity in result.metadata.suspicious_activities:
        print(f"  ! t={activity.timestamp_ms}ms {activity.code.value} {activity.details}")
    return 0 if result.decision.allowed else 2


def _cmd_distance(args: argparse.Namespace) -> int:
    d = distance_m(float(args.lat1), float(args.lon1), float(args.lat2), float(args.lon2))
    print(f"{d:.1f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the VenueTrust CLI."""
    parser = argparse.ArgumentParser(prog="venuetrust")
    parser.add_argument("--log-level", default=None, help="Override VENUETRUST_LOG_LEVEL for this run.")
    sub = parser.add_subparsers(dest="command", required=True)

    rep = sub.add_parser("replay", help="Replay a JSONL sample trace and print the verification outcome.")
    rep.add_argument("trace", help="Path to a JSONL trace (see venuetrust.replay).")
    rep.add_argument("--venue-lat", required=True, type=float)
    rep.add_argument("--venue-lon", required=True, type=float)
    rep.add_argument("--radius", type=float, default=None, help="Geofence radius in meters (default from config).")
    rep.add_argument("--venue-id", type=str, default=None)
    rep.add_argument("--tail", type=int, default=0, help="Extra seconds to tick after the last sample.")
    rep.add_argument(
        "--set", action="append", default=[], help="Override a verification knob: KEY=VALUE (repeatable)."
    )
    rep.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    rep.set_defaults(func=_cmd_replay)

    dist = sub.add_parser("distance", help="Haversine distance in meters between two points.")
    dist.add_argument("lat1", type=float)
    dist.add_argument("lon1", type=float)
    dist.add_argument("lat2", type=float)
    dist.add_argument("lon2", type=float)
    dist.set_defaults(func=_cmd_distance)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m venuetrust.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
