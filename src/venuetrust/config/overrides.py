from __future__ import annotations


# Overrides usually come from venue records (JSON), so typing stays dict-like and errors name the key.
from typing import Any, Mapping

from venuetrust.domain.models import VerificationConfig

"""
Per-venue verification overrides (safe subset).

Some venues need different knobs than the global defaults (a large stadium wants a
longer dwell, a covered market tolerates worse accuracy). This module:
- validates the override payload against a whitelist,
- merges the safe subset onto a base `VerificationConfig`,
- re-validates with Pydantic so ranges stay correct.

Security note:
Spoof-detection thresholds (teleport speed/gap) are NOT overridable per venue; a
venue record must not be able to switch off teleport detection.
"""

# Knobs a venue record may override. Anything else is rejected.
ALLOWED_CONFIG_OVERRIDES: frozenset[str] = frozenset(
    {
        "max_accuracy_m",
        "required_dwell_seconds",
        "sample_history_capacity",
        "poor_signal_sample_limit",
        "first_fix_timeout_seconds",
        "motion_threshold_g",
    }
)


def _filter_overrides(overrides: Mapping[str, Any]) -> dict[str, Any]:
    filtered: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in ALLOWED_CONFIG_OVERRIDES:
            raise ValueError(f"config_overrides contains a disallowed key: '{key}'")
        filtered[key] = value
    return filtered


def apply_config_overrides(
    config: VerificationConfig, overrides: Mapping[str, Any] | None
) -> VerificationConfig:
    """Return `config` with the whitelisted `overrides` applied (validated)."""
    if not overrides:
        return config

    safe_overrides = _filter_overrides(overrides)

    merged_payload = {**config.model_dump(mode="python"), **safe_overrides}

    # Re-validate so an override can never produce an out-of-range config.
    return VerificationConfig.model_validate(merged_payload)
