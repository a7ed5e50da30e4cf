# src/venuetrust/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/venuetrust/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `VENUETRUST_CONFIG_PATH`
- environment variables (e.g., `VENUETRUST_LOG_LEVEL`, `VENUETRUST_REQUIRED_DWELL_SECONDS`)

Design rule:
- Verification thresholds live in YAML, not hard-coded in detectors or the state machine.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from venuetrust.core.env import load_dotenv_if_present
from venuetrust.domain.models import VerificationConfig


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `venuetrust.config`."""
    text = resources.files("venuetrust.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "VenueTrust"
    log_level: str = "INFO"


class EngineSettings(BaseModel):
    tick_interval_seconds: float = Field(1.0, gt=0)
    prime_with_current_fix: bool = True
    fix_timeout_seconds: float = Field(3.0, gt=0)
    location_min_interval_seconds: float = Field(1.0, ge=0)
    location_distance_filter_m: float = Field(0.0, ge=0)
    motion_interval_seconds: float = Field(0.2, gt=0)


class GeofenceSettings(BaseModel):
    default_radius_m: float = Field(500, gt=0)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    geofence: GeofenceSettings = Field(default_factory=GeofenceSettings)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small; spoof thresholds are not env-tunable.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("VENUETRUST_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    dwell = os.getenv("VENUETRUST_REQUIRED_DWELL_SECONDS")
    if dwell:
        data.setdefault("verification", {})["required_dwell_seconds"] = int(dwell)

    max_acc = os.getenv("VENUETRUST_MAX_ACCURACY_M")
    if max_acc:
        data.setdefault("verification", {})["max_accuracy_m"] = float(max_acc)

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("VENUETRUST_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
