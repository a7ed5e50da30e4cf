"""
Logging configuration.

We use a YAML logging config (`src/venuetrust/config/logging.yaml`) and then apply
runtime overrides from settings (e.g., `VENUETRUST_LOG_LEVEL`).

The engine never configures logging on import; host applications call
`configure_logging()` (the CLI does) or route the `venuetrust` logger themselves.
"""

from __future__ import annotations

import copy
import logging.config

from venuetrust.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> None:
    """Configure the Python logging system based on packaged YAML config + settings."""
    settings = get_settings()
    # The cached dict is shared; dictConfig and the level patch below must not mutate it.
    config = copy.deepcopy(get_logging_config())

    level = (level or settings.app.log_level).upper()
    config.setdefault("root", {})["level"] = level
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = level

    logging.config.dictConfig(config)
