#!/usr/bin/env python3
"""
KUBESHARD SETTINGS
------------------
Operator-level tunables. Defaults are production values; an optional
YAML file can override any of them.

Example operator.yaml:

    tablet_available_seconds: 30
    reconcile_timeout: 60
    topo_timeout_fraction: 0.1
    log_level: INFO

Author: KubeShard Team
Date: 2026-10-17
"""

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ruamel.yaml import YAML, YAMLError

logger = logging.getLogger("kubeshard.config")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when the operator configuration can't be loaded or is invalid."""


@dataclass
class OperatorConfig:
    tablet_available_seconds: int = 30
    reconcile_timeout: float = 60.0    # deadline of one whole pass, seconds
    topo_timeout_fraction: float = 0.1 # share of that deadline a topo lookup may use
    log_level: str = "INFO"

    @property
    def topo_timeout(self) -> float:
        return self.reconcile_timeout * self.topo_timeout_fraction

    def validate(self):
        if self.tablet_available_seconds < 0:
            raise ConfigError("tablet_available_seconds must not be negative")
        if self.reconcile_timeout <= 0:
            raise ConfigError("reconcile_timeout must be positive")
        if not 0 < self.topo_timeout_fraction <= 1:
            raise ConfigError("topo_timeout_fraction must be in (0, 1]")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OperatorConfig":
        known = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")

        values = {}
        for name, value in data.items():
            # Coerce to the declared default's type (int/float/str).
            caster = type(known[name].default)
            if isinstance(value, bool):
                raise ConfigError(f"invalid value for {name}: {value!r}")
            try:
                values[name] = caster(value)
            except (TypeError, ValueError):
                raise ConfigError(f"invalid value for {name}: {value!r}")

        config = cls(**values)
        config.validate()
        return config


def load_config(path: Optional[Union[str, Path]] = None) -> OperatorConfig:
    """Loads configuration from YAML, or returns defaults when path is None."""
    if path is None:
        return OperatorConfig()

    config_path = Path(path)
    try:
        data = YAML(typ="safe").load(config_path.read_text(encoding="utf-8"))
    except (OSError, YAMLError) as e:
        raise ConfigError(f"Failed to load configuration from {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")

    logger.debug(f"Loaded configuration from {config_path}")
    return OperatorConfig.from_dict(data)
