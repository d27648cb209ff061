"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``inventory_config.schema`` dataclasses.  Runtime callers go through
``inventory_config.get_active_config()`` instead.

Invariants enforced
-------------------
* ``yaml.safe_load`` only; no arbitrary object construction.
* Missing sections and keys fall back to the schema defaults; present
  keys are type-checked by the validator, not coerced here.
* ``compute_checksum`` is deterministic for identical data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* A section that is not a mapping -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    AnalyticsSettings,
    DatabaseSettings,
    InventoryConfiguration,
    ValuationSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    return value


def parse_valuation(data: dict[str, Any]) -> ValuationSettings:
    defaults = ValuationSettings()
    return ValuationSettings(
        cost_scale=data.get("cost_scale", defaults.cost_scale),
        rounding_mode=data.get("rounding_mode", defaults.rounding_mode),
    )


def parse_analytics(data: dict[str, Any]) -> AnalyticsSettings:
    defaults = AnalyticsSettings()
    return AnalyticsSettings(
        default_window_days=data.get("default_window_days", defaults.default_window_days),
        default_low_stock_threshold=data.get(
            "default_low_stock_threshold", defaults.default_low_stock_threshold
        ),
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=data.get("url", defaults.url),
        echo=data.get("echo", defaults.echo),
        pool_size=data.get("pool_size", defaults.pool_size),
        max_overflow=data.get("max_overflow", defaults.max_overflow),
        pool_timeout=data.get("pool_timeout", defaults.pool_timeout),
    )


def parse_configuration(data: dict[str, Any]) -> InventoryConfiguration:
    """Parse a loaded YAML document into an InventoryConfiguration."""
    return InventoryConfiguration(
        config_id=str(data.get("config_id", "default")),
        version=data.get("version", 1),
        valuation=parse_valuation(_section(data, "valuation")),
        analytics=parse_analytics(_section(data, "analytics")),
        database=parse_database(_section(data, "database")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
