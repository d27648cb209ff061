"""
inventory_config -- single public entrypoint for valuation configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``InventoryConfiguration``.

Architecture position:
    Configuration -- sits above ``inventory_kernel`` and below
    ``inventory_services``.  The kernel and the engines MUST NEVER import
    from ``inventory_config``; services translate the settings into
    engine inputs (a RoundingPolicy, a default threshold).

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation before use: every problem is reported at once.
    - Deterministic checksum: same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` -- validation failures (all of them, one per line).

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INVENTORY_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying each valuation to the settings that produced it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import load_yaml_file, parse_configuration
from inventory_config.schema import (
    AnalyticsSettings,
    DatabaseSettings,
    InventoryConfiguration,
    ValuationSettings,
)
from inventory_config.validator import validate_configuration

_logger = logging.getLogger("inventory_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> InventoryConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to inventory_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_configuration(load_yaml_file(path))

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "cost_scale": config.valuation.cost_scale,
            "rounding_mode": config.valuation.rounding_mode,
        },
    )
    return config


__all__ = [
    "AnalyticsSettings",
    "DatabaseSettings",
    "InventoryConfiguration",
    "ValuationSettings",
    "get_active_config",
]
