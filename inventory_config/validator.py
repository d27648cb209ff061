"""
Configuration Validator (``inventory_config.validator``).

Responsibility
--------------
Checks a parsed ``InventoryConfiguration`` before it is handed to the
engines, collecting every problem instead of stopping at the first.

Invariants enforced
-------------------
* Cost scale is an int within 0..MAX_COST_SCALE (storage precision).
* Rounding mode names a ``decimal`` rounding constant.
* Analytics window is a positive number of days; the default low-stock
  threshold is non-negative.
* Pool sizes are non-negative ints; the database URL is not blank.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_kernel.domain.values import MAX_COST_SCALE, ROUNDING_MODES
from inventory_config.schema import InventoryConfiguration


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_configuration(config: InventoryConfiguration) -> ConfigValidationResult:
    """Run all checks and return the collected result."""
    result = ConfigValidationResult()

    if not _is_int(config.version) or config.version < 1:
        result.add_error(f"version must be a positive integer, got {config.version!r}")

    scale = config.valuation.cost_scale
    if not _is_int(scale) or not 0 <= scale <= MAX_COST_SCALE:
        result.add_error(
            f"valuation.cost_scale must be an integer in 0..{MAX_COST_SCALE}, got {scale!r}"
        )
    if config.valuation.rounding_mode not in ROUNDING_MODES:
        result.add_error(
            f"valuation.rounding_mode must be one of {sorted(ROUNDING_MODES)}, "
            f"got {config.valuation.rounding_mode!r}"
        )

    window = config.analytics.default_window_days
    if not _is_int(window) or window <= 0:
        result.add_error(
            f"analytics.default_window_days must be a positive integer, got {window!r}"
        )
    threshold = config.analytics.default_low_stock_threshold
    if not _is_int(threshold) or threshold < 0:
        result.add_error(
            "analytics.default_low_stock_threshold must be a non-negative integer, "
            f"got {threshold!r}"
        )

    if not isinstance(config.database.url, str) or not config.database.url.strip():
        result.add_error("database.url must not be blank")
    if not isinstance(config.database.echo, bool):
        result.add_error(f"database.echo must be a boolean, got {config.database.echo!r}")
    for name in ("pool_size", "max_overflow", "pool_timeout"):
        value = getattr(config.database, name)
        if not _is_int(value) or value < 0:
            result.add_error(f"database.{name} must be a non-negative integer, got {value!r}")

    return result
