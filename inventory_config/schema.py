"""
Configuration Schema (``inventory_config.schema``).

Responsibility
--------------
Frozen dataclasses describing every tunable of the valuation engine:
cost rounding, analytics defaults and database connection settings.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Imports only the kernel's
domain value types so that ``ValuationSettings`` can hand the engines a
ready ``RoundingPolicy``.

Invariants enforced
-------------------
* All dataclasses are ``frozen=True``; configuration is immutable once
  parsed.
* Defaults reproduce the shipped ``sets/default.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_kernel.domain.values import RoundingPolicy


@dataclass(frozen=True)
class ValuationSettings:
    """Cost-basis arithmetic: WAC scale and rounding mode."""

    cost_scale: int = 4
    rounding_mode: str = "ROUND_HALF_UP"

    def rounding_policy(self) -> RoundingPolicy:
        return RoundingPolicy(scale=self.cost_scale, rounding=self.rounding_mode)


@dataclass(frozen=True)
class AnalyticsSettings:
    """Defaults applied to analytics requests that omit them."""

    default_window_days: int = 30
    default_low_stock_threshold: int = 5


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class InventoryConfiguration:
    """
    The complete, validated configuration.

    ``checksum`` is the SHA-256 of the canonical JSON of the source YAML.
    """

    config_id: str
    version: int
    valuation: ValuationSettings = field(default_factory=ValuationSettings)
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    checksum: str = ""
