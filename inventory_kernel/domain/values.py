"""
Values -- Immutable decimal helpers for cost arithmetic.

Responsibility:
    Provides the exact-decimal conversion and rounding rules used by every
    cost computation in the valuation engine.  Unit costs and weighted
    average costs are ``Decimal`` end to end; binary floats are rejected at
    the boundary.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only: ``to_decimal`` refuses ``float`` input.
    - Single rounding rule: ``RoundingPolicy.quantize`` applies one fixed
      scale and rounding mode, configured once per computation.

Failure modes:
    - TypeError when a float (or bool) is offered as a price.
    - ValueError for unparseable strings, NaN or infinities.
    - ValueError for a scale outside 0..9 or an unknown rounding mode.
"""

from __future__ import annotations

import decimal
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Storage precision is Numeric(38, 9); a cost scale beyond it would not
# survive a round trip through the database.
MAX_COST_SCALE = 9

ROUNDING_MODES: frozenset[str] = frozenset(
    {
        decimal.ROUND_CEILING,
        decimal.ROUND_DOWN,
        decimal.ROUND_FLOOR,
        decimal.ROUND_HALF_DOWN,
        decimal.ROUND_HALF_EVEN,
        decimal.ROUND_HALF_UP,
        decimal.ROUND_UP,
        decimal.ROUND_05UP,
    }
)

ZERO = Decimal("0")


def to_decimal(value: Decimal | str | int) -> Decimal:
    """Convert a price-like value to ``Decimal`` without passing through float.

    Raises:
        TypeError: for float or bool input.
        ValueError: for unparseable or non-finite values.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"Prices must be Decimal, str or int, never {type(value).__name__}"
        )
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid decimal amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Decimal amount must be finite: {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class RoundingPolicy:
    """
    Fixed-scale rounding rule for weighted average cost updates.

    Contract:
        ``quantize`` is applied exactly once per cost-basis update, so the
        running WAC never carries digits beyond ``scale``.

    Guarantees:
        - Immutable and hashable.
        - 0 <= scale <= MAX_COST_SCALE.
        - rounding is one of the ``decimal`` module rounding constants.
    """

    scale: int = 4
    rounding: str = ROUND_HALF_UP

    def __post_init__(self) -> None:
        if isinstance(self.scale, bool) or not isinstance(self.scale, int):
            raise ValueError(f"scale must be an int, got {self.scale!r}")
        if not 0 <= self.scale <= MAX_COST_SCALE:
            raise ValueError(
                f"scale must be between 0 and {MAX_COST_SCALE}, got {self.scale}"
            )
        if self.rounding not in ROUNDING_MODES:
            raise ValueError(f"Unknown rounding mode: {self.rounding!r}")

    @property
    def quantum(self) -> Decimal:
        """The smallest representable step, e.g. Decimal('0.0001') for scale 4."""
        return Decimal(1).scaleb(-self.scale)

    def quantize(self, value: Decimal) -> Decimal:
        """Round ``value`` to the policy scale with the policy rounding mode."""
        return value.quantize(self.quantum, rounding=self.rounding)
