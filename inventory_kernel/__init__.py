"""
Inventory Kernel

The persistence and domain core of the stock valuation engine:
- Immutable stock event ledger with deterministic ordering
- Exact decimal cost arithmetic with an explicit rounding policy
- Typed exceptions with machine-readable codes
- Structured JSON logging
"""

__version__ = "0.1.0"
