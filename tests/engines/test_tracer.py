"""Tests for the engine tracer (INVENTORY_ENGINE_TRACE)."""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from inventory_engines.tracer import compute_input_fingerprint, traced_engine
from inventory_kernel.domain.stock_event import StockChangeReason


@dataclass(frozen=True)
class _Sample:
    name: str
    amount: Decimal


@traced_engine("sample_engine", "2.1", fingerprint_fields=("values", "scale"))
def _sum_values(values, scale=2):
    return sum(values)


class TestFingerprint:

    def test_deterministic(self):
        args = {"values": [Decimal("1.10"), Decimal("2")], "scale": 4}

        assert compute_input_fingerprint(("values", "scale"), args) == (
            compute_input_fingerprint(("values", "scale"), dict(args))
        )

    def test_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("x",), {"x": 1})

        assert len(fp) == 16
        int(fp, 16)

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("x",), {"x": Decimal("1.0")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("1.00")})

        assert a != b

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("m",), {"m": {"a": 1, "b": 2}})
        b = compute_input_fingerprint(("m",), {"m": {"b": 2, "a": 1}})

        assert a == b

    def test_handles_domain_values(self):
        value = {
            "when": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "reason": StockChangeReason.SOLD,
            "sample": _Sample("x", Decimal("2.5")),
            "missing": None,
        }
        assert compute_input_fingerprint(("v",), {"v": value})

    def test_iterators_not_consumed(self):
        values = iter([1, 2, 3])
        compute_input_fingerprint(("v",), {"v": values})

        assert list(values) == [1, 2, 3]


class TestTracedEngine:

    def test_emits_trace_record(self, captured_logs):
        assert _sum_values([1, 2, 3]) == 6

        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["trace_type"] == "INVENTORY_ENGINE_TRACE"
        assert trace["engine_name"] == "sample_engine"
        assert trace["engine_version"] == "2.1"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["duration_ms"] >= 0
        assert trace["function"] == "_sum_values"

    def test_positional_and_keyword_calls_fingerprint_alike(self, captured_logs):
        _sum_values([1, 2], 3)
        _sum_values(values=[1, 2], scale=3)

        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]

    def test_wraps_preserves_name(self):
        assert _sum_values.__name__ == "_sum_values"
