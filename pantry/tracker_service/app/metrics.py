"""Prometheus metrics for the pantry tracker."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram


PANTRY_TRANSACTIONS_RECORDED_TOTAL: Final = Counter(
    "pantry_transactions_recorded_total",
    "Number of ledger transactions recorded.",
    labelnames=("type",),
)

PANTRY_UNITS_MOVED_TOTAL: Final = Counter(
    "pantry_units_moved_total",
    "Units received (IN) or distributed (OUT) through the ledger.",
    labelnames=("type",),
)

PANTRY_OPERATIONS_SKIPPED_TOTAL: Final = Counter(
    "pantry_operations_skipped_total",
    "Repository operations that were ignored without changing state.",
    labelnames=("operation", "reason"),
)

PANTRY_STATE_STORE_FAILURES_TOTAL: Final = Counter(
    "pantry_state_store_failures_total",
    "Failures reading or writing the durable state store.",
    labelnames=("operation",),
)

PANTRY_STATE_SAVE_SECONDS: Final = Histogram(
    "pantry_state_save_seconds",
    "Latency to persist the state snapshot.",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5),
)

PANTRY_BARCODE_LOOKUPS_TOTAL: Final = Counter(
    "pantry_barcode_lookups_total",
    "Barcode lookups by where the answer came from.",
    labelnames=("outcome",),
)
