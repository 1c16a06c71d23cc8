"""Prometheus metrics modules.

- Assistant pipeline counters/histograms (assistant.py)
"""

from __future__ import annotations

from spendly.metrics.assistant import (
    assistant_requests_total,
    assistant_provider_calls_total,
    assistant_usage_rows_total,
    assistant_stream_chars,
)

__all__ = [
    "assistant_requests_total",
    "assistant_provider_calls_total",
    "assistant_usage_rows_total",
    "assistant_stream_chars",
]
