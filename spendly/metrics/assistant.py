"""Prometheus metrics for the assistant pipeline."""

from prometheus_client import Counter, Histogram

# One increment per terminal branch of POST /assistant
assistant_requests_total = Counter(
    "assistant_requests_total",
    "Assistant requests by terminal route",
    ["route"],  # action|confirm|cancel|hint|canonical|provider|rejected
)

assistant_provider_calls_total = Counter(
    "assistant_provider_calls_total",
    "Provider gateway calls by outcome",
    ["provider", "outcome"],  # ok|error|config
)

assistant_usage_rows_total = Counter(
    "assistant_usage_rows_total",
    "Usage log rows written",
    ["request_type", "success"],
)

assistant_stream_chars = Histogram(
    "assistant_stream_chars",
    "Characters streamed back per provider response",
    buckets=[0, 100, 500, 1000, 2000, 4000, 8000, 16000],
)
