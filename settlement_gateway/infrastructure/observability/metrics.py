"""Prometheus metrics for offers, validation failures, dialog progress and assistant polling"""

from prometheus_client import Counter, Histogram

# Offer metrics
offer_counter = Counter(
    "settlement_offers_total",
    "Lump-sum offers calculated",
    ["category"],  # guaranteed | lcp
)

offer_amount_bucket_counter = Counter(
    "settlement_offer_amount_bucket",
    "Maximum offers issued by bucket",
    ["bucket"],  # <$10k, $10k-$100k, $100k-$1M, $1M+
)

validation_failure_counter = Counter(
    "settlement_validation_failures_total",
    "Rejected payment details by field",
    ["field"],
)

# Dialog metrics
step_transition_counter = Counter(
    "settlement_step_transitions_total",
    "Conversation step changes",
    ["from_step", "to_step"],
)

unrecognized_reply_counter = Counter(
    "settlement_unrecognized_replies_total",
    "Assistant replies that named no conversation step",
)

# Assistant API metrics
assistant_poll_failures_counter = Counter(
    "assistant_poll_failures_total",
    "Failed or timed out assistant reply polls",
)

assistant_poll_latency_histogram = Histogram(
    "assistant_poll_latency_seconds",
    "Time until the assistant run completed",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_offer(category: str, maximum_offer: float) -> None:
    """Record offer metrics for volume by category and offer size distribution"""
    offer_counter.labels(category=category).inc()

    if maximum_offer < 10_000:
        bucket = "<$10k"
    elif maximum_offer < 100_000:
        bucket = "$10k-$100k"
    elif maximum_offer < 1_000_000:
        bucket = "$100k-$1M"
    else:
        bucket = "$1M+"

    offer_amount_bucket_counter.labels(bucket=bucket).inc()


def record_validation_failures(violations) -> None:
    for violation in violations:
        validation_failure_counter.labels(field=violation.field).inc()
