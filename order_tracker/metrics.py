"""
Prometheus metrics: webhooks received (API), events dispatched and handler failures (dispatcher),
status transitions, rejected transitions and store conflicts (service).
"""
from prometheus_client import Counter, generate_latest

# API: notifications accepted for mapping (by source: payment / shipment / cancel)
webhooks_received_total = Counter(
    "webhooks_received_total",
    "Total webhook notifications and cancellation requests received",
    ["source"],
)
webhooks_duplicate_total = Counter(
    "webhooks_duplicate_total",
    "Total webhook notifications skipped as already processed",
    ["source"],
)

# Dispatcher: canonical events handed to a handler
events_dispatched_total = Counter(
    "events_dispatched_total",
    "Total canonical events published to their handler",
    ["event_type"],
)
event_handler_failures_total = Counter(
    "event_handler_failures_total",
    "Total canonical events whose handler failed (logged and swallowed)",
    ["event_type", "reason"],
)

# Service: state machine outcomes
status_transitions_total = Counter(
    "status_transitions_total",
    "Total order status transitions persisted",
    ["from_state", "to_state"],
)
transitions_rejected_total = Counter(
    "transitions_rejected_total",
    "Total order status changes rejected by the transition table or the upsert guard",
    ["current_state", "attempted_state"],
)
payment_amount_difference_total = Counter(
    "payment_amount_difference_total",
    "Total confirmations accepted with a paid amount different from the order total",
)
store_conflicts_total = Counter(
    "store_conflicts_total",
    "Total conditional writes that lost an optimistic concurrency race",
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
