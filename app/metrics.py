"""
Prometheus metrics: accepted and rejected order transitions, pending approvals.
"""
from prometheus_client import Counter, Gauge, generate_latest

# Accepted transitions by workflow step and resulting status
order_transitions_total = Counter(
    "order_transitions_total",
    "Total order status transitions applied",
    ["operation", "to_status"],
)
order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Total order transition attempts refused",
    ["operation", "code"],
)
orders_created_total = Counter(
    "orders_created_total",
    "Total orders created in awaiting_approval",
)

# Refreshed whenever dashboard stats are computed
orders_pending_approval = Gauge(
    "orders_pending_approval",
    "Orders waiting for an admin decision at last dashboard computation",
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
