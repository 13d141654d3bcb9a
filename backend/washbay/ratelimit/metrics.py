from prometheus_client import Counter, Histogram

from washbay.monitoring.prometheus_metrics import REGISTRY

rl_decisions = Counter(
    "washbay_rl_decisions_total",
    "rate-limit decisions",
    ["bucket", "action"],
    registry=REGISTRY,
)
rl_retry_after = Histogram(
    "washbay_rl_retry_after_seconds",
    "retry-after values handed to blocked callers",
    ["bucket"],
    registry=REGISTRY,
    buckets=(0.0, 60.0, 300.0, 900.0, 1800.0, 3600.0),
)
rl_eval_errors = Counter(
    "washbay_rl_eval_errors_total",
    "errors during rate-limit evaluation (e.g., Redis failures)",
    ["bucket"],
    registry=REGISTRY,
)

__all__ = [
    "rl_decisions",
    "rl_retry_after",
    "rl_eval_errors",
]
