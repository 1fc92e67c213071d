"""Prometheus metrics for the transaction lifecycle, simulation cycles and chaos injection"""

from prometheus_client import Counter, Histogram, Gauge

# Lifecycle metrics
transaction_counter = Counter(
    "nova_transactions_total",
    "Lifecycle transitions",
    ["status"],  # created | posted | canceled | rejected
)

transaction_rejection_counter = Counter(
    "nova_transaction_rejections_total",
    "Transactions rejected by validation",
    ["code"],
)

pending_gauge = Gauge(
    "nova_pending_transactions",
    "Pending transactions left after the last batch",
)

# Simulation metrics
cycle_duration_histogram = Histogram(
    "nova_cycle_duration_seconds",
    "Simulation cycle wall time",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

cycle_failure_counter = Counter(
    "nova_cycle_failures_total",
    "Cycles aborted by an exception",
)

fraud_alert_counter = Counter(
    "nova_fraud_alerts_total",
    "Fraud alerts raised",
    ["severity"],
)

loan_payment_counter = Counter(
    "nova_loan_payments_total",
    "Loan payment attempts",
    ["outcome"],  # paid | missed | defaulted
)

# Chaos metrics
chaos_failure_counter = Counter(
    "nova_chaos_failures_total",
    "Failures injected by chaos mode",
    ["mode"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(status: str) -> None:
    transaction_counter.labels(status=status).inc()


def record_rejection(code: str) -> None:
    transaction_counter.labels(status="rejected").inc()
    transaction_rejection_counter.labels(code=code).inc()
