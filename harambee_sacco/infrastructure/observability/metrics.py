"""Prometheus metrics for credit checks, loan approvals, reports and downloads"""

from prometheus_client import Counter, Histogram

# Credit and lending
credit_check_counter = Counter(
    "sacco_credit_checks_total",
    "Credit checks performed",
    ["status"],  # passed | failed
)

loan_decision_counter = Counter(
    "sacco_quick_loan_decisions_total",
    "Quick loan approval outcomes",
    ["outcome"],  # approved | credit_check_failed | exceeds_limit
)

loan_amount_bucket_counter = Counter(
    "sacco_loan_amount_bucket",
    "Approved quick loans by amount bucket",
    ["bucket"],  # <10k, 10k-50k, 50k-200k, 200k+
)

# Monitoring
suspicious_transaction_counter = Counter(
    "sacco_suspicious_transactions_total",
    "Transactions flagged by large-value monitoring",
)

# Reporting
report_duration_histogram = Histogram(
    "sacco_report_generation_seconds",
    "Report engine latency",
    ["report_type"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

download_counter = Counter(
    "sacco_downloads_total",
    "Export downloads served",
    ["type", "format"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_loan_decision(outcome: str, amount: float = 0.0) -> None:
    """Record quick-loan outcome, bucketing approved amounts for distribution analysis"""
    loan_decision_counter.labels(outcome=outcome).inc()

    if outcome != "approved":
        return

    if amount < 10_000:
        bucket = "<10k"
    elif amount < 50_000:
        bucket = "10k-50k"
    elif amount < 200_000:
        bucket = "50k-200k"
    else:
        bucket = "200k+"

    loan_amount_bucket_counter.labels(bucket=bucket).inc()
