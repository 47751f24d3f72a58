"""Prometheus metrics for the Static Site Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "static_site_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "static_site_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0],
)

error_total = Counter(
    "static_site_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "static_site_operator_resource_status_total",
    "Resource status transitions",
    ["kind", "status"],
)

# Graph node metrics
node_operations_total = Counter(
    "static_site_operator_node_operations_total",
    "Total number of resource node operations",
    ["node", "operation", "result"],
)

# Configuration drift detection metrics
drift_detected_total = Counter(
    "static_site_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind", "resource_type"],
)

# API call metrics
api_call_total = Counter(
    "static_site_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "static_site_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "static_site_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)

certificate_wait_seconds = Histogram(
    "static_site_operator_certificate_wait_seconds",
    "Time spent waiting for certificate issuance",
    buckets=[1.0, 30.0, 60.0, 300.0, 900.0, 1800.0, 2700.0],
)
