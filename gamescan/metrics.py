"""Prometheus metrics for the scan pipeline."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("gamescan", "Board game scan service info")
app_info.info({"version": "0.1.0", "name": "gamescan"})

# Scan lifecycle metrics
scans_created_total = Counter(
    "scans_created_total",
    "Total number of scans created from uploads",
)

scan_transitions_total = Counter(
    "scan_transitions_total",
    "Total number of scan status transitions",
    ["from_status", "to_status"],
)

# Inference backend metrics
inference_calls_total = Counter(
    "inference_calls_total",
    "Total number of inference backend calls",
    ["operation", "status"],
)

inference_call_duration_seconds = Histogram(
    "inference_call_duration_seconds",
    "Time spent waiting for the inference backend",
    ["operation"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

listing_contract_violations_total = Counter(
    "listing_contract_violations_total",
    "Listing responses rejected for violating the 3/5/5 structure",
)

# Watchdog metrics
stale_scans_recovered_total = Counter(
    "stale_scans_recovered_total",
    "Scans moved to ERROR by the stuck-scan watchdog",
    ["from_status"],
)


def record_scan_created():
    """Record a newly created scan."""
    scans_created_total.inc()


def record_transition(from_status: str, to_status: str):
    """Record a scan status transition."""
    scan_transitions_total.labels(from_status=from_status, to_status=to_status).inc()


def record_inference_call(operation: str, success: bool, duration: float):
    """Record one inference backend call."""
    status = "success" if success else "error"
    inference_calls_total.labels(operation=operation, status=status).inc()
    inference_call_duration_seconds.labels(operation=operation).observe(duration)


def record_listing_contract_violation():
    listing_contract_violations_total.inc()


def record_stale_scan_recovered(from_status: str):
    """Record a scan failed by the watchdog."""
    stale_scans_recovered_total.labels(from_status=from_status).inc()
