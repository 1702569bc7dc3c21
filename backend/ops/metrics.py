"""
Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping.

Metrics exposed:
- ledgercore_journal_entries_total: Journal entry transitions by action
- ledgercore_period_transitions_total: Period close/reopen/lock counts
- ledgercore_ledger_repairs_total: Running balances corrected by repair
- ledgercore_ledger_integrity_errors_total: Trial balances that failed to net
- ledgercore_lock_conflicts_total: Commands aborted on a lock conflict
- ledgercore_request_duration_seconds: HTTP request duration histogram
"""
import logging
import re
import time

from django.http import HttpResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)


journal_entries_total = Counter(
    "ledgercore_journal_entries_total",
    "Journal entry state transitions",
    ["action"],
)

period_transitions_total = Counter(
    "ledgercore_period_transitions_total",
    "Accounting period state transitions",
    ["action"],
)

ledger_repairs_total = Counter(
    "ledgercore_ledger_repairs_total",
    "Ledger running balances corrected by the repair fold",
)

ledger_integrity_errors_total = Counter(
    "ledgercore_ledger_integrity_errors_total",
    "Trial balances whose debits and credits did not net to zero",
)

lock_conflicts_total = Counter(
    "ledgercore_lock_conflicts_total",
    "Commands aborted because a row lock could not be acquired",
    ["command"],
)

_request_duration = Histogram(
    "ledgercore_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

_active_requests = Gauge(
    "ledgercore_active_requests",
    "Number of requests currently being processed",
)


def get_prometheus_response():
    """Generate Prometheus metrics response."""
    output = generate_latest()
    return HttpResponse(output, content_type=CONTENT_TYPE_LATEST)


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        return get_prometheus_response()


def _normalize_endpoint(path: str) -> str:
    # Strip IDs for cardinality control
    path = re.sub(r"/\d+/", "/{id}/", path)
    path = re.sub(r"/[0-9a-f-]{36}/", "/{uuid}/", path)
    return path[:50]


def track_request_metrics(get_response):
    """
    Middleware to track request duration metrics.

    Add to MIDDLEWARE after SecurityMiddleware:
        "ops.metrics.track_request_metrics",
    """

    def middleware(request):
        start = time.time()
        status = 500
        _active_requests.inc()
        try:
            response = get_response(request)
            status = response.status_code
            return response
        finally:
            _active_requests.dec()
            _request_duration.labels(
                method=request.method,
                endpoint=_normalize_endpoint(request.path),
                status=f"{status // 100}xx",
            ).observe(time.time() - start)

    return middleware
