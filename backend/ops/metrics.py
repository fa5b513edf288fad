"""
Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping.

Metrics exposed:
- taxdesk_backups: Backups by type and status
- taxdesk_backup_last_success_timestamp: Completion time of the newest global backup
- taxdesk_approval_requests_pending: Pending approval requests by module
- taxdesk_request_duration_seconds: HTTP request duration histogram
- taxdesk_active_requests: In-flight requests
"""
import logging
import re
import time

from django.db.models import Count
from django.http import HttpResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)

BACKUPS = Gauge(
    "taxdesk_backups",
    "Number of backups",
    ["backup_type", "status"],
)

BACKUP_LAST_SUCCESS = Gauge(
    "taxdesk_backup_last_success_timestamp",
    "Unix time of the most recent completed global backup",
)

APPROVALS_PENDING = Gauge(
    "taxdesk_approval_requests_pending",
    "Approval requests waiting for a decision",
    ["module"],
)

REQUEST_DURATION = Histogram(
    "taxdesk_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ACTIVE_REQUESTS = Gauge(
    "taxdesk_active_requests",
    "Number of requests currently being processed",
)

_NUMERIC_ID = re.compile(r"/\d+/")
_UUID = re.compile(r"/[0-9a-f-]{36}/")


def collect_metrics():
    """Refresh gauge values from the database."""
    from approvals.models import ApprovalRequest
    from backups.models import Backup

    BACKUPS.clear()
    for row in Backup.objects.values("backup_type", "status").annotate(count=Count("id")):
        BACKUPS.labels(backup_type=row["backup_type"], status=row["status"]).set(row["count"])

    last = (
        Backup.objects
        .filter(backup_type=Backup.BackupType.GLOBAL, status=Backup.Status.COMPLETED)
        .exclude(completed_at=None)
        .order_by("-completed_at")
        .first()
    )
    BACKUP_LAST_SUCCESS.set(last.completed_at.timestamp() if last else 0)

    APPROVALS_PENDING.clear()
    pending = (
        ApprovalRequest.objects
        .filter(status=ApprovalRequest.Status.PENDING)
        .values("module")
        .annotate(count=Count("id"))
    )
    for row in pending:
        APPROVALS_PENDING.labels(module=row["module"]).set(row["count"])


def get_prometheus_response():
    """Generate Prometheus metrics response."""
    try:
        collect_metrics()
    except Exception as e:
        logger.error(f"Error collecting metrics: {e}")

    return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        return get_prometheus_response()


def normalize_endpoint(path: str) -> str:
    """Collapse ids in a path so label cardinality stays bounded."""
    endpoint = _NUMERIC_ID.sub("/{id}/", path)
    endpoint = _UUID.sub("/{uuid}/", endpoint)
    return endpoint[:50]


def track_request_metrics(get_response):
    """
    Middleware to track request duration metrics.

    Add to MIDDLEWARE after SecurityMiddleware:
        "ops.metrics.track_request_metrics",
    """

    def middleware(request):
        start = time.time()
        status = 500
        ACTIVE_REQUESTS.inc()

        try:
            response = get_response(request)
            status = response.status_code
            return response
        finally:
            ACTIVE_REQUESTS.dec()
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=normalize_endpoint(request.path),
                status=f"{status // 100}xx",
            ).observe(time.time() - start)

    return middleware
