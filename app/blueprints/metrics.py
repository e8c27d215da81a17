"""
Prometheus metrics: HTTP request instrumentation and POS counters.

/metrics is unauthenticated; keep it on the internal network.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# One registry per worker pool when PROMETHEUS_MULTIPROC_DIR is set
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'HTTP requests currently being processed',
    registry=_metric_registry
)

sales_submitted_total = Counter(
    'pos_sales_submitted_total',
    'Checkouts by outcome (committed, header_only, stock_partial, failed)',
    ['outcome'],
    registry=_metric_registry
)

sale_submission_seconds = Histogram(
    'pos_sale_submission_seconds',
    'Time spent writing a sale (header, line items, stock decrements)',
    registry=_metric_registry,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

receipts_rendered_total = Counter(
    'pos_receipts_rendered_total',
    'Receipts served by format',
    ['format'],
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def start_request_timer():
        g._metrics_started_at = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def record_request_metrics(response):
        started_at = g.pop('_metrics_started_at', None)
        if started_at is None:
            return response

        endpoint = request.endpoint or 'unknown'
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
            time.perf_counter() - started_at
        )
        http_requests_total.labels(
            method=request.method, endpoint=endpoint, http_status=response.status_code
        ).inc()
        http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
