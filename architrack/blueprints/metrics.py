"""
Prometheus metrics blueprint.

Exposes /metrics with HTTP request metrics and itemized statement counters.
This endpoint should be restricted to internal network or monitoring systems only.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# Check if running in multi-process mode (Gunicorn)
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

_metric_registry = registry if not MULTIPROCESS_MODE else None

# HTTP Request Metrics
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
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    registry=_metric_registry
)

# Itemized statement metrics
itemized_statements_created_total = Counter(
    'itemized_statements_created_total',
    'Itemized statements generated from quantity tables',
    registry=_metric_registry
)

itemized_statement_delete_conflicts_total = Counter(
    'itemized_statement_delete_conflicts_total',
    'Delete requests rejected because of a stale version token',
    registry=_metric_registry
)

itemized_statement_exports_total = Counter(
    'itemized_statement_exports_total',
    'Itemized statement exports',
    ['format'],
    registry=_metric_registry
)

itemized_statement_export_rows = Histogram(
    'itemized_statement_export_rows',
    'Rows written per itemized statement export',
    ['format'],
    registry=_metric_registry,
    buckets=(0, 10, 50, 100, 250, 500, 1000, 2000)
)

# Scrapes of /metrics itself are not counted
UNTRACKED_ENDPOINTS = frozenset({'metrics.metrics', 'static'})


def record_export(export_format, row_count):
    """Count one finished export and its size."""
    itemized_statement_exports_total.labels(format=export_format).inc()
    itemized_statement_export_rows.labels(format=export_format).observe(row_count)


def setup_metrics_instrumentation(app):
    """
    Register before_request/after_request hooks for HTTP metrics.

    Called from the app factory.
    """

    @app.before_request
    def before_request_metrics():
        if request.endpoint in UNTRACKED_ENDPOINTS:
            return
        g._prometheus_metrics_start_time = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        start = g.pop('_prometheus_metrics_start_time', None)
        if start is None:
            return response
        try:
            # e.g. 'itemized_statements.query_rows'
            endpoint = request.endpoint or 'unknown'

            http_request_duration_seconds.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(time.perf_counter() - start)

            http_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                http_status=response.status_code
            ).inc()
        except Exception as e:
            # Don't break request flow if metrics fail
            app.logger.warning(f"Failed to record metrics: {e}")
        finally:
            http_requests_in_flight.dec()

        return response


@metrics_bp.route('/metrics')
def metrics():
    """
    Prometheus metrics endpoint.

    Not authenticated: restrict it by network rules in production.
    """
    data = generate_latest(registry)
    return Response(data, mimetype=CONTENT_TYPE_LATEST)
