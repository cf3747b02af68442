"""
Prometheus metrics for the team event sync service.

This module defines all Prometheus metrics used for monitoring and observability.
HTTP request metrics come from prometheus-fastapi-instrumentator (see app.main).

Metrics exposed:
- TBA API request counters by endpoint and outcome
- Sync run counters and duration histogram by operation
- Webhook delivery counters by message type
- Database connection pool gauges
- Scheduler status gauges
"""
from prometheus_client import Counter, Gauge, Histogram

# External API Metrics
tba_api_requests_total = Counter(
    "tba_api_requests_total",
    "Total requests to The Blue Alliance API",
    ["endpoint", "outcome"]
)

# Sync Metrics
event_sync_runs_total = Counter(
    "event_sync_runs_total",
    "Total event sync operations",
    ["operation", "status"]
)

event_sync_duration_seconds = Histogram(
    "event_sync_duration_seconds",
    "Event sync operation duration in seconds",
    ["operation"]
)

# Webhook Metrics
webhooks_received_total = Counter(
    "webhooks_received_total",
    "Total TBA webhook deliveries received",
    ["message_type"]
)

# Database Metrics
db_pool_connections = Gauge(
    "db_pool_connections",
    "Number of database connections in the pool"
)

db_pool_connections_checked_out = Gauge(
    "db_pool_connections_checked_out",
    "Number of checked out database connections"
)

# Scheduler Metrics
event_scheduler_running = Gauge(
    "event_scheduler_running",
    "Whether the event scheduler is running (1=running, 0=stopped)"
)

event_scheduler_jobs_total = Gauge(
    "event_scheduler_jobs_total",
    "Total number of scheduled event jobs"
)


def update_db_pool_metrics():
    """
    Update database connection pool metrics from SQLAlchemy engine.

    Call this periodically to update pool metrics.
    """
    from app.core.database import get_engine

    pool = get_engine().pool
    if pool and hasattr(pool, "size"):
        db_pool_connections.set(pool.size())
        db_pool_connections_checked_out.set(pool.checkedout())


def update_scheduler_metrics(running: bool, job_count: int = 0):
    """Update scheduler status gauges."""
    event_scheduler_running.set(1 if running else 0)
    event_scheduler_jobs_total.set(job_count if running else 0)


def record_tba_request(endpoint: str, outcome: str):
    """Record a TBA API request (outcome: success, not_found, http_error, network_error, ...)."""
    tba_api_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()


def record_sync_run(operation: str, success: bool, skipped: bool = False, duration_seconds: float = 0.0):
    """Record the outcome of a sync engine operation."""
    status = "skipped" if skipped else ("success" if success else "failure")
    event_sync_runs_total.labels(operation=operation, status=status).inc()
    event_sync_duration_seconds.labels(operation=operation).observe(duration_seconds)


def record_webhook(message_type: str):
    """Record a TBA webhook delivery."""
    webhooks_received_total.labels(message_type=message_type or "unknown").inc()
