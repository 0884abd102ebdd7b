"""
Prometheus metrics for photo management.

- Uploads: outcomes, quota rejections, uploaded bytes
- Processing: pipeline failures by stage
- Storage: backend failures by operation, external request duration
- Audit: appended entries
- HTTP: requests by route and status, request duration
- HA: ready gauge (1=up, 0=shutting down)
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# --- Uploads ---
photo_upload_total = Counter(
    "photo_manager_photo_upload_total",
    "Total number of photo upload attempts",
    ["result"],  # success | quota | processing | storage | failure
    registry=REGISTRY,
)

photo_upload_file_size_bytes = Histogram(
    "photo_manager_photo_upload_file_size_bytes",
    "Photo upload file size in bytes",
    buckets=(1024, 10240, 102400, 512000, 1048576, 5242880, 20971520, 104857600),
    registry=REGISTRY,
)

quota_rejections_total = Counter(
    "photo_manager_quota_rejections_total",
    "Uploads rejected by subscription limits",
    ["reason", "package"],  # reason: size | count
    registry=REGISTRY,
)

photo_mutations_total = Counter(
    "photo_manager_photo_mutations_total",
    "Photo update/delete requests by outcome",
    ["operation", "status"],  # status: applied | not_found | forbidden
    registry=REGISTRY,
)

# --- Processing ---
pipeline_failures_total = Counter(
    "photo_manager_pipeline_failures_total",
    "Processing pipeline stage failures",
    ["stage"],
    registry=REGISTRY,
)

# --- Storage ---
storage_failures_total = Counter(
    "photo_manager_storage_failures_total",
    "Storage backend failures",
    ["backend", "operation"],  # operation: upload | download | delete
    registry=REGISTRY,
)

external_request_total = Counter(
    "photo_manager_external_request_total",
    "Total external API requests by service and outcome",
    ["service", "status"],  # status: success | failure
    registry=REGISTRY,
)

external_request_duration_seconds = Histogram(
    "photo_manager_external_request_duration_seconds",
    "External API request duration in seconds",
    ["service", "result"],  # result: success | failure
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# --- Audit ---
audit_entries_total = Counter(
    "photo_manager_audit_entries_total",
    "Audit log entries appended",
    registry=REGISTRY,
)

# --- Circuit Breaker ---
circuit_breaker_requests_total = Counter(
    "photo_manager_circuit_breaker_requests_total",
    "Total number of requests passed through circuit breaker",
    ["service", "status"],  # status: success | failure | rejected
    registry=REGISTRY,
)

circuit_breaker_state_transitions_total = Counter(
    "photo_manager_circuit_breaker_state_transitions_total",
    "Total number of state transitions",
    ["service", "from_state", "to_state"],
    registry=REGISTRY,
)

circuit_breaker_state = Gauge(
    "photo_manager_circuit_breaker_state",
    "Circuit breaker state (0=CLOSED, 1=OPEN, 2=HALF_OPEN)",
    ["service"],
    registry=REGISTRY,
)

# --- HTTP ---
http_requests_total = Counter(
    "photo_manager_http_requests_total",
    "HTTP requests by method, route template and status class",
    ["method", "route", "status"],
    registry=REGISTRY,
)

http_request_duration_seconds = Histogram(
    "photo_manager_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "route"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "photo_manager_ready",
    "Application ready (1=up, 0=shutting down)",
    registry=REGISTRY,
)


@asynccontextmanager
async def record_external_request(service: str) -> AsyncGenerator[None, None]:
    """
    Context manager recording external request duration and outcome.
    Use around object storage HTTP calls.
    """
    start = time.perf_counter()
    exc_raised = None
    try:
        yield
    except Exception as e:
        exc_raised = e
        external_request_total.labels(service=service, status="failure").inc()
        raise
    finally:
        duration = time.perf_counter() - start
        result = "failure" if exc_raised is not None else "success"
        if exc_raised is None:
            external_request_total.labels(service=service, status="success").inc()
        external_request_duration_seconds.labels(service=service, result=result).observe(duration)
