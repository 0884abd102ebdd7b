"""
Request logging and HTTP metrics.

Every API request gets a request id (client supplied or generated) that is
echoed back in ``X-Request-ID``. Requests are counted per route template so
photo ids never become metric labels.
"""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from photo_manager.utils.logger import log_error, log_warning, set_request_id
from photo_manager.utils.metrics import http_request_duration_seconds, http_requests_total

# Slow response threshold (ms)
SLOW_REQUEST_THRESHOLD_MS = 3000

REQUEST_ID_HEADER = "X-Request-ID"

# Paths that are neither logged nor tagged with a request id
EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc", "/metrics", "/favicon.ico"}


def route_template(request: Request) -> str:
    """``/photos/{photo_id}`` rather than the concrete path; "unmatched" for 404s outside any route."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging.

    - 5xx responses -> ERROR
    - 4xx responses -> WARNING (quota rejections, denied mutations, bad tokens)
    - responses slower than 3s -> WARNING
    - successful responses are only counted
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        rid = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        client_ip = request.client.host if request.client else None
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - start
            route = route_template(request)
            http_requests_total.labels(method=request.method, route=route, status="5xx").inc()
            log_error(
                f"Request exception: {e}",
                error_type=type(e).__name__,
                http_method=request.method,
                http_route=route,
                duration_ms=round(elapsed * 1000, 2),
                client_ip=client_ip,
                request_id=rid,
                event="request",
                exc_info=True,
            )
            # the global exception handler turns this into a 500
            raise

        elapsed = time.perf_counter() - start
        duration_ms = round(elapsed * 1000, 2)
        route = route_template(request)
        status_code = response.status_code
        response.headers[REQUEST_ID_HEADER] = rid

        http_requests_total.labels(
            method=request.method, route=route, status=f"{status_code // 100}xx"
        ).inc()
        http_request_duration_seconds.labels(method=request.method, route=route).observe(elapsed)

        context = dict(
            http_method=request.method,
            http_path=request.url.path,
            http_route=route,
            http_status=status_code,
            duration_ms=duration_ms,
            request_id=rid,
            event="request",
        )
        if status_code >= 500:
            log_error(
                "Request error - Server error occurred",
                error_code=f"HTTP_{status_code}",
                client_ip=client_ip,
                **context,
            )
        elif status_code >= 400:
            log_warning("Request failed - Client error", client_ip=client_ip, **context)
        elif duration_ms >= SLOW_REQUEST_THRESHOLD_MS:
            log_warning("Slow request detected", performance_issue=True, **context)

        return response
