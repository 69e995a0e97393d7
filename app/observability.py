import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY

logger = logging.getLogger(__name__)


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and records Prometheus request metrics.

    Metrics are labelled with the route template so signing and download
    tokens never end up in label values.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration = time.monotonic() - start
            path = _route_path(request)
            REQUEST_COUNT.labels(request.method, path, status).inc()
            REQUEST_LATENCY.labels(request.method, path, status).observe(duration)
            if status.startswith("5"):
                REQUEST_ERRORS.labels(request.method, path, status).inc()
            logger.info(
                "%s %s -> %s (%.1f ms)",
                request.method,
                path,
                status,
                duration * 1000,
                extra={"request_id": request_id},
            )
