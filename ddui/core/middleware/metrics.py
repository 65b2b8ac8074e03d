import logging

from starlette.middleware.base import BaseHTTPMiddleware

from ddui.core.metrics import http_requests_total


logger = logging.getLogger("ddui.http")

UNMATCHED_ROUTE = "unmatched"


def route_label(scope) -> str:
    """Route template for the request (``/api/inventory``), or UNMATCHED_ROUTE.

    Raw URLs are never used as labels, so probing unknown paths cannot grow
    the number of series.
    """
    route = scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count every request in http_requests_total{method,path,status}."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        try:
            http_requests_total.inc(labels={
                "method": request.method.upper(),
                "path": route_label(request.scope),
                "status": str(response.status_code),
            })
        except Exception:
            logger.debug("metrics.record_failed", exc_info=True)
        return response
