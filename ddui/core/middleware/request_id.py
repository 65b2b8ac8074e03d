import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from ddui.core.logging import bind_request_id, latency_bucket_ms, reset_request_id


logger = logging.getLogger("ddui.http")

REQUEST_ID_HEADER = "x-request-id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlate each request with an id (client-supplied or generated).

    The id is bound to the logging context for the lifetime of the handler,
    stored on ``request.state`` and echoed in the response header.
    """

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = bind_request_id(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        response.headers[self.header_name] = rid
        # Streamed bodies (ci runs) are timed to the headers, not the last chunk.
        logger.info(
            "request.complete",
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
            },
        )
        return response
