"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency and a
short request ID. The ID is stored on request.state so handlers and the
AppError handler can echo it in the ApiResponse envelope.

Log format:
    INFO [POST] /api/v1/relay/orders → 201 (4ms) req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("pm.request")

# Nullifiers and commitments appear in some paths; only their prefix is logged.
_MAX_SEGMENT = 18


def _redact(path: str) -> str:
    return "/".join(s if len(s) <= _MAX_SEGMENT else s[:_MAX_SEGMENT] + "…" for s in path.split("/"))


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = f"req_{uuid.uuid4().hex[:12]}"

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "[%s] %s → %d (%.0fms) %s",
            request.method,
            _redact(request.url.path),
            response.status_code,
            elapsed_ms,
            request.state.request_id,
        )
        response.headers["X-Request-ID"] = request.state.request_id
        return response
