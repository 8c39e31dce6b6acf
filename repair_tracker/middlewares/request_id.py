from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"
DATA_PREFIX = "/data/"

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
# Set for the lifetime of one sync channel so its log lines can be grouped.
connection_id_ctx_var: ContextVar[str | None] = ContextVar("connection_id", default=None)
logger = logging.getLogger("repair_tracker.request")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each HTTP request with a correlation id and log one line for it.

    Requests against ``/data/<name>`` also log the document name; server
    errors are logged as warnings so failed writes stand out.
    """

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER) -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        token = request_id_ctx_var.set(request_id)
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[self.header_name] = request_id
        response.headers.setdefault(RESPONSE_TIME_HEADER, f"{elapsed_ms:.2f}ms")

        path = request.url.path
        fields = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
        }
        if path.startswith(DATA_PREFIX):
            fields["document"] = path[len(DATA_PREFIX):]
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, "request.completed", extra={"extra_data": fields})
        return response
