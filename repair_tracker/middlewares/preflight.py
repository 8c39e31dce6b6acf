from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class OptionsShortCircuitMiddleware(BaseHTTPMiddleware):
    """Answer every ``OPTIONS`` request with an empty 200.

    Sits outside ``CORSMiddleware``, so browser preflights asking for any
    method or header get the same permissive answer as bare ``OPTIONS``.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        return await call_next(request)
