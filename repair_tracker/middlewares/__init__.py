from __future__ import annotations

from .preflight import CORS_HEADERS, OptionsShortCircuitMiddleware
from .request_id import RequestIdMiddleware, connection_id_ctx_var, request_id_ctx_var

__all__ = [
    "CORS_HEADERS",
    "OptionsShortCircuitMiddleware",
    "RequestIdMiddleware",
    "connection_id_ctx_var",
    "request_id_ctx_var",
]
