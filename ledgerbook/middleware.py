"""
Request logging middleware.

Every response is marked `Cache-Control: no-store`: ledger pages and
balances change with every write and carry per-user data, so no
intermediary may keep a copy.

Only method, path, status and duration are logged. Bodies (passwords,
tokens) and query strings never reach the log.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["Cache-Control"] = "no-store"

        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "%s %s -> %d (%.1f ms)",
            request.method, request.url.path, response.status_code, duration_ms,
        )
        return response
