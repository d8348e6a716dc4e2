import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import request_id_var

logger = logging.getLogger("app.http")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Every request gets an id: taken from the inbound header when present,
    generated otherwise. It is echoed on the response and bound to the
    logging context for the lifetime of the request.
    """

    def __init__(self, app, header_name: str = "X-Request-Id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.request_id = rid
        token = request_id_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[self.header_name] = rid
        logger.info(
            "[http] %s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"request_id": rid, "duration_ms": round((time.perf_counter() - started) * 1000, 1)},
        )
        return response
