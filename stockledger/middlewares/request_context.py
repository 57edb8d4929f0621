from __future__ import annotations

import logging
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..core.config import settings
from ..core.context import bound_context
from ..core.logging import log_event

logger = logging.getLogger("stockledger.request")

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _clean_request_id(raw: str | None) -> str:
    candidate = (raw or "").strip()
    if _REQUEST_ID_PATTERN.match(candidate):
        return candidate
    return uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id and the acting staff id for the life of a request.

    Everything logged while the request runs (ledger events included) carries
    both values. One ``request.completed`` line is written when it finishes.
    Caller-supplied ids that are not short plain tokens are replaced.
    """

    def __init__(self, app, header_name: str = "X-Request-ID", actor_header: str | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name
        self.actor_header = actor_header or settings.ACTOR_HEADER

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _clean_request_id(request.headers.get(self.header_name))
        actor = (request.headers.get(self.actor_header) or "").strip()[:32] or None
        request.state.request_id = request_id

        started = time.perf_counter()
        with bound_context(request_id=request_id, actor=actor):
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers[self.header_name] = request_id
            response.headers.setdefault("X-Response-Time", f"{elapsed_ms:.2f}ms")
            log_event(
                logger,
                "request.completed",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=elapsed_ms,
            )
        return response
