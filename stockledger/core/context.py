"""Per-request logging context shared by the middleware, the CLI and the formatter."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
actor_ctx_var: ContextVar[str | None] = ContextVar("actor", default=None)


@contextmanager
def bound_context(*, request_id: str | None, actor: str | None = None) -> Iterator[None]:
    request_token = request_id_ctx_var.set(request_id)
    actor_token = actor_ctx_var.set(actor)
    try:
        yield
    finally:
        actor_ctx_var.reset(actor_token)
        request_id_ctx_var.reset(request_token)
