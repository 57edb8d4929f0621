"""Request dependencies: API key check and acting staff id.

Authentication itself belongs to the calling layer. By the time a request
reaches us it carries a shared API key and the already-authenticated staff id
in ``settings.ACTOR_HEADER``.
"""

from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status

from ..core.config import settings


async def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    configured = (settings.API_KEY or "").strip()
    if not configured:
        return None
    provided = (x_api_key or "").strip()
    if not provided or not hmac.compare_digest(provided, configured):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    return None


async def current_actor_id(request: Request) -> int | None:
    """Return the acting staff id, or ``None`` when the header is absent or malformed.

    A missing actor is not rejected here: the authorization gate denies it
    with the same generic answer as any other refused operation.
    """

    raw = (request.headers.get(settings.ACTOR_HEADER) or "").strip()
    try:
        actor_id = int(raw) if raw else None
    except ValueError:
        actor_id = None
    if actor_id is not None:
        request.state.actor_id = actor_id
    return actor_id
