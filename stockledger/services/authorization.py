"""Authorization gate for ledger operations.

The gate is a pure decision: look the actor up, map the role through
``core.roles.CAPABILITIES`` and answer yes or no. A directory that cannot
answer is a "no". Only :class:`PersistenceFailure` (the database itself is
busy or down) passes through, so a retryable outage never reads as a denial.
"""

from __future__ import annotations

import logging

from ..core.exceptions import ActorUnavailable, Unauthorized
from ..core.logging import log_event
from ..core.roles import Operation, role_allows
from ..crud.staff import ActorDirectory, StaffRecord

logger = logging.getLogger(__name__)


def _resolve(directory: ActorDirectory, actor_id: int | None, operation: Operation) -> StaffRecord | None:
    if actor_id is None:
        return None
    try:
        record = directory.lookup(actor_id)
    except ActorUnavailable:
        logger.warning(
            "stock.authorization.actor_unavailable",
            exc_info=True,
            extra={"extra_data": {"actor_id": actor_id, "operation": operation.value}},
        )
        return None
    if record is None or not record.is_active:
        return None
    if not role_allows(record.role, operation):
        return None
    return record


def authorize(directory: ActorDirectory, actor_id: int | None, operation: Operation) -> bool:
    """Return ``True`` when ``actor_id`` may perform ``operation``."""

    return _resolve(directory, actor_id, operation) is not None


def require(directory: ActorDirectory, actor_id: int | None, operation: Operation) -> StaffRecord:
    """Like :func:`authorize` but raise :class:`Unauthorized` on denial."""

    record = _resolve(directory, actor_id, operation)
    if record is None:
        log_event(
            logger,
            "stock.authorization.denied",
            logging.WARNING,
            actor_id=actor_id,
            operation=operation.value,
        )
        raise Unauthorized()
    return record
