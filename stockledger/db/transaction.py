from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import PersistenceFailure
from .session import WRITE_TRANSACTION

logger = logging.getLogger(__name__)


@contextmanager
def ledger_transaction(db: Session, operation: str) -> Iterator[Session]:
    """Run the block as one write transaction: commit on success, roll back on any error.

    A read transaction left open on ``db`` (the actor lookup, a refresh) is
    ended first so the write starts from a fresh snapshot holding the write
    lock. Domain errors propagate unchanged. Database errors, including a
    busy lock, become :class:`PersistenceFailure` so callers can tell
    "retry later" apart from "not enough stock".
    """

    try:
        if db.in_transaction():
            db.commit()
        db.connection(execution_options={WRITE_TRANSACTION: True})
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "stock.transaction.failed",
            exc_info=True,
            extra={"extra_data": {"operation": operation}},
        )
        raise PersistenceFailure(f"{operation} aborted by the database") from exc
    except BaseException:
        db.rollback()
        raise
