"""Actor directory backed by the ``staff`` table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.exceptions import ActorUnavailable, PersistenceFailure
from ..core.roles import Role, normalize_role
from ..models.staff import Staff


@dataclass(frozen=True)
class StaffRecord:
    id: int
    role: Role | None
    is_active: bool


class ActorDirectory(Protocol):
    def lookup(self, actor_id: int) -> StaffRecord | None:
        """Return the actor's role and status, ``None`` if unknown.

        Raises :class:`ActorUnavailable` when the directory cannot answer and
        :class:`PersistenceFailure` when the database behind it is busy or down.
        """


class SqlActorDirectory:
    """Reads actors through the caller's session.

    A busy or unreachable database (``OperationalError``) is a
    :class:`PersistenceFailure` and propagates as such; the gate only turns a
    directory that answered badly into a denial.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def lookup(self, actor_id: int) -> StaffRecord | None:
        try:
            staff = self.db.get(Staff, actor_id)
        except OperationalError as exc:
            self.db.rollback()
            raise PersistenceFailure(f"actor lookup for {actor_id} could not reach the database") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise ActorUnavailable(f"actor directory lookup failed for {actor_id}") from exc
        if staff is None:
            return None
        return StaffRecord(id=staff.id, role=normalize_role(staff.role), is_active=bool(staff.is_active))


def get_staff(db: Session, staff_id: int) -> Staff | None:
    return db.get(Staff, staff_id)


def create_staff(db: Session, payload: dict, *, clock: Clock = utcnow) -> Staff:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("name is required")
    role = normalize_role(payload.get("role"))
    if role is None:
        raise ValueError(f"unknown role {payload.get('role')!r}")
    staff = Staff(
        name=name,
        role=role,
        is_active=bool(payload.get("is_active", True)),
        created_at=clock(),
    )
    db.add(staff)
    db.commit()
    db.refresh(staff)
    return staff


def set_staff_active(db: Session, staff: Staff, is_active: bool) -> Staff:
    staff.is_active = is_active
    db.commit()
    db.refresh(staff)
    return staff
