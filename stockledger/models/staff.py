from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, Text

from ..core.clock import utcnow
from ..core.roles import Role
from ..db.session import Base


class Staff(Base):
    """Actor directory row: who a staff member is and whether they may act."""

    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    role = Column(Enum(Role, name="staff_role", native_enum=False, length=32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


__all__ = ["Staff"]
