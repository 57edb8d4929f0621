from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every ``DateTime`` column stores."""

    return datetime.now(tz=timezone.utc).replace(tzinfo=None)
