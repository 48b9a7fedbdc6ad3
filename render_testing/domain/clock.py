"""Identity and time helpers shared by the domain entities."""

from datetime import datetime, timezone
from typing import Callable
from uuid import UUID, uuid4

# Injected ID generator: tests pass a deterministic factory instead of uuid4
IdFactory = Callable[[], UUID]

default_id_factory: IdFactory = uuid4


def utcnow() -> datetime:
    """Current time as a tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two instants, never negative."""
    return max(0, int((end - start).total_seconds()))
