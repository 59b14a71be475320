from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from .mocks import ANY, FakeDynamoDBClient


def fixed_clock(start: datetime, *, step: timedelta = timedelta(0)) -> Callable[[], datetime]:
    """Clock returning ``start``, then ``start + step``, ``start + 2*step``, ..."""
    if start.tzinfo is None:
        raise ValueError("start must be timezone-aware")

    current = start.astimezone(UTC)

    def now() -> datetime:
        nonlocal current
        out = current
        current = current + step
        return out

    return now


def sequential_uuids(start: int = 1) -> Callable[[], uuid.UUID]:
    if start < 0:
        raise ValueError("start must be >= 0")

    counter = start

    def new_uuid() -> uuid.UUID:
        nonlocal counter
        out = uuid.UUID(int=counter)
        counter += 1
        return out

    return new_uuid


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "fixed_clock",
    "sequential_uuids",
]
