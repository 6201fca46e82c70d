"""
Time source for lease logic.

Everything that compares against `expires_at` goes through a clock callable
so tests can move time forward without sleeping.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    """FastAPI dependency; override in tests to control time."""
    return utcnow
