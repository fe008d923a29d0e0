"""
Quiz Engine
Shared helpers: logging setup, time and shuffle utilities
"""

import logging
import random
import sys
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional, Sequence, TypeVar

from ...config import get_settings

T = TypeVar("T")

# Injectable sources of time and randomness
Clock = Callable[[], datetime]
Shuffler = Callable[[Sequence[T]], List[T]]


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from application settings"""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=settings.LOG_FORMAT,
        stream=sys.stdout,
        force=True
    )
    # SQL echo is controlled by DB_ECHO; keep the engine logger quiet otherwise
    if not settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching stored columns"""
    return datetime.utcnow()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def random_shuffle(items: Sequence[T]) -> List[T]:
    """Return a shuffled copy of items"""
    shuffled = list(items)
    random.shuffle(shuffled)
    return shuffled


def elapsed_minutes(start: datetime, now: datetime) -> float:
    return (now - start).total_seconds() / 60


def percentage_of(part: float, whole: float) -> int:
    """Whole-number percentage rounded half up; 0 when whole is 0"""
    if whole <= 0:
        return 0
    ratio = Decimal(repr(part)) * 100 / Decimal(repr(whole))
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


__all__ = [
    "Clock",
    "Shuffler",
    "setup_logging",
    "utcnow",
    "to_naive_utc",
    "random_shuffle",
    "elapsed_minutes",
    "percentage_of",
]
