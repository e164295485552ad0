from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
import math

from .errors import InvalidOrderingError, MalformedRangeError

DEFAULT_CURRENCY = "USD"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_timestamp(value: datetime) -> datetime:
    """Return ``value`` as a naive UTC datetime.

    Aware values are converted to UTC; naive values are taken to already be UTC.
    """
    if value.tzinfo is not None and value.utcoffset() is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(tzinfo=None)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a datetime, ISO-8601 string or epoch milliseconds.

    Returns None for anything absent or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    return normalize_timestamp(parsed)


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise MalformedRangeError("Time range start and end must both be timestamps.")
        object.__setattr__(self, "start", normalize_timestamp(self.start))
        object.__setattr__(self, "end", normalize_timestamp(self.end))
        if self.start >= self.end:
            raise InvalidOrderingError()

    @classmethod
    def parse(cls, start: Any, end: Any) -> "TimeRange":
        parsed_start = parse_timestamp(start)
        parsed_end = parse_timestamp(end)
        if parsed_start is None or parsed_end is None:
            raise MalformedRangeError("Start and end must both be valid timestamps.")
        return cls(parsed_start, parsed_end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def to_dict(self) -> dict[str, str]:
        return {
            "start": self.start.isoformat(timespec="seconds"),
            "end": self.end.isoformat(timespec="seconds"),
        }


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def to_dict(self) -> dict[str, str]:
        return {"amount": f"{self.amount:.2f}", "currency": self.currency}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Money":
        return Money(
            amount=Decimal(str(data["amount"])),
            currency=str(data.get("currency") or DEFAULT_CURRENCY),
        )
