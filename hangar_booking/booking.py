from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from .errors import (
    AlreadyTerminalError,
    InvalidOrderingError,
    InvalidTransitionError,
    MalformedRangeError,
    OverlapError,
    PastStartError,
)
from .values import Money, TimeRange, normalize_timestamp, parse_timestamp


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})

# Forward-only; cancelled and completed have no way out.
_ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


@dataclass(frozen=True)
class ExistingBooking:
    booking_id: str
    resource_id: str
    range: TimeRange
    status: BookingStatus = BookingStatus.PENDING


@dataclass(frozen=True)
class Booking:
    booking_id: str
    resource_id: str
    customer_id: str
    range: TimeRange
    status: BookingStatus
    total_price: Money
    created_at: datetime
    updated_at: datetime
    payment_status: str = "pending"
    requirements: dict[str, Any] = field(default_factory=dict)

    def as_existing(self) -> ExistingBooking:
        return ExistingBooking(
            booking_id=self.booking_id,
            resource_id=self.resource_id,
            range=self.range,
            status=self.status,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "resource_id": self.resource_id,
            "customer_id": self.customer_id,
            "start": self.range.start.isoformat(timespec="seconds"),
            "end": self.range.end.isoformat(timespec="seconds"),
            "status": self.status.value,
            "total_price": self.total_price.to_dict(),
            "payment_status": self.payment_status,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
            "requirements": dict(self.requirements),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Booking":
        return Booking(
            booking_id=str(data["booking_id"]),
            resource_id=str(data["resource_id"]),
            customer_id=str(data["customer_id"]),
            range=TimeRange(
                datetime.fromisoformat(str(data["start"])),
                datetime.fromisoformat(str(data["end"])),
            ),
            status=BookingStatus(str(data["status"])),
            total_price=Money.from_dict(data["total_price"]),
            payment_status=str(data.get("payment_status") or "pending"),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data.get("updated_at") or data["created_at"])),
            requirements=dict(data.get("requirements") or {}),
        )


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals share at least one instant.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise InvalidOrderingError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise InvalidOrderingError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and exist_start < new_end


def find_conflict(resource_id: str, proposed: TimeRange, existing: Iterable[ExistingBooking]) -> ExistingBooking | None:
    """Return the first live booking of ``resource_id`` that intersects ``proposed``."""
    for booking in existing:
        if booking.resource_id != resource_id or booking.status == BookingStatus.CANCELLED:
            continue
        if has_time_overlap(proposed.start, proposed.end, booking.range.start, booking.range.end):
            return booking
    return None


def can_reserve(proposed: TimeRange, existing_ranges: Iterable[TimeRange]) -> bool:
    """Return True if the requested range does not overlap any of ``existing_ranges``."""
    for existing in existing_ranges:
        if has_time_overlap(proposed.start, proposed.end, existing.start, existing.end):
            return False
    return True


def admit(
    resource_id: str,
    start: Any,
    end: Any,
    existing: Iterable[ExistingBooking],
    now: datetime,
) -> TimeRange:
    """Check a proposed reservation and return it as a TimeRange.

    Rules run in order and the first failure is raised:

    1. start and end must be present and parseable (MalformedRangeError)
    2. start must be strictly before end (InvalidOrderingError)
    3. start must not be before ``now``; equal is fine (PastStartError)
    4. no live booking of the same resource may intersect the
       half-open range (OverlapError, carrying the conflicting booking)

    ``existing`` is only read.
    """
    parsed_start = parse_timestamp(start)
    parsed_end = parse_timestamp(end)
    if parsed_start is None or parsed_end is None:
        raise MalformedRangeError("Start and end must both be valid timestamps.")

    if parsed_start >= parsed_end:
        raise InvalidOrderingError()

    if parsed_start < normalize_timestamp(now):
        raise PastStartError()

    proposed = TimeRange(parsed_start, parsed_end)
    conflict = find_conflict(resource_id, proposed, existing)
    if conflict is not None:
        raise OverlapError(conflict)
    return proposed


def transition(booking: Booking, target: BookingStatus | str, now: datetime | None = None) -> Booking:
    try:
        target = BookingStatus(target)
    except ValueError as error:
        raise InvalidTransitionError(booking.status.value, str(target)) from error
    if booking.status in TERMINAL_STATUSES:
        raise AlreadyTerminalError(booking.booking_id, booking.status.value)
    if target not in _ALLOWED_TRANSITIONS[booking.status]:
        raise InvalidTransitionError(booking.status.value, target.value)
    return replace(booking, status=target, updated_at=now or booking.updated_at)


def cancel(booking: Booking, now: datetime | None = None) -> Booking:
    """Return ``booking`` moved to cancelled.

    Cancelling a cancelled or completed booking raises AlreadyTerminalError,
    so a repeated cancel is rejected instead of being applied twice.
    """
    return transition(booking, BookingStatus.CANCELLED, now)
