from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .booking import ExistingBooking


class BookingError(ValueError):
    """Base class for every rejection the booking core can report.

    ``reason`` is a stable machine-readable code; the message is meant for
    people. Transport layers map the class (or the code) to their own
    presentation.
    """

    reason = "booking_error"


class MalformedRangeError(BookingError):
    reason = "malformed_range"


class InvalidOrderingError(BookingError):
    reason = "invalid_ordering"

    def __init__(self, message: str = "End date must be after start date.") -> None:
        super().__init__(message)


class PastStartError(BookingError):
    reason = "past_start"

    def __init__(self, message: str = "Start date cannot be in the past.") -> None:
        super().__init__(message)


class OverlapError(BookingError):
    reason = "overlap"

    def __init__(self, conflict: "ExistingBooking") -> None:
        super().__init__(
            "Requested time overlaps with an existing booking "
            f"({conflict.range.start.isoformat(timespec='minutes')}"
            f"~{conflict.range.end.isoformat(timespec='minutes')})."
        )
        self.conflict = conflict

    @property
    def next_available(self) -> datetime:
        return self.conflict.range.end


class InvalidRateError(BookingError):
    reason = "invalid_rate"


class AlreadyTerminalError(BookingError):
    reason = "already_terminal"

    def __init__(self, booking_id: str, status: str) -> None:
        super().__init__(f"Booking {booking_id} is already {status} and cannot be changed.")
        self.booking_id = booking_id
        self.status = status


class InvalidTransitionError(BookingError):
    reason = "invalid_transition"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid booking status transition: {current} -> {target}")
        self.current = current
        self.target = target


class NotFoundError(BookingError):
    reason = "not_found"


class NotOwnerError(BookingError):
    reason = "not_owner"


class BookingStorageError(RuntimeError):
    pass
