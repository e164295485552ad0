from .booking import Booking, BookingStatus, ExistingBooking, admit, can_reserve, cancel, find_conflict, has_time_overlap, transition
from .errors import (
	AlreadyTerminalError,
	BookingError,
	BookingStorageError,
	InvalidOrderingError,
	InvalidRateError,
	InvalidTransitionError,
	MalformedRangeError,
	NotFoundError,
	NotOwnerError,
	OverlapError,
	PastStartError,
)
from .pricing import PricingResult, RateSpec, RateUnit, billing_units, compute
from .values import Money, TimeRange, parse_timestamp
from .yaml_store import BookingYamlRepository, Resource
from .service import (
	BookingConfirmation,
	Quote,
	cancel_booking,
	create_booking,
	get_customer_booking,
	list_customer_bookings,
	list_resources,
	quote,
	update_booking_status,
	update_resource_rate,
)

__all__ = [
	"Booking",
	"BookingStatus",
	"ExistingBooking",
	"admit",
	"can_reserve",
	"cancel",
	"find_conflict",
	"has_time_overlap",
	"transition",
	"AlreadyTerminalError",
	"BookingError",
	"BookingStorageError",
	"InvalidOrderingError",
	"InvalidRateError",
	"InvalidTransitionError",
	"MalformedRangeError",
	"NotFoundError",
	"NotOwnerError",
	"OverlapError",
	"PastStartError",
	"PricingResult",
	"RateSpec",
	"RateUnit",
	"billing_units",
	"compute",
	"Money",
	"TimeRange",
	"parse_timestamp",
	"BookingYamlRepository",
	"Resource",
	"BookingConfirmation",
	"Quote",
	"cancel_booking",
	"create_booking",
	"get_customer_booking",
	"list_customer_bookings",
	"list_resources",
	"quote",
	"update_booking_status",
	"update_resource_rate",
]
