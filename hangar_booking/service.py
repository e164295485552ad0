from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from .booking import Booking, BookingStatus, admit, cancel, transition
from .errors import BookingError, InvalidRateError, NotFoundError, NotOwnerError
from .pricing import PricingResult, RateSpec, RateUnit, compute, validate_rate
from .values import TimeRange, normalize_timestamp, utcnow
from .yaml_store import BookingYamlRepository, Resource

RESOURCE_SORT_KEYS = ("name", "price")


@dataclass(frozen=True)
class Quote:
    resource_id: str
    range: TimeRange
    pricing: PricingResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "dates": self.range.to_dict(),
            **self.pricing.to_dict(),
        }


@dataclass(frozen=True)
class BookingConfirmation:
    booking: Booking
    pricing: PricingResult

    def summary(self) -> dict[str, Any]:
        return {**self.pricing.to_dict(), "dates": self.booking.range.to_dict()}


def quote(
    repository: BookingYamlRepository,
    resource_id: str,
    start: Any,
    end: Any,
    now: datetime | None = None,
) -> Quote:
    """Validate and price a range without creating anything."""
    effective_now = _effective_now(now)
    _require_resource(repository, resource_id)

    time_range = admit(resource_id, start, end, repository.fetch_active_ranges_for_resource(resource_id), effective_now)
    pricing = compute(time_range, repository.fetch_rate_spec(resource_id))
    return Quote(resource_id=resource_id, range=time_range, pricing=pricing)


def create_booking(
    repository: BookingYamlRepository,
    resource_id: str,
    customer_id: str,
    start: Any,
    end: Any,
    requirements: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> BookingConfirmation:
    """Admit, price and persist a new pending booking.

    Nothing is written unless the range is admitted and the resource's rate
    prices it. The overlap check and the insert run under the store's lock.
    """
    effective_now = _effective_now(now)
    customer_id = _require_text(customer_id, "customer_id")
    normalized_requirements = _normalize_requirements(requirements)

    with repository.transaction():
        _require_resource(repository, resource_id)
        existing = repository.fetch_active_ranges_for_resource(resource_id)
        time_range = admit(resource_id, start, end, existing, effective_now)
        pricing = compute(time_range, repository.fetch_rate_spec(resource_id))

        booking = Booking(
            booking_id=str(uuid4()),
            resource_id=resource_id,
            customer_id=customer_id,
            range=time_range,
            status=BookingStatus.PENDING,
            total_price=pricing.as_money(),
            created_at=effective_now,
            updated_at=effective_now,
            requirements=normalized_requirements,
        )
        repository.insert_booking(booking, effective_now)

    return BookingConfirmation(booking=booking, pricing=pricing)


def cancel_booking(
    repository: BookingYamlRepository,
    booking_id: str,
    requester_id: str,
    now: datetime | None = None,
) -> Booking:
    effective_now = _effective_now(now)
    with repository.transaction():
        booking = get_customer_booking(repository, booking_id, requester_id)
        cancelled = cancel(booking, effective_now)
        return repository.save_booking(cancelled, "BOOKING_CANCELLED", effective_now)


def update_booking_status(
    repository: BookingYamlRepository,
    booking_id: str,
    status: BookingStatus | str,
    now: datetime | None = None,
) -> Booking:
    """Move a booking along its lifecycle on behalf of the operator workflow."""
    effective_now = _effective_now(now)
    try:
        target = BookingStatus(status)
    except ValueError as error:
        raise BookingError(f"Unknown booking status: {status!r}") from error

    with repository.transaction():
        booking = repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking not found: {booking_id}")
        updated = transition(booking, target, effective_now)
        return repository.save_booking(updated, "BOOKING_STATUS_CHANGED", effective_now)


def get_customer_booking(repository: BookingYamlRepository, booking_id: str, requester_id: str) -> Booking:
    booking = repository.get_booking(booking_id)
    if booking is None:
        raise NotFoundError(f"Booking not found: {booking_id}")
    if booking.customer_id != requester_id:
        raise NotOwnerError("This booking belongs to another customer.")
    return booking


def list_customer_bookings(repository: BookingYamlRepository, customer_id: str) -> list[Booking]:
    bookings = repository.list_bookings(customer_id=customer_id)
    bookings.sort(key=lambda booking: booking.created_at, reverse=True)
    return bookings


def update_resource_rate(
    repository: BookingYamlRepository,
    resource_id: str,
    amount: Any,
    currency: str | None = None,
    unit: RateUnit | str | None = None,
    now: datetime | None = None,
) -> Resource:
    current = _require_resource(repository, resource_id)
    if unit is None:
        unit = current.rate.unit if current.rate is not None else RateUnit.HOUR
    return repository.set_rate(resource_id, RateSpec(amount=amount, unit=unit, currency=currency), _effective_now(now))


def list_resources(
    repository: BookingYamlRepository,
    search: str | None = None,
    category: str | None = None,
    kind: str | None = None,
    max_price: Any = None,
    sort_by: str = "name",
) -> list[Resource]:
    """Return resources matching the given filters.

    Every filter is an explicit argument; nothing is remembered between calls.
    Resources without a usable rate never match a ``max_price`` filter and
    sort last by price.
    """
    if sort_by not in RESOURCE_SORT_KEYS:
        raise ValueError(f"sort_by must be one of {', '.join(RESOURCE_SORT_KEYS)}")

    price_cap: Decimal | None = None
    if max_price is not None and str(max_price).strip():
        try:
            price_cap, _ = validate_rate(RateSpec(amount=max_price))
        except InvalidRateError as error:
            raise ValueError(f"max_price must be a non-negative number: {max_price!r}") from error

    needle = (search or "").strip().lower()
    selected: list[Resource] = []
    for resource in repository.list_resources():
        if needle and needle not in resource.name.lower() and needle not in (resource.category or "").lower():
            continue
        if category and resource.category != category:
            continue
        if kind and resource.kind != kind:
            continue
        if price_cap is not None:
            price = _rate_amount(resource)
            if price is None or price > price_cap:
                continue
        selected.append(resource)

    if sort_by == "price":
        selected.sort(key=lambda resource: (_rate_amount(resource) is None, _rate_amount(resource) or Decimal(0), resource.name))
    else:
        selected.sort(key=lambda resource: resource.name.lower())
    return selected


def _rate_amount(resource: Resource) -> Decimal | None:
    try:
        amount, _ = validate_rate(resource.rate)
    except InvalidRateError:
        return None
    return amount


def _require_resource(repository: BookingYamlRepository, resource_id: str) -> Resource:
    resource = repository.get_resource(resource_id)
    if resource is None:
        raise NotFoundError(f"Resource not found: {resource_id}")
    return resource


def _require_text(value: Any, label: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise BookingError(f"{label} must not be empty")
    return text


def _normalize_requirements(requirements: dict[str, Any] | None) -> dict[str, Any]:
    if requirements is None:
        return {}
    if not isinstance(requirements, dict):
        raise BookingError("requirements must be a mapping")

    normalized: dict[str, Any] = {}
    aircraft = requirements.get("aircraft")
    if isinstance(aircraft, dict):
        details = {
            "type": aircraft.get("type"),
            "registration_number": aircraft.get("registration_number", aircraft.get("registrationNumber")),
            "size": aircraft.get("size"),
        }
        normalized["aircraft"] = {key: str(value) for key, value in details.items() if value not in (None, "")}

    special = requirements.get("special_requests", requirements.get("specialRequests"))
    if special not in (None, ""):
        normalized["special_requests"] = str(special)
    return normalized


def has_valid_rate(resource: Resource) -> bool:
    return _rate_amount(resource) is not None


def _effective_now(now: datetime | None) -> datetime:
    return normalize_timestamp(now) if now is not None else utcnow()
