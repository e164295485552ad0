from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from threading import Lock, RLock
from typing import Any, Iterator
import shutil
from uuid import uuid4

import yaml

from .booking import Booking, BookingStatus, ExistingBooking, find_conflict
from .errors import BookingStorageError, InvalidRateError, NotFoundError, OverlapError
from .pricing import RateSpec, validate_rate
from .values import DEFAULT_CURRENCY, utcnow

RESOURCE_KINDS = ("hangar", "service")

_STORE_LOCKS: dict[Path, RLock] = {}
_STORE_LOCKS_GUARD = Lock()


@dataclass(frozen=True)
class Resource:
    resource_id: str
    name: str
    kind: str = "hangar"
    category: str | None = None
    status: str = "available"
    location: dict[str, Any] = field(default_factory=dict)
    rate: RateSpec | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "name": self.name,
            "kind": self.kind,
            "category": self.category,
            "status": self.status,
            "location": dict(self.location),
            "pricing": self.rate.to_dict() if self.rate is not None else None,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Resource":
        kind = str(data.get("kind") or "hangar")
        try:
            rate: RateSpec | None = RateSpec.from_mapping(data)
        except InvalidRateError:
            rate = None

        return Resource(
            resource_id=str(data["resource_id"]),
            name=str(data.get("name") or data["resource_id"]),
            kind=kind,
            category=(str(data["category"]) if data.get("category") is not None else None),
            status=str(data.get("status") or "available"),
            location=dict(data.get("location") or {}),
            rate=rate,
        )


DEMO_RESOURCES: list[dict[str, Any]] = [
    {
        "resource_id": "hangar-a1",
        "name": "Hangar A1",
        "kind": "hangar",
        "category": "storage",
        "location": {"address": "North Apron 1", "city": "Reno", "country": "US"},
        "basePrice": {"amount": 450, "unit": "day", "currency": "USD"},
    },
    {
        "resource_id": "hangar-b2",
        "name": "Hangar B2",
        "kind": "hangar",
        "category": "storage",
        "location": {"address": "South Apron 4", "city": "Reno", "country": "US"},
        "basePrice": {"amount": 75, "unit": "hour", "currency": "USD"},
    },
    {
        "resource_id": "svc-annual-inspection",
        "name": "Annual Inspection",
        "kind": "service",
        "category": "inspection",
        "pricing": {"amount": 120, "unit": "hour", "currency": "USD"},
    },
    {
        "resource_id": "svc-engine-repair",
        "name": "Engine Repair",
        "kind": "service",
        "category": "repair",
        "pricePerHour": 185,
    },
    {
        "resource_id": "svc-wash-detail",
        "name": "Wash & Detail",
        "kind": "service",
        "category": "maintenance",
        "pricing": {"amount": 60, "unit": "hour", "currency": "USD"},
    },
]


class BookingYamlRepository:
    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.resources_file = self.base_dir / "resources.yaml"
        self.bookings_file = self.base_dir / "bookings.yaml"
        self.log_file = self.base_dir / "booking_events.yaml"
        self._lock = _lock_for(self.base_dir)
        self._ensure_files()

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.resources_file, self.bookings_file, self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    @contextmanager
    def transaction(self) -> Iterator["BookingYamlRepository"]:
        """Hold the store lock for a read-check-write sequence.

        Every repository opened on the same directory shares the lock, so an
        overlap check and the insert that follows it cannot interleave with
        another booking for the same store in this process.
        """
        with self._lock:
            yield self

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise BookingStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            pass

        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or utcnow()).isoformat(timespec="seconds")
        with self._lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def get_events(self) -> list[dict[str, Any]]:
        return self._read_yaml_list(self.log_file)

    # Resources

    def list_resources(self) -> list[Resource]:
        return [Resource.from_dict(row) for row in self._read_yaml_list(self.resources_file)]

    def get_resource(self, resource_id: str) -> Resource | None:
        for row in self._read_yaml_list(self.resources_file):
            if str(row.get("resource_id")) == resource_id:
                return Resource.from_dict(row)
        return None

    def add_resource(
        self,
        name: str,
        kind: str = "hangar",
        *,
        category: str | None = None,
        location: dict[str, Any] | None = None,
        rate: RateSpec | None = None,
        resource_id: str | None = None,
        now: datetime | None = None,
    ) -> Resource:
        name = _normalize_identifier(name, "name")
        if kind not in RESOURCE_KINDS:
            raise ValueError(f"kind must be one of {', '.join(RESOURCE_KINDS)}")
        if rate is not None:
            validate_rate(rate)

        resource = Resource(
            resource_id=_normalize_identifier(resource_id, "resource_id") if resource_id is not None else str(uuid4()),
            name=name,
            kind=kind,
            category=category,
            location=dict(location or {}),
            rate=rate,
        )
        with self._lock:
            rows = self._read_yaml_list(self.resources_file)
            if any(str(row.get("resource_id")) == resource.resource_id for row in rows):
                raise ValueError(f"resource_id already exists: {resource.resource_id}")
            rows.append(resource.to_dict())
            self._write_yaml_list(self.resources_file, rows)

            self._log_event(
                "RESOURCE_ADDED",
                {"resource_id": resource.resource_id, "name": resource.name, "kind": resource.kind},
                now,
            )
        return resource

    def set_rate(self, resource_id: str, rate: RateSpec, now: datetime | None = None) -> Resource:
        amount, unit = validate_rate(rate)
        normalized = RateSpec(amount=amount, unit=unit, currency=rate.currency or DEFAULT_CURRENCY)

        with self._lock:
            rows = self._read_yaml_list(self.resources_file)
            found_index = _index_of(rows, "resource_id", resource_id)
            if found_index < 0:
                raise NotFoundError(f"Resource not found: {resource_id}")

            current = Resource.from_dict(rows[found_index])
            updated = Resource(
                resource_id=current.resource_id,
                name=current.name,
                kind=current.kind,
                category=current.category,
                status=current.status,
                location=current.location,
                rate=normalized,
            )
            rows[found_index] = updated.to_dict()
            self._write_yaml_list(self.resources_file, rows)

            self._log_event(
                "RATE_UPDATED",
                {"resource_id": resource_id, **normalized.to_dict()},
                now,
            )
        return updated

    def fetch_rate_spec(self, resource_id: str) -> RateSpec:
        resource = self.get_resource(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource not found: {resource_id}")
        if resource.rate is None:
            raise InvalidRateError(f"Resource {resource_id} has no pricing configuration.")
        return resource.rate

    # Bookings

    def list_bookings(self, customer_id: str | None = None, resource_id: str | None = None) -> list[Booking]:
        return [
            booking
            for booking in self._load_bookings()
            if (customer_id is None or booking.customer_id == customer_id)
            and (resource_id is None or booking.resource_id == resource_id)
        ]

    def get_booking(self, booking_id: str) -> Booking | None:
        for booking in self._load_bookings():
            if booking.booking_id == booking_id:
                return booking
        return None

    def _load_bookings(self) -> list[Booking]:
        bookings: list[Booking] = []
        for index, row in enumerate(self._read_yaml_list(self.bookings_file)):
            try:
                bookings.append(Booking.from_dict(row))
            except (KeyError, TypeError, ValueError, ArithmeticError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(self.bookings_file.name),
                        "index": index,
                        "reason": f"unreadable booking row: {error}",
                    },
                )
        return bookings

    def fetch_active_ranges_for_resource(self, resource_id: str) -> list[ExistingBooking]:
        return [
            booking.as_existing()
            for booking in self.list_bookings(resource_id=resource_id)
            if booking.status != BookingStatus.CANCELLED
        ]

    def insert_booking(self, booking: Booking, now: datetime | None = None) -> Booking:
        with self._lock:
            # Re-checked under the lock so a stale snapshot cannot slip a double booking in.
            conflict = find_conflict(
                booking.resource_id,
                booking.range,
                self.fetch_active_ranges_for_resource(booking.resource_id),
            )
            if conflict is not None:
                raise OverlapError(conflict)

            rows = self._read_yaml_list(self.bookings_file)
            rows.append(booking.to_dict())
            self._write_yaml_list(self.bookings_file, rows)

            self._log_event(
                "BOOKING_CREATED",
                {
                    "booking_id": booking.booking_id,
                    "resource_id": booking.resource_id,
                    "customer_id": booking.customer_id,
                    "start": booking.range.start.isoformat(timespec="minutes"),
                    "end": booking.range.end.isoformat(timespec="minutes"),
                    "total_price": booking.total_price.to_dict(),
                },
                now or booking.created_at,
            )
        return booking

    def save_booking(self, booking: Booking, event_type: str = "BOOKING_STATUS_CHANGED", now: datetime | None = None) -> Booking:
        with self._lock:
            rows = self._read_yaml_list(self.bookings_file)
            found_index = _index_of(rows, "booking_id", booking.booking_id)
            if found_index < 0:
                raise NotFoundError(f"Booking not found: {booking.booking_id}")

            rows[found_index] = booking.to_dict()
            self._write_yaml_list(self.bookings_file, rows)

            self._log_event(
                event_type,
                {
                    "booking_id": booking.booking_id,
                    "resource_id": booking.resource_id,
                    "status": booking.status.value,
                },
                now or booking.updated_at,
            )
        return booking

    def seed_demo_resources(self, now: datetime | None = None, overwrite: bool = True) -> list[Resource]:
        generated = [Resource.from_dict(row) for row in DEMO_RESOURCES]

        with self._lock:
            rows = [] if overwrite else self._read_yaml_list(self.resources_file)
            known = {str(row.get("resource_id")) for row in rows}
            rows.extend(resource.to_dict() for resource in generated if resource.resource_id not in known)
            self._write_yaml_list(self.resources_file, rows)
            if overwrite:
                self._write_yaml_list(self.bookings_file, [])

            self._log_event(
                "DEMO_RESOURCES_SEEDED",
                {
                    "count": len(generated),
                    "hangars": sum(1 for resource in generated if resource.kind == "hangar"),
                    "services": sum(1 for resource in generated if resource.kind == "service"),
                    "overwrite": overwrite,
                },
                now,
            )
        return generated


def _lock_for(base_dir: Path) -> RLock:
    key = base_dir.resolve()
    with _STORE_LOCKS_GUARD:
        if key not in _STORE_LOCKS:
            _STORE_LOCKS[key] = RLock()
        return _STORE_LOCKS[key]


def _index_of(rows: list[dict[str, Any]], key: str, value: str) -> int:
    for index, row in enumerate(rows):
        if str(row.get(key)) == value:
            return index
    return -1


def _normalize_identifier(value: str | None, label: str) -> str:
    if value is None:
        raise ValueError(f"{label} must not be None")

    normalized = str(value).strip()
    if not normalized:
        raise ValueError(f"{label} must not be empty")
    return normalized
