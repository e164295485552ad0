from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from . import service
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
from .values import normalize_timestamp, utcnow
from .yaml_store import BookingYamlRepository, Resource

CUSTOMER_HEADER = "X-Customer-Id"

_ERROR_STATUS: dict[type[BookingError], int] = {
    MalformedRangeError: 400,
    InvalidOrderingError: 400,
    PastStartError: 400,
    OverlapError: 409,
    InvalidRateError: 422,
    AlreadyTerminalError: 409,
    InvalidTransitionError: 409,
    NotFoundError: 404,
    NotOwnerError: 403,
}


def create_app(
    data_dir: str | Path = "data",
    now_provider: Callable[[], datetime] | None = None,
) -> Flask:
    app = Flask(__name__)
    repository = BookingYamlRepository(data_dir)
    read_clock: Callable[[], datetime] = now_provider or utcnow

    def clock() -> datetime:
        return normalize_timestamp(read_clock())

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = f"Content-Type,{CUSTOMER_HEADER}"
        return response

    @app.errorhandler(BookingError)
    def handle_booking_error(error: BookingError) -> Any:
        payload: dict[str, Any] = {"ok": False, "reason": error.reason, "message": str(error)}
        if isinstance(error, OverlapError):
            payload["conflict"] = {
                "booking_id": error.conflict.booking_id,
                **error.conflict.range.to_dict(),
            }
            payload["next_available"] = error.next_available.isoformat(timespec="seconds")
        return jsonify(payload), _ERROR_STATUS.get(type(error), 400)

    @app.errorhandler(BookingStorageError)
    def handle_storage_error(error: BookingStorageError) -> Any:
        return jsonify({"ok": False, "message": "Booking storage is unavailable."}), 500

    @app.get("/api/resources")
    def get_resources() -> Any:
        try:
            resources = service.list_resources(
                repository,
                search=request.args.get("search"),
                category=request.args.get("category") or None,
                kind=request.args.get("kind") or None,
                max_price=request.args.get("max_price"),
                sort_by=str(request.args.get("sort_by", "name")),
            )
        except ValueError as error:
            return jsonify({"ok": False, "message": str(error)}), 400
        return jsonify({"ok": True, "resources": [_serialize_resource(resource) for resource in resources]})

    @app.get("/api/resources/<resource_id>/availability")
    def get_availability(resource_id: str) -> Any:
        if repository.get_resource(resource_id) is None:
            raise NotFoundError(f"Resource not found: {resource_id}")
        now = clock()
        booked = [
            {"booking_id": existing.booking_id, "status": existing.status.value, **existing.range.to_dict()}
            for existing in repository.fetch_active_ranges_for_resource(resource_id)
            if existing.range.end > now
        ]
        booked.sort(key=lambda row: row["start"])
        return jsonify({"ok": True, "resource_id": resource_id, "booked": booked})

    @app.patch("/api/resources/<resource_id>/price")
    def update_price(resource_id: str) -> Any:
        payload = request.get_json(silent=True) or {}
        updated = service.update_resource_rate(
            repository,
            resource_id,
            amount=payload.get("amount"),
            currency=payload.get("currency"),
            unit=payload.get("unit"),
            now=clock(),
        )
        return jsonify({"ok": True, "resource": _serialize_resource(updated)})

    @app.post("/api/bookings/quote")
    def post_quote() -> Any:
        payload = request.get_json(silent=True) or {}
        result = service.quote(
            repository,
            _resource_id_from(payload),
            payload.get("start", payload.get("startDate")),
            payload.get("end", payload.get("endDate")),
            now=clock(),
        )
        return jsonify({"ok": True, "quote": result.to_dict()})

    @app.post("/api/bookings")
    def post_booking() -> Any:
        customer_id = _customer_id()
        if customer_id is None:
            return _missing_customer()

        payload = request.get_json(silent=True) or {}
        confirmation = service.create_booking(
            repository,
            _resource_id_from(payload),
            customer_id,
            payload.get("start", payload.get("startDate")),
            payload.get("end", payload.get("endDate")),
            requirements={
                "aircraft": payload.get("aircraft"),
                "special_requests": payload.get("special_requests", payload.get("specialRequests")),
            },
            now=clock(),
        )
        return (
            jsonify(
                {
                    "ok": True,
                    "booking": confirmation.booking.to_dict(),
                    "summary": confirmation.summary(),
                }
            ),
            201,
        )

    @app.get("/api/bookings/customer")
    def get_customer_bookings() -> Any:
        customer_id = _customer_id()
        if customer_id is None:
            return _missing_customer()

        bookings = service.list_customer_bookings(repository, customer_id)
        return jsonify({"ok": True, "bookings": [booking.to_dict() for booking in bookings]})

    @app.get("/api/bookings/<booking_id>")
    def get_booking(booking_id: str) -> Any:
        customer_id = _customer_id()
        if customer_id is None:
            return _missing_customer()

        booking = service.get_customer_booking(repository, booking_id, customer_id)
        return jsonify({"ok": True, "booking": booking.to_dict()})

    @app.patch("/api/bookings/<booking_id>/cancel")
    def cancel_booking(booking_id: str) -> Any:
        customer_id = _customer_id()
        if customer_id is None:
            return _missing_customer()

        cancelled = service.cancel_booking(repository, booking_id, customer_id, now=clock())
        return jsonify({"ok": True, "booking": cancelled.to_dict()})

    return app


def _customer_id() -> str | None:
    value = str(request.headers.get(CUSTOMER_HEADER, "")).strip()
    return value or None


def _missing_customer() -> Any:
    return jsonify({"ok": False, "message": f"{CUSTOMER_HEADER} header is required."}), 401


def _resource_id_from(payload: dict[str, Any]) -> str:
    for key in ("resource_id", "hangarId", "serviceId"):
        value = str(payload.get(key) or "").strip()
        if value:
            return value
    raise BookingError("resource_id is required.")


def _serialize_resource(resource: Resource) -> dict[str, Any]:
    payload = resource.to_dict()
    payload["bookable"] = service.has_valid_rate(resource)
    return payload
