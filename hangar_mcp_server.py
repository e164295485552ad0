from __future__ import annotations

from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from hangar_booking import BookingError, BookingYamlRepository, cancel_booking, create_booking, list_resources, quote

mcp = FastMCP(
    "Hangar Booking MCP Server",
    instructions="Expose hangars, aviation services and bookings from the hangar_booking project.",
    json_response=True,
)

DATA_DIR = Path(__file__).parent / "data"
REPOSITORY = BookingYamlRepository(DATA_DIR)


@mcp.resource("booking://hangars")
async def list_hangars() -> list[dict[str, Any]]:
    """List bookable hangars."""
    return [resource.to_dict() for resource in list_resources(REPOSITORY, kind="hangar")]


@mcp.resource("booking://services")
async def list_services() -> list[dict[str, Any]]:
    """List bookable aviation services."""
    return [resource.to_dict() for resource in list_resources(REPOSITORY, kind="service")]


@mcp.tool()
def list_active_bookings(resource_id: str) -> list[dict[str, str]]:
    """Return the non-cancelled booked ranges of a resource."""
    return [
        {"booking_id": existing.booking_id, "status": existing.status.value, **existing.range.to_dict()}
        for existing in REPOSITORY.fetch_active_ranges_for_resource(resource_id)
    ]


@mcp.tool()
def quote_booking(resource_id: str, start_iso: str, end_iso: str) -> dict[str, Any]:
    """Price a range without booking it."""
    try:
        return {"ok": True, "quote": quote(REPOSITORY, resource_id, start_iso, end_iso).to_dict()}
    except BookingError as error:
        return {"ok": False, "reason": error.reason, "message": str(error)}


@mcp.tool()
def add_quick_booking(resource_id: str, customer_id: str, start_iso: str, end_iso: str, special_requests: str = "") -> dict[str, Any]:
    """Create a pending booking using ISO timestamps."""
    try:
        confirmation = create_booking(
            REPOSITORY,
            resource_id,
            customer_id,
            start_iso,
            end_iso,
            requirements={"special_requests": special_requests},
        )
    except BookingError as error:
        return {"ok": False, "reason": error.reason, "message": str(error)}
    return {"ok": True, "booking": confirmation.booking.to_dict(), "summary": confirmation.summary()}


@mcp.tool()
def cancel_quick_booking(booking_id: str, customer_id: str) -> dict[str, Any]:
    """Cancel a pending or confirmed booking owned by ``customer_id``."""
    try:
        cancelled = cancel_booking(REPOSITORY, booking_id, customer_id)
    except BookingError as error:
        return {"ok": False, "reason": error.reason, "message": str(error)}
    return {"ok": True, "booking": cancelled.to_dict()}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
