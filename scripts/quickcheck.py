from __future__ import annotations

from datetime import timedelta
from pathlib import Path
import traceback

from hangar_booking import BookingYamlRepository, cancel_booking, create_booking, quote
from hangar_booking.values import utcnow


def main() -> int:
    print("[INFO] Hangar Booking Quick Check")
    print("[INFO] Seeding demo hangars and services...")

    repo = BookingYamlRepository("data")
    now = utcnow().replace(minute=0, second=0, microsecond=0)

    resources = repo.seed_demo_resources(now=now, overwrite=True)
    print(f"[OK] Demo resources seeded: {len(resources)}")

    start = now + timedelta(days=1, hours=1)
    end = start + timedelta(minutes=90)
    preview = quote(repo, "hangar-b2", start, end, now=now)
    print(f"[OK] Quote: {preview.pricing.duration_in_units} {preview.pricing.unit.value}(s) -> {preview.pricing.total_price} {preview.pricing.currency}")

    confirmation = create_booking(repo, "hangar-b2", "quickcheck", start, end, now=now)
    print(
        "[OK] Booked: "
        f"{confirmation.booking.resource_id},"
        f"{confirmation.booking.range.start.isoformat(timespec='minutes')}"
        f"~{confirmation.booking.range.end.isoformat(timespec='minutes')}"
    )

    cancelled = cancel_booking(repo, confirmation.booking.booking_id, "quickcheck", now=now)
    print(f"[OK] Cancelled: {cancelled.booking_id} ({cancelled.status.value})")
    print(f"[OK] Bookings YAML: {Path('data/bookings.yaml').resolve()}")
    print(f"[OK] Event Log YAML: {Path('data/booking_events.yaml').resolve()}")

    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)
