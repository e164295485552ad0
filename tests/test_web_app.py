import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from hangar_booking import BookingYamlRepository, RateSpec, RateUnit
from hangar_booking.web_app import CUSTOMER_HEADER, create_app

NOW = datetime(2024, 5, 1, 9, 0)
PILOT_1 = {CUSTOMER_HEADER: "pilot-1"}
PILOT_2 = {CUSTOMER_HEADER: "pilot-2"}


class TestWebApp(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        self.repo = BookingYamlRepository(self.data_dir)
        self.repo.add_resource(
            "Hangar A1",
            "hangar",
            category="storage",
            resource_id="hangar-a1",
            rate=RateSpec(amount=100, unit=RateUnit.HOUR),
        )
        self.repo.add_resource("Unpriced bay", "hangar", category="storage", resource_id="unpriced")

        app = create_app(self.data_dir, now_provider=lambda: NOW)
        self.client = app.test_client()

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def _book(self, start: str, end: str, headers: dict[str, str] = PILOT_1, resource_id: str = "hangar-a1") -> object:
        return self.client.post(
            "/api/bookings",
            json={
                "resource_id": resource_id,
                "start": start,
                "end": end,
                "aircraft": {"type": "PC-12", "registrationNumber": "N512PC", "size": "medium"},
                "specialRequests": "Ground power",
            },
            headers=headers,
        )

    def test_create_booking_returns_summary(self) -> None:
        response = self._book("2024-06-01T10:00", "2024-06-01T11:30")

        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        self.assertTrue(payload["ok"])
        self.assertEqual(payload["booking"]["status"], "pending")
        self.assertEqual(payload["booking"]["total_price"], {"amount": "200.00", "currency": "USD"})
        self.assertEqual(payload["booking"]["requirements"]["aircraft"]["registration_number"], "N512PC")
        self.assertEqual(payload["summary"]["duration"], 2)
        self.assertEqual(payload["summary"]["dates"]["end"], "2024-06-01T11:30:00")

    def test_create_booking_requires_customer_header(self) -> None:
        response = self._book("2024-06-01T10:00", "2024-06-01T11:00", headers={})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.repo.list_bookings(), [])

    def test_create_booking_accepts_frontend_field_aliases(self) -> None:
        response = self.client.post(
            "/api/bookings",
            json={"hangarId": "hangar-a1", "startDate": "2024-06-01T10:00", "endDate": "2024-06-01T11:00"},
            headers=PILOT_1,
        )
        self.assertEqual(response.status_code, 201)

    def test_overlap_returns_conflict_and_next_available(self) -> None:
        first = self._book("2024-06-01T10:00", "2024-06-01T12:00").get_json()

        response = self._book("2024-06-01T11:00", "2024-06-01T13:00", headers=PILOT_2)

        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertEqual(payload["reason"], "overlap")
        self.assertEqual(payload["conflict"]["booking_id"], first["booking"]["booking_id"])
        self.assertEqual(payload["next_available"], "2024-06-01T12:00:00")

    def test_validation_errors_map_to_400(self) -> None:
        cases = [
            (("not-a-date", "2024-06-01T11:00"), "malformed_range"),
            (("2024-06-01T11:00", "2024-06-01T10:00"), "invalid_ordering"),
            (("2024-04-30T10:00", "2024-04-30T11:00"), "past_start"),
        ]
        for (start, end), reason in cases:
            with self.subTest(reason=reason):
                response = self._book(start, end)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.get_json()["reason"], reason)

    def test_invalid_rate_and_unknown_resource(self) -> None:
        response = self._book("2024-06-01T10:00", "2024-06-01T11:00", resource_id="unpriced")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()["reason"], "invalid_rate")

        response = self._book("2024-06-01T10:00", "2024-06-01T11:00", resource_id="missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.repo.list_bookings(), [])

    def test_quote_does_not_book(self) -> None:
        response = self.client.post(
            "/api/bookings/quote",
            json={"resource_id": "hangar-a1", "start": "2024-06-01T10:00", "end": "2024-06-01T10:30"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["quote"]["total_price"], "100.00")
        self.assertEqual(self.repo.list_bookings(), [])

    def test_customer_booking_endpoints(self) -> None:
        created = self._book("2024-06-01T10:00", "2024-06-01T11:00").get_json()["booking"]
        self._book("2024-06-02T10:00", "2024-06-02T11:00", headers=PILOT_2)

        listed = self.client.get("/api/bookings/customer", headers=PILOT_1).get_json()
        self.assertEqual([row["booking_id"] for row in listed["bookings"]], [created["booking_id"]])

        own = self.client.get(f"/api/bookings/{created['booking_id']}", headers=PILOT_1)
        self.assertEqual(own.status_code, 200)

        other = self.client.get(f"/api/bookings/{created['booking_id']}", headers=PILOT_2)
        self.assertEqual(other.status_code, 403)

        missing = self.client.get("/api/bookings/nope", headers=PILOT_1)
        self.assertEqual(missing.status_code, 404)

    def test_cancel_flow(self) -> None:
        created = self._book("2024-06-01T10:00", "2024-06-01T11:00").get_json()["booking"]
        path = f"/api/bookings/{created['booking_id']}/cancel"

        self.assertEqual(self.client.patch(path, headers=PILOT_2).status_code, 403)

        first = self.client.patch(path, headers=PILOT_1)
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.get_json()["booking"]["status"], "cancelled")

        second = self.client.patch(path, headers=PILOT_1)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.get_json()["reason"], "already_terminal")

    def test_resources_listing_and_price_update(self) -> None:
        listing = self.client.get("/api/resources?kind=hangar&sort_by=price").get_json()
        self.assertEqual([row["resource_id"] for row in listing["resources"]], ["hangar-a1", "unpriced"])
        self.assertEqual([row["bookable"] for row in listing["resources"]], [True, False])

        bad_sort = self.client.get("/api/resources?sort_by=stars")
        self.assertEqual(bad_sort.status_code, 400)

        update = self.client.patch("/api/resources/unpriced/price", json={"amount": 40, "currency": "USD"})
        self.assertEqual(update.status_code, 200)
        self.assertEqual(update.get_json()["resource"]["pricing"]["amount"], "40")
        self.assertTrue(update.get_json()["resource"]["bookable"])

        rejected = self.client.patch("/api/resources/unpriced/price", json={"amount": "free"})
        self.assertEqual(rejected.status_code, 422)

        missing = self.client.patch("/api/resources/missing/price", json={"amount": 10})
        self.assertEqual(missing.status_code, 404)

    def test_availability_lists_live_bookings(self) -> None:
        created = self._book("2024-06-01T10:00", "2024-06-01T11:00").get_json()["booking"]
        cancelled = self._book("2024-06-02T10:00", "2024-06-02T11:00").get_json()["booking"]
        self.client.patch(f"/api/bookings/{cancelled['booking_id']}/cancel", headers=PILOT_1)

        response = self.client.get("/api/resources/hangar-a1/availability")

        self.assertEqual(response.status_code, 200)
        booked = response.get_json()["booked"]
        self.assertEqual([row["booking_id"] for row in booked], [created["booking_id"]])
        self.assertEqual(self.client.get("/api/resources/missing/availability").status_code, 404)

    def test_aware_clock_is_normalized_to_utc(self) -> None:
        aware_now = datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc)
        client = create_app(self.data_dir, now_provider=lambda: aware_now).test_client()

        created = client.post(
            "/api/bookings",
            json={"resource_id": "hangar-a1", "start": "2024-06-01T10:00", "end": "2024-06-01T11:00"},
            headers=PILOT_1,
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.get_json()["booking"]["created_at"], "2024-05-01T11:00:00")

        self.assertEqual(self._book("2024-06-02T10:00", "2024-06-02T11:00").status_code, 201)

        availability = client.get("/api/resources/hangar-a1/availability")
        self.assertEqual(availability.status_code, 200)
        self.assertEqual(len(availability.get_json()["booked"]), 2)

        listed = client.get("/api/bookings/customer", headers=PILOT_1)
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(len(listed.get_json()["bookings"]), 2)

    def test_cors_headers(self) -> None:
        response = self.client.get("/api/resources")
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")
        self.assertIn(CUSTOMER_HEADER, response.headers["Access-Control-Allow-Headers"])


if __name__ == "__main__":
    unittest.main()
