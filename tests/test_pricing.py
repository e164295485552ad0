import unittest
from datetime import datetime, timedelta
from decimal import Decimal

from hangar_booking import InvalidRateError, RateSpec, RateUnit, TimeRange, billing_units, compute

START = datetime(2024, 6, 1, 10, 0)


def _range(**delta: float) -> TimeRange:
    return TimeRange(START, START + timedelta(**delta))


class TestCompute(unittest.TestCase):
    def test_partial_hour_is_billed_as_full_hour(self) -> None:
        result = compute(_range(minutes=90), RateSpec(amount=100, unit="hour"))

        self.assertEqual(result.duration_in_units, 2)
        self.assertEqual(result.total_price, Decimal("200.00"))
        self.assertEqual(result.unit_rate, Decimal("100"))
        self.assertEqual(result.currency, "USD")

    def test_partial_day_is_billed_as_full_day(self) -> None:
        result = compute(_range(hours=25), RateSpec(amount=50, unit=RateUnit.DAY))

        self.assertEqual(result.duration_in_units, 2)
        self.assertEqual(result.total_price, Decimal("100.00"))

    def test_exact_units_are_not_rounded_up(self) -> None:
        self.assertEqual(compute(_range(hours=3), RateSpec(amount=10)).duration_in_units, 3)
        self.assertEqual(compute(_range(days=2), RateSpec(amount=10, unit="day")).duration_in_units, 2)

    def test_short_range_bills_at_least_one_unit(self) -> None:
        result = compute(_range(minutes=1), RateSpec(amount=Decimal("80"), unit="day", currency="EUR"))

        self.assertEqual(result.duration_in_units, 1)
        self.assertEqual(result.total_price, Decimal("80.00"))
        self.assertEqual(result.currency, "EUR")

    def test_total_rounds_half_up_to_cents(self) -> None:
        result = compute(_range(hours=1), RateSpec(amount=0.125))
        self.assertEqual(result.total_price, Decimal("0.13"))

        result = compute(_range(hours=3), RateSpec(amount="33.335"))
        self.assertEqual(result.total_price, Decimal("100.01"))

    def test_unit_rate_is_shown_rounded_half_up(self) -> None:
        payload = compute(_range(hours=1), RateSpec(amount="0.125")).to_dict()

        self.assertEqual(payload["unit_rate"], "0.13")
        self.assertEqual(payload["total_price"], "0.13")

    def test_zero_rate_is_allowed(self) -> None:
        self.assertEqual(compute(_range(hours=2), RateSpec(amount=0)).total_price, Decimal("0.00"))

    def test_missing_currency_defaults_to_usd(self) -> None:
        self.assertEqual(compute(_range(hours=1), RateSpec(amount=5, currency=None)).currency, "USD")

    def test_invalid_rates_are_rejected(self) -> None:
        for amount in (None, "", "abc", -1, float("nan"), float("inf"), Decimal("NaN"), True, [10]):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidRateError):
                    compute(_range(hours=1), RateSpec(amount=amount))

        with self.assertRaises(InvalidRateError):
            compute(_range(hours=1), None)

    def test_unknown_unit_is_rejected(self) -> None:
        with self.assertRaises(InvalidRateError):
            compute(_range(hours=1), RateSpec(amount=10, unit="week"))

    def test_billing_units(self) -> None:
        self.assertEqual(billing_units(timedelta(hours=1, seconds=1), RateUnit.HOUR), 2)
        self.assertEqual(billing_units(timedelta(hours=23), RateUnit.DAY), 1)


class TestRateSpecFromMapping(unittest.TestCase):
    def test_reads_nested_price_blocks(self) -> None:
        rate = RateSpec.from_mapping({"basePrice": {"amount": 450, "unit": "day", "currency": "EUR"}})
        self.assertEqual(rate, RateSpec(amount=450, unit="day", currency="EUR"))

        rate = RateSpec.from_mapping({"pricing": {"amount": 120}})
        self.assertEqual(rate.unit, RateUnit.HOUR)
        self.assertEqual(rate.currency, "USD")

    def test_reads_flat_per_unit_fields(self) -> None:
        self.assertEqual(RateSpec.from_mapping({"pricePerHour": 185}).unit, RateUnit.HOUR)
        self.assertEqual(RateSpec.from_mapping({"pricePerDay": 300}).unit, RateUnit.DAY)

    def test_missing_pricing_is_an_error(self) -> None:
        with self.assertRaises(InvalidRateError):
            RateSpec.from_mapping({"name": "Hangar A1"})

    def test_missing_amount_surfaces_when_priced(self) -> None:
        rate = RateSpec.from_mapping({"price": {"currency": "USD"}})
        with self.assertRaises(InvalidRateError):
            compute(_range(hours=1), rate)


if __name__ == "__main__":
    unittest.main()
