from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .errors import InvalidRateError
from .values import DEFAULT_CURRENCY, Money, TimeRange


class RateUnit(str, Enum):
    HOUR = "hour"
    DAY = "day"


UNIT_LENGTHS: dict[RateUnit, timedelta] = {
    RateUnit.HOUR: timedelta(hours=1),
    RateUnit.DAY: timedelta(days=1),
}

_UNIT_ALIASES: dict[str, RateUnit] = {
    "hour": RateUnit.HOUR,
    "hours": RateUnit.HOUR,
    "hourly": RateUnit.HOUR,
    "day": RateUnit.DAY,
    "days": RateUnit.DAY,
    "daily": RateUnit.DAY,
}

_CENT = Decimal("0.01")

# Field names seen on resource documents, most specific first.
_RATE_FIELDS: tuple[tuple[str, RateUnit | None], ...] = (
    ("pricing", None),
    ("basePrice", None),
    ("base_price", None),
    ("price", None),
    ("rate", None),
    ("pricePerHour", RateUnit.HOUR),
    ("price_per_hour", RateUnit.HOUR),
    ("pricePerDay", RateUnit.DAY),
    ("price_per_day", RateUnit.DAY),
)


@dataclass(frozen=True)
class RateSpec:
    """Pricing configuration of a hangar or service.

    ``amount`` is kept as given so that ``compute`` can reject a missing or
    malformed value instead of the constructor hiding it.
    """

    amount: Any
    unit: RateUnit | str = RateUnit.HOUR
    currency: str | None = DEFAULT_CURRENCY

    @classmethod
    def from_mapping(cls, resource: dict[str, Any], default_unit: RateUnit = RateUnit.HOUR) -> "RateSpec":
        """Resolve a RateSpec from a raw resource document.

        Accepts a nested ``{"amount", "unit", "currency"}`` block under any of
        the known field names, or a flat per-hour/per-day number.
        """
        for name, implied_unit in _RATE_FIELDS:
            if name not in resource or resource[name] is None:
                continue
            value = resource[name]
            if isinstance(value, dict):
                return cls(
                    amount=value.get("amount"),
                    unit=value.get("unit") or implied_unit or default_unit,
                    currency=value.get("currency") or DEFAULT_CURRENCY,
                )
            return cls(
                amount=value,
                unit=implied_unit or resource.get("unit") or default_unit,
                currency=resource.get("currency") or DEFAULT_CURRENCY,
            )
        raise InvalidRateError("Resource has no pricing configuration.")

    def to_dict(self) -> dict[str, Any]:
        unit = self.unit.value if isinstance(self.unit, RateUnit) else self.unit
        amount = self.amount
        if isinstance(amount, Decimal):
            amount = str(amount)
        return {"amount": amount, "unit": unit, "currency": self.currency or DEFAULT_CURRENCY}


@dataclass(frozen=True)
class PricingResult:
    duration_in_units: int
    unit_rate: Decimal
    total_price: Decimal
    currency: str
    unit: RateUnit = RateUnit.HOUR

    def as_money(self) -> Money:
        return Money(self.total_price, self.currency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration_in_units,
            "unit": self.unit.value,
            "unit_rate": f"{self.unit_rate.quantize(_CENT, rounding=ROUND_HALF_UP):.2f}",
            "total_price": f"{self.total_price:.2f}",
            "currency": self.currency,
        }


def validate_rate(rate: RateSpec | None) -> tuple[Decimal, RateUnit]:
    if rate is None:
        raise InvalidRateError("Rate is not configured.")

    amount = rate.amount
    if amount is None or isinstance(amount, bool):
        raise InvalidRateError("Rate amount is missing.")
    if not isinstance(amount, (int, float, Decimal, str)):
        raise InvalidRateError(f"Rate amount is not a number: {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as error:
        raise InvalidRateError(f"Rate amount is not a number: {amount!r}") from error
    if not value.is_finite():
        raise InvalidRateError("Rate amount must be finite.")
    if value < 0:
        raise InvalidRateError("Rate amount must not be negative.")

    unit = _UNIT_ALIASES.get(str(getattr(rate.unit, "value", rate.unit)).strip().lower())
    if unit is None:
        raise InvalidRateError(f"Unsupported rate unit: {rate.unit!r}")

    return value, unit


def billing_units(duration: timedelta, unit: RateUnit) -> int:
    """Whole billing units covering ``duration``; a started unit counts in full."""
    length = UNIT_LENGTHS[unit]
    units = -(-duration // length)
    return max(1, units)


def compute(time_range: TimeRange, rate: RateSpec | None) -> PricingResult:
    """Price ``time_range`` at ``rate``.

    ``time_range`` is expected to have been admitted already; the rate is
    validated here and InvalidRateError is raised before anything is priced.
    """
    amount, unit = validate_rate(rate)

    units = billing_units(time_range.duration, unit)
    total = (Decimal(units) * amount).quantize(_CENT, rounding=ROUND_HALF_UP)

    return PricingResult(
        duration_in_units=units,
        unit_rate=amount,
        total_price=total,
        currency=(rate.currency or DEFAULT_CURRENCY),
        unit=unit,
    )
