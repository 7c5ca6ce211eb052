"""Convert raw seats.aero availability records into per-cabin flights.

The award-search API exposes every cabin under two parallel field-name
schemes: the plain fields count classic reward seats only, the ``...Raw``
fields also count Points+Pay inventory. The scheme is picked once per
response by choosing an :class:`AvailabilityView`.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from .models import NormalizedFlight, cabin_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CabinFields:
    """Field names holding one cabin's data in a raw record."""
    available: str
    mileage_cost: str
    direct_mileage_cost: str
    remaining_seats: str
    airlines: str
    total_taxes: str


def _number(value: Any) -> float:
    """Parse a numeric field, falling back to 0 for anything unusable."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


class AvailabilityView(ABC):
    """Typed accessors over a raw availability record."""

    @property
    @abstractmethod
    def mode(self) -> str:
        ...

    @abstractmethod
    def fields(self, code: str) -> CabinFields:
        ...

    def available(self, record: dict, code: str) -> bool:
        return bool(record.get(self.fields(code).available))

    def mileage_cost(self, record: dict, code: str) -> float:
        return _number(record.get(self.fields(code).mileage_cost))

    def direct_mileage_cost(self, record: dict, code: str) -> float:
        return _number(record.get(self.fields(code).direct_mileage_cost))

    def remaining_seats(self, record: dict, code: str) -> int:
        return int(_number(record.get(self.fields(code).remaining_seats)))

    def airlines(self, record: dict, code: str) -> str:
        value = record.get(self.fields(code).airlines)
        return value if isinstance(value, str) else ""

    def total_taxes(self, record: dict, code: str) -> float:
        """Taxes in minor currency units (cents)."""
        return _number(record.get(self.fields(code).total_taxes))


class RewardsView(AvailabilityView):
    """Classic reward inventory only."""

    @property
    def mode(self) -> str:
        return "rewards"

    def fields(self, code: str) -> CabinFields:
        return CabinFields(
            available=f"{code}Available",
            mileage_cost=f"{code}MileageCost",
            direct_mileage_cost=f"{code}DirectMileageCost",
            remaining_seats=f"{code}RemainingSeats",
            airlines=f"{code}Airlines",
            total_taxes=f"{code}TotalTaxes",
        )


class AnyView(AvailabilityView):
    """Reward inventory plus Points+Pay."""

    @property
    def mode(self) -> str:
        return "any"

    def fields(self, code: str) -> CabinFields:
        return CabinFields(
            available=f"{code}AvailableRaw",
            mileage_cost=f"{code}MileageCostRaw",
            direct_mileage_cost=f"{code}DirectMileageCostRaw",
            remaining_seats=f"{code}RemainingSeatsRaw",
            airlines=f"{code}AirlinesRaw",
            total_taxes=f"{code}TotalTaxesRaw",
        )


_VIEWS = {
    "rewards": RewardsView(),
    "any": AnyView(),
}


def view_for(mode: str) -> AvailabilityView:
    try:
        return _VIEWS[mode]
    except KeyError:
        raise ValueError(f"Unknown availability mode: {mode!r}") from None


def normalize_flights(
    raw: list[dict],
    cabins: list[str],
    mode: str = "rewards",
) -> list[NormalizedFlight]:
    """Extract one flight per (record, cabin) with real availability.

    A cabin is kept only when its availability flag is truthy and its mileage
    cost is positive. It counts as direct when the direct-only cost equals
    the overall cheapest cost. Output is sorted by date (stable).
    """
    view = view_for(mode)
    codes = [cabin_code(c) for c in cabins]
    flights: list[NormalizedFlight] = []

    for record in raw:
        if not isinstance(record, dict):
            logger.warning("Skipping non-object availability record: %r", record)
            continue
        for code in codes:
            mileage = view.mileage_cost(record, code)
            if not view.available(record, code) or mileage <= 0:
                continue
            direct = view.direct_mileage_cost(record, code)
            currency = record.get("TaxesCurrency")
            flights.append(
                NormalizedFlight(
                    date=str(record.get("Date") or ""),
                    cabin=code,
                    mileage_cost=int(mileage) if mileage.is_integer() else mileage,
                    remaining_seats=view.remaining_seats(record, code),
                    is_direct=direct > 0 and direct == mileage,
                    airlines=view.airlines(record, code),
                    taxes_currency=currency if isinstance(currency, str) else "",
                    total_taxes=view.total_taxes(record, code) / 100,
                )
            )

    flights.sort(key=lambda f: f.date)
    return flights
