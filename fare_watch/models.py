"""Data models for fare-watch round-trip fare monitoring."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

# Tracked cabins and their compact codes (used in slot keys and record maps)
CABIN_CODES = {
    "business": "J",
    "premium": "W",
    "economy": "Y",
    "first": "F",
}

CODE_LABELS = {
    "J": "Business",
    "W": "Prem Eco",
    "Y": "Economy",
    "F": "First",
}

CHANNELS = ("awards", "cash")
AVAIL_TYPES = ("rewards", "any")


def cabin_code(cabin: str) -> str:
    """Map a cabin name to its code; unknown names degrade to upper case."""
    return CABIN_CODES.get(cabin, cabin.upper())


def cabin_label(code: str) -> str:
    return CODE_LABELS.get(code, code)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Leg:
    """One directional search window."""
    origin: str
    destination: str
    date_from: str  # YYYY-MM-DD
    date_to: str

    def __post_init__(self):
        self.origin = self.origin.upper()
        self.destination = self.destination.upper()

    @property
    def route(self) -> str:
        return f"{self.origin} → {self.destination}"

    def span_days(self) -> int:
        return (date.fromisoformat(self.date_to) - date.fromisoformat(self.date_from)).days

    def to_dict(self) -> dict:
        return {
            "origin": self.origin,
            "destination": self.destination,
            "dateFrom": self.date_from,
            "dateTo": self.date_to,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Leg":
        return cls(
            origin=d.get("origin") or "",
            destination=d.get("destination") or "",
            date_from=d.get("dateFrom") or "",
            date_to=d.get("dateTo") or "",
        )


@dataclass
class NormalizedFlight:
    """Cheapest award availability for one cabin on one date."""
    date: str
    cabin: str  # cabin code (J/W/Y/F)
    mileage_cost: int
    remaining_seats: int
    is_direct: bool
    airlines: str
    taxes_currency: str
    total_taxes: float  # major currency units

    def to_dict(self) -> dict:
        return {
            "Date": self.date,
            "cabin": self.cabin,
            "MileageCost": self.mileage_cost,
            "RemainingSeats": self.remaining_seats,
            "IsDirect": self.is_direct,
            "Airlines": self.airlines,
            "TaxesCurrency": self.taxes_currency,
            "TotalTaxes": self.total_taxes,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "NormalizedFlight":
        return cls(
            date=d.get("Date", ""),
            cabin=d.get("cabin", ""),
            mileage_cost=d.get("MileageCost", 0),
            remaining_seats=d.get("RemainingSeats", 0),
            is_direct=bool(d.get("IsDirect", False)),
            airlines=d.get("Airlines", ""),
            taxes_currency=d.get("TaxesCurrency", ""),
            total_taxes=d.get("TotalTaxes", 0.0),
        )


@dataclass
class LowestRecord:
    """Combined round-trip award price for one cabin."""
    points: int
    outbound_date: str
    return_date: str
    seen_at: str
    total_taxes: float = 0.0
    taxes_currency: str = "AUD"
    is_direct: bool = False

    def to_dict(self) -> dict:
        return {
            "points": self.points,
            "outboundDate": self.outbound_date,
            "returnDate": self.return_date,
            "seenAt": self.seen_at,
            "totalTaxes": self.total_taxes,
            "taxesCurrency": self.taxes_currency,
            "isDirect": self.is_direct,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LowestRecord":
        return cls(
            points=d["points"],
            outbound_date=d.get("outboundDate", ""),
            return_date=d.get("returnDate", ""),
            seen_at=d.get("seenAt", ""),
            total_taxes=d.get("totalTaxes") or 0.0,
            taxes_currency=d.get("taxesCurrency") or "AUD",
            is_direct=bool(d.get("isDirect", False)),
        )


@dataclass
class CashRecord:
    """Round-trip cash fare (AUD) for one cabin."""
    aud: float
    outbound_date: str
    return_date: str
    seen_at: str
    is_direct: bool = False

    def to_dict(self) -> dict:
        return {
            "aud": self.aud,
            "outboundDate": self.outbound_date,
            "returnDate": self.return_date,
            "seenAt": self.seen_at,
            "isDirect": self.is_direct,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CashRecord":
        return cls(
            aud=d["aud"],
            outbound_date=d.get("outboundDate", ""),
            return_date=d.get("returnDate", ""),
            seen_at=d.get("seenAt", ""),
            is_direct=bool(d.get("isDirect", False)),
        )


@dataclass
class Monitor:
    """A tracked outbound + return leg pair.

    The fields after ``created_at`` are tracking state. They are cleared
    together by :meth:`reset_tracking` whenever the route, dates, cabins or
    award mode change, which also starts a new tracking epoch.
    """
    id: str
    label: str
    cabins: list[str]
    outbound: Leg
    return_leg: Leg
    channel: str = "awards"
    avail_type: str = "rewards"
    created_at: str = ""
    last_checked: Optional[str] = None
    # Awards tracking
    current_combined: dict[str, LowestRecord] = field(default_factory=dict)
    lowest_combined: dict[str, LowestRecord] = field(default_factory=dict)
    known_slots: list[str] = field(default_factory=list)
    last_outbound: list[NormalizedFlight] = field(default_factory=list)
    last_return: list[NormalizedFlight] = field(default_factory=list)
    # Cash tracking
    current_cash: dict[str, CashRecord] = field(default_factory=dict)
    lowest_cash: dict[str, CashRecord] = field(default_factory=dict)
    cash_pending: bool = False
    cash_requested_at: Optional[str] = None
    epoch: int = 0

    @property
    def cabin_codes(self) -> list[str]:
        return [cabin_code(c) for c in self.cabins]

    @property
    def is_cash(self) -> bool:
        return self.channel == "cash"

    def reset_tracking(self) -> None:
        self.last_checked = None
        self.current_combined = {}
        self.lowest_combined = {}
        self.known_slots = []
        self.last_outbound = []
        self.last_return = []
        self.current_cash = {}
        self.lowest_cash = {}
        self.cash_pending = False
        self.cash_requested_at = None
        self.epoch += 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "cabins": list(self.cabins),
            "channel": self.channel,
            "availType": self.avail_type,
            "outbound": self.outbound.to_dict(),
            "return": self.return_leg.to_dict(),
            "createdAt": self.created_at,
            "lastChecked": self.last_checked,
            "currentCombined": {k: v.to_dict() for k, v in self.current_combined.items()},
            "lowestCombined": {k: v.to_dict() for k, v in self.lowest_combined.items()},
            "knownSlots": list(self.known_slots),
            "lastOutbound": [f.to_dict() for f in self.last_outbound],
            "lastReturn": [f.to_dict() for f in self.last_return],
            "currentCash": {k: v.to_dict() for k, v in self.current_cash.items()},
            "lowestCash": {k: v.to_dict() for k, v in self.lowest_cash.items()},
            "cashPending": self.cash_pending,
            "cashRequestedAt": self.cash_requested_at,
            "epoch": self.epoch,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Monitor":
        return cls(
            id=d["id"],
            label=d.get("label", ""),
            cabins=list(d.get("cabins") or []),
            outbound=Leg.from_dict(d.get("outbound") or {}),
            return_leg=Leg.from_dict(d.get("return") or {}),
            # "source" is the older name of the channel field
            channel=d.get("channel") or d.get("source") or "awards",
            avail_type=d.get("availType") or "rewards",
            created_at=d.get("createdAt", ""),
            last_checked=d.get("lastChecked"),
            current_combined={
                k: LowestRecord.from_dict(v) for k, v in (d.get("currentCombined") or {}).items()
            },
            lowest_combined={
                k: LowestRecord.from_dict(v) for k, v in (d.get("lowestCombined") or {}).items()
            },
            known_slots=list(d.get("knownSlots") or []),
            last_outbound=[NormalizedFlight.from_dict(f) for f in d.get("lastOutbound") or []],
            last_return=[NormalizedFlight.from_dict(f) for f in d.get("lastReturn") or []],
            current_cash={
                k: CashRecord.from_dict(v) for k, v in (d.get("currentCash") or {}).items()
            },
            lowest_cash={
                k: CashRecord.from_dict(v) for k, v in (d.get("lowestCash") or {}).items()
            },
            cash_pending=bool(d.get("cashPending", False)),
            cash_requested_at=d.get("cashRequestedAt"),
            epoch=d.get("epoch", 0),
        )


@dataclass
class PendingAlert:
    """One batch of alert lines waiting for the external notifier."""
    monitor_id: str
    monitor_label: str
    messages: list[str]
    created_at: str

    def to_dict(self) -> dict:
        return {
            "monitorId": self.monitor_id,
            "monitorLabel": self.monitor_label,
            "messages": list(self.messages),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PendingAlert":
        return cls(
            monitor_id=d.get("monitorId", ""),
            monitor_label=d.get("monitorLabel", ""),
            messages=list(d.get("messages") or []),
            created_at=d.get("createdAt", ""),
        )
