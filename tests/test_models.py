"""Tests for the persisted data models."""

from fare_watch.models import Leg, Monitor, cabin_code, cabin_label


def test_cabin_codes():
    assert cabin_code("business") == "J"
    assert cabin_code("premium") == "W"
    assert cabin_code("economy") == "Y"
    assert cabin_code("first") == "F"
    assert cabin_code("suite") == "SUITE"
    assert cabin_label("W") == "Prem Eco"
    assert cabin_label("SUITE") == "SUITE"


def test_leg_route_and_span():
    leg = Leg("syd", "bos", "2026-06-01", "2026-06-05")
    assert leg.route == "SYD → BOS"
    assert leg.span_days() == 4


def test_monitor_document_keys():
    m = Monitor(
        id="m1",
        label="Boston June",
        cabins=["business"],
        outbound=Leg("SYD", "BOS", "2026-06-01", "2026-06-05"),
        return_leg=Leg("BOS", "SYD", "2026-06-18", "2026-06-22"),
        channel="cash",
        avail_type="any",
    )
    d = m.to_dict()
    assert d["return"]["origin"] == "BOS"
    assert d["channel"] == "cash"
    assert d["availType"] == "any"
    assert Monitor.from_dict(d) == m


def test_legacy_source_field():
    d = {
        "id": "m1",
        "label": "Old",
        "cabins": ["business"],
        "outbound": {"origin": "SYD", "destination": "BOS", "dateFrom": "2026-06-01", "dateTo": "2026-06-02"},
        "return": {"origin": "BOS", "destination": "SYD", "dateFrom": "2026-06-18", "dateTo": "2026-06-19"},
        "source": "cash",
    }
    m = Monitor.from_dict(d)
    assert m.is_cash
    assert m.avail_type == "rewards"
    assert m.epoch == 0
    assert m.known_slots == []


def test_reset_tracking_bumps_epoch():
    m = Monitor.from_dict({
        "id": "m1",
        "label": "x",
        "cabins": ["business"],
        "outbound": {"origin": "SYD", "destination": "BOS", "dateFrom": "2026-06-01", "dateTo": "2026-06-02"},
        "return": {"origin": "BOS", "destination": "SYD", "dateFrom": "2026-06-18", "dateTo": "2026-06-19"},
        "knownSlots": ["2026-06-01|J|out"],
        "lastChecked": "2026-05-01T00:00:00Z",
        "cashPending": True,
    })
    m.reset_tracking()
    assert m.epoch == 1
    assert m.known_slots == []
    assert m.last_checked is None
    assert m.cash_pending is False


def test_null_leg_fields_load_as_empty():
    leg = Leg.from_dict({"origin": None, "destination": None, "dateFrom": None, "dateTo": "2026-06-02"})
    assert leg.origin == ""
    assert leg.destination == ""
    assert leg.date_from == ""
    assert leg.date_to == "2026-06-02"
