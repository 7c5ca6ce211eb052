"""Tests for the seats.aero fetcher (no network: the HTTP session is faked)."""

import asyncio

import aiohttp
import pytest

from fare_watch.fetchers import FetchError, SeatsAeroFetcher
from fare_watch.fetchers.seats_aero import SEARCH_URL
from fare_watch.models import Leg
from tests.mock_data import SEATS_AERO_EMPTY, SEATS_AERO_RESPONSE

LEG = Leg("SYD", "BOS", "2026-06-01", "2026-06-05")


class FakeResponse:
    def __init__(self, status=200, payload=None, body=""):
        self.status = status
        self.payload = payload
        self.body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def text(self):
        return self.body

    async def json(self, content_type=None):
        return self.payload


class FakeSession:
    """Records GET calls and returns a canned response (or raises)."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def key_file(tmp_path):
    path = tmp_path / "seats-aero-key"
    path.write_text("pro_abc123\n")
    return path


def _fetch(fetcher, cabins=("business", "premium"), mode="rewards"):
    return asyncio.run(fetcher.fetch_leg(LEG, list(cabins), mode))


def test_build_params():
    params = SeatsAeroFetcher.build_params(LEG)
    assert params == {
        "origin_airport": "SYD",
        "destination_airport": "BOS",
        "sources": "qantas",
        "cabins": "economy,premium,business,first",
        "start_date": "2026-06-01",
        "end_date": "2026-06-05",
        "order_by": "lowest_mileage",
        "take": "500",
    }


def test_success_normalizes(key_file):
    session = FakeSession(FakeResponse(payload=SEATS_AERO_RESPONSE))
    flights = _fetch(SeatsAeroFetcher(key_file=key_file, session=session))

    assert [(f.date, f.cabin) for f in flights] == [
        ("2026-06-02", "J"),
        ("2026-06-02", "W"),
        ("2026-06-03", "J"),
    ]

    url, kwargs = session.calls[0]
    assert url == SEARCH_URL
    assert kwargs["headers"] == {"Partner-Authorization": "pro_abc123"}
    assert kwargs["params"]["origin_airport"] == "SYD"


def test_any_mode(key_file):
    session = FakeSession(FakeResponse(payload=SEATS_AERO_RESPONSE))
    flights = _fetch(SeatsAeroFetcher(key_file=key_file, session=session), ["business"], "any")
    assert [(f.date, f.mileage_cost) for f in flights] == [("2026-06-03", 250_000)]


def test_empty_and_missing_data(key_file):
    for payload in (SEATS_AERO_EMPTY, {}, None):
        session = FakeSession(FakeResponse(payload=payload))
        assert _fetch(SeatsAeroFetcher(key_file=key_file, session=session)) == []


def test_http_error(key_file):
    session = FakeSession(FakeResponse(status=401, body="invalid key"))
    with pytest.raises(FetchError) as exc:
        _fetch(SeatsAeroFetcher(key_file=key_file, session=session))
    assert exc.value.status == 401
    assert "invalid key" in str(exc.value)


def test_timeout(key_file):
    session = FakeSession(error=asyncio.TimeoutError())
    with pytest.raises(FetchError, match="timed out"):
        _fetch(SeatsAeroFetcher(key_file=key_file, timeout=30, session=session))


def test_transport_error(key_file):
    session = FakeSession(error=aiohttp.ClientConnectionError("connection reset"))
    with pytest.raises(FetchError, match="request failed"):
        _fetch(SeatsAeroFetcher(key_file=key_file, session=session))


def test_missing_key(tmp_path):
    session = FakeSession(FakeResponse(payload=SEATS_AERO_RESPONSE))
    with pytest.raises(FetchError, match="Cannot read"):
        _fetch(SeatsAeroFetcher(key_file=tmp_path / "missing", session=session))
    assert session.calls == []


def test_empty_key(tmp_path):
    key = tmp_path / "key"
    key.write_text("  \n")
    with pytest.raises(FetchError, match="empty"):
        _fetch(SeatsAeroFetcher(key_file=key, session=FakeSession()))


def test_source_name():
    assert SeatsAeroFetcher(key_file="x").source_name == "seats.aero"
