"""Tests for the cash-price request/result handshake."""

import json

import pytest

from fare_watch.alerts import AlertQueue
from fare_watch.handshake import CashHandshake, build_request
from fare_watch.models import Leg
from fare_watch.store import MonitorStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store(tmp_path):
    return MonitorStore(tmp_path / "monitors.db")


@pytest.fixture
def queue(tmp_path):
    return AlertQueue(tmp_path / "alerts-pending.json")


@pytest.fixture
def handshake(tmp_path, store, queue):
    return CashHandshake(
        store,
        queue,
        requests_path=tmp_path / "cash-requests.json",
        results_path=tmp_path / "cash-results.json",
    )


def _cash_monitor(store, label="LHR cash", cabins=("business",)):
    return store.create_monitor(
        label,
        list(cabins),
        Leg("SYD", "LHR", "2026-09-01", "2026-09-03"),
        Leg("LHR", "SYD", "2026-09-20", "2026-09-22"),
        channel="cash",
    )


def _write_results(handshake, results):
    handshake.results_path.write_text(json.dumps(results))


def _result(monitor, aud=2600, **extra):
    entry = {
        "monitorId": monitor.id,
        "checkedAt": "2026-05-10T10:00:00.000Z",
        "prices": {
            "business": {"aud": aud, "outboundDate": "2026-09-02", "returnDate": "2026-09-21"},
        },
    }
    entry.update(extra)
    return entry


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class TestRequest:
    def test_request_written_and_pending(self, store, handshake):
        m = _cash_monitor(store)
        assert handshake.request(m, now="2026-05-10T09:00:00.000Z") is True

        requests = handshake.pending_requests()
        assert len(requests) == 1
        assert requests[0]["monitorId"] == m.id
        assert requests[0]["requestedAt"] == "2026-05-10T09:00:00.000Z"
        assert requests[0]["outbound"]["origin"] == "SYD"
        assert requests[0]["return"]["origin"] == "LHR"
        assert requests[0]["cabins"] == ["business"]
        assert requests[0]["epoch"] == 0

        stored = store.require(m.id)
        assert stored.cash_pending is True
        assert stored.cash_requested_at == "2026-05-10T09:00:00.000Z"

    def test_no_new_request_while_pending(self, store, handshake):
        m = _cash_monitor(store)
        handshake.request(m, now="2026-05-10T09:00:00.000Z")

        again = store.require(m.id)
        assert handshake.request(again, now="2026-05-10T10:00:00.000Z") is False
        assert store.require(m.id).cash_requested_at == "2026-05-10T09:00:00.000Z"
        assert len(handshake.pending_requests()) == 1

    def test_one_entry_per_monitor(self, store, handshake):
        a = _cash_monitor(store, "A")
        b = _cash_monitor(store, "B")
        handshake.request(a)
        handshake.request(b)

        # a stale entry for the same monitor is replaced, not duplicated
        a = store.require(a.id)
        a.cash_pending = False
        handshake.request(a)

        ids = [r["monitorId"] for r in handshake.pending_requests()]
        assert sorted(ids) == sorted([a.id, b.id])

    def test_awards_monitor_rejected(self, store, handshake):
        m = store.create_monitor(
            "Awards", ["business"],
            Leg("SYD", "LHR", "2026-09-01", "2026-09-03"),
            Leg("LHR", "SYD", "2026-09-20", "2026-09-22"),
        )
        with pytest.raises(ValueError):
            handshake.request(m)

    def test_deleted_monitor_gets_no_request(self, store, handshake):
        m = _cash_monitor(store)
        store.delete_monitor(m.id)

        assert handshake.request(m) is False
        assert handshake.pending_requests() == []

    def test_forget_withdraws_request(self, store, handshake):
        a = _cash_monitor(store, "A")
        b = _cash_monitor(store, "B")
        handshake.request(a)
        handshake.request(b)

        assert handshake.forget(a.id) is True
        assert [r["monitorId"] for r in handshake.pending_requests()] == [b.id]
        assert handshake.forget(a.id) is False

    def test_build_request_shape(self, store):
        m = _cash_monitor(store)
        req = build_request(m)
        assert set(req) == {"monitorId", "label", "outbound", "return", "cabins", "requestedAt", "epoch"}


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------

class TestPoll:
    def test_no_results(self, handshake):
        assert handshake.poll() == 0
        assert not handshake.results_path.exists()

    def test_result_applied(self, store, queue, handshake):
        m = _cash_monitor(store)
        handshake.request(m)
        _write_results(handshake, [_result(m)])

        assert handshake.poll() == 1

        stored = store.require(m.id)
        assert stored.cash_pending is False
        assert stored.last_checked == "2026-05-10T10:00:00.000Z"
        assert stored.current_cash["J"].aud == 2600
        assert stored.lowest_cash["J"].aud == 2600

        batches = queue.read()
        assert len(batches) == 1
        assert batches[0].messages == [
            "💰 New lowest Business cash fare: AUD $2,600 (first record) — "
            "out 2026-09-02 · ret 2026-09-21"
        ]

        # result document reset, request consumed
        assert json.loads(handshake.results_path.read_text()) == []
        assert handshake.pending_requests() == []

    def test_higher_price_updates_current_only(self, store, queue, handshake):
        m = _cash_monitor(store)
        _write_results(handshake, [_result(m, aud=2600)])
        handshake.poll()
        _write_results(handshake, [_result(m, aud=2800)])
        handshake.poll()

        stored = store.require(m.id)
        assert stored.current_cash["J"].aud == 2800
        assert stored.lowest_cash["J"].aud == 2600
        assert len(queue.read()) == 1

    def test_checked_at_defaults_to_now(self, store, handshake):
        m = _cash_monitor(store)
        entry = _result(m)
        del entry["checkedAt"]
        _write_results(handshake, [entry])

        handshake.poll(now="2026-05-11T00:00:00.000Z")
        stored = store.require(m.id)
        assert stored.last_checked == "2026-05-11T00:00:00.000Z"
        assert stored.lowest_cash["J"].seen_at == "2026-05-11T00:00:00.000Z"

    def test_unknown_monitor_skipped(self, store, handshake):
        m = _cash_monitor(store)
        _write_results(handshake, [{"monitorId": "ghost", "prices": {}}, _result(m)])

        assert handshake.poll() == 1
        assert json.loads(handshake.results_path.read_text()) == []

    def test_malformed_entries_skipped(self, store, handshake):
        m = _cash_monitor(store)
        _write_results(handshake, ["junk", 42, _result(m)])
        assert handshake.poll() == 1

    def test_corrupt_results_document(self, handshake):
        handshake.results_path.write_text("{not json")
        assert handshake.poll() == 0

    def test_stale_epoch_dropped(self, store, queue, handshake):
        m = _cash_monitor(store)
        handshake.request(m)
        store.edit_monitor(m.id, cabins=["first"])  # reset -> epoch 1

        _write_results(handshake, [_result(m, epoch=0)])
        assert handshake.poll() == 0

        stored = store.require(m.id)
        assert stored.lowest_cash == {}
        assert queue.read() == []

    def test_result_without_epoch_accepted(self, store, handshake):
        m = _cash_monitor(store)
        store.edit_monitor(m.id, cabins=["first"])
        entry = _result(m)
        entry["prices"] = {"first": {"aud": 9100}}
        _write_results(handshake, [entry])

        assert handshake.poll() == 1
        assert store.require(m.id).lowest_cash["F"].aud == 9100

    def test_pending_stays_pending_without_result(self, store, handshake):
        m = _cash_monitor(store)
        handshake.request(m)
        handshake.poll()
        assert store.require(m.id).cash_pending is True
        assert len(handshake.pending_requests()) == 1

    def test_deleted_monitor_result_not_applied(self, store, queue, handshake):
        m = _cash_monitor(store)
        _write_results(handshake, [_result(m)])
        store.delete_monitor(m.id)

        assert handshake.poll() == 0
        assert queue.read() == []
