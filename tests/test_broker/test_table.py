"""Tests for the correlation table that pairs begin-login with redirect."""

from __future__ import annotations

import threading
import time

import pytest

from clisso.broker.table import TIMED_OUT_REASON, CorrelationTable
from clisso.exceptions import LoginSessionError
from clisso.models import LoginOutcome, LoginResult


def _success(token: str = "AT") -> LoginOutcome:
    return LoginOutcome.success(LoginResult(access_token=token, refresh_token="RT", expiration=600))


@pytest.fixture()
def table() -> CorrelationTable:
    return CorrelationTable()


class TestRegister:
    def test_register_adds_entry(self, table: CorrelationTable) -> None:
        entry = table.register("abc123")
        assert entry.request_id == "abc123"
        assert not entry.done
        assert "abc123" in table
        assert len(table) == 1

    def test_duplicate_is_rejected(self, table: CorrelationTable) -> None:
        first = table.register("abc123")
        with pytest.raises(LoginSessionError, match="already pending"):
            table.register("abc123")
        # The original entry still receives deliveries
        assert table.deliver("abc123", _success())
        assert first.done

    def test_collision_leaves_table_size_alone(self, table: CorrelationTable) -> None:
        table.register("abc123")
        with pytest.raises(LoginSessionError):
            table.register("abc123")
        assert len(table) == 1


class TestDeliver:
    def test_deliver_before_wait(self, table: CorrelationTable) -> None:
        pending = table.register("abc123")
        table.register("other")

        assert table.deliver("abc123", _success("early"))
        assert "abc123" not in table
        assert "other" in table

        started = time.monotonic()
        outcome = table.await_outcome(pending, timeout=5.0)

        assert time.monotonic() - started < 1.0
        assert outcome.ok
        assert outcome.result is not None
        assert outcome.result.access_token == "early"
        assert pending.outcome == outcome
        assert "other" in table

    def test_deliver_unknown_id_returns_false(self, table: CorrelationTable) -> None:
        assert table.deliver("doesnotexist", _success()) is False

    def test_second_delivery_is_rejected(self, table: CorrelationTable) -> None:
        table.register("abc123")
        assert table.deliver("abc123", LoginOutcome.failure("first"))
        assert table.deliver("abc123", _success()) is False

    def test_deliver_wakes_waiter(self, table: CorrelationTable) -> None:
        pending = table.register("abc123")
        outcomes: list[LoginOutcome] = []

        waiter = threading.Thread(
            target=lambda: outcomes.append(table.await_outcome(pending, timeout=5.0))
        )
        waiter.start()
        time.sleep(0.05)
        assert table.deliver("abc123", _success("token-1"))
        waiter.join(timeout=2.0)

        assert not waiter.is_alive()
        assert outcomes[0].ok
        assert outcomes[0].result is not None
        assert outcomes[0].result.access_token == "token-1"
        assert len(table) == 0

    def test_discard_drops_entry(self, table: CorrelationTable) -> None:
        table.register("abc123")
        table.discard("abc123")
        assert "abc123" not in table
        assert table.deliver("abc123", _success()) is False

    def test_discard_unknown_is_noop(self, table: CorrelationTable) -> None:
        table.discard("nope")
        assert len(table) == 0


class TestTimeout:
    def test_timeout_returns_failure_and_removes_entry(self, table: CorrelationTable) -> None:
        pending = table.register("abc123")

        started = time.monotonic()
        outcome = table.await_outcome(pending, timeout=0.1)
        elapsed = time.monotonic() - started

        assert not outcome.ok
        assert outcome.error == TIMED_OUT_REASON
        assert 0.09 <= elapsed < 1.0
        assert len(table) == 0

    def test_late_delivery_after_timeout(self, table: CorrelationTable) -> None:
        pending = table.register("abc123")
        table.await_outcome(pending, timeout=0.01)

        assert table.deliver("abc123", _success()) is False

    def test_timeout_does_not_affect_other_entries(self, table: CorrelationTable) -> None:
        slow = table.register("slow")
        table.register("fast")

        table.await_outcome(slow, timeout=0.01)

        assert "fast" in table
        assert table.deliver("fast", _success())


class TestConcurrency:
    def test_many_concurrent_logins_each_get_their_own_outcome(
        self, table: CorrelationTable
    ) -> None:
        ids = [f"req-{i:02d}" for i in range(20)]
        handles = {request_id: table.register(request_id) for request_id in ids}

        results: dict[str, LoginOutcome] = {}
        lock = threading.Lock()

        def wait(request_id: str) -> None:
            outcome = table.await_outcome(handles[request_id], timeout=5.0)
            with lock:
                results[request_id] = outcome

        waiters = [threading.Thread(target=wait, args=(i,)) for i in ids]
        for t in waiters:
            t.start()
        deliverers = [
            threading.Thread(target=table.deliver, args=(i, _success(f"token-{i}")))
            for i in reversed(ids)
        ]
        for t in deliverers:
            t.start()
        for t in waiters + deliverers:
            t.join(timeout=5.0)

        assert len(results) == len(ids)
        for request_id in ids:
            result = results[request_id].result
            assert result is not None
            assert result.access_token == f"token-{request_id}"
        assert len(table) == 0

    def test_timeout_and_delivery_race_resolves_exactly_once(
        self, table: CorrelationTable
    ) -> None:
        for i in range(50):
            request_id = f"race-{i}"
            pending = table.register(request_id)
            delivered: list[bool] = []

            deliverer = threading.Timer(
                0.005, lambda rid=request_id: delivered.append(table.deliver(rid, _success()))
            )
            deliverer.start()
            outcome = table.await_outcome(pending, timeout=0.005)
            deliverer.join()

            # Exactly one side wins: delivered tokens or a refused delivery
            assert delivered[0] == outcome.ok
            assert request_id not in table
