"""
test_events.py - Unit tests for pool events and the event log
"""

import pytest
from dataclasses import FrozenInstanceError
from datetime import datetime

from tranche_pool import (
    EventLog, PoolEvent, HolderClaimed, InterestDeposited, PrincipalDeposited, DepositEvent,
    SharesPurchased,
)


T0 = datetime(2025, 1, 1)


def claimed(interest=3, principal=4):
    return HolderClaimed("ABS1", T0, "exec:1", "alice", 0, interest, principal)


class TestEvents:

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            claimed().interest = 10

    def test_claim_total(self):
        assert claimed(3, 4).total == 7

    def test_deposit_hierarchy(self):
        event = InterestDeposited("ABS1", T0, "exec:2", "servicer", 100, (70, 30), (70, 30))
        assert isinstance(event, DepositEvent)
        assert isinstance(event, PoolEvent)
        assert not isinstance(event, PrincipalDeposited)


class TestEventLog:

    def test_emit_keeps_order(self):
        log = EventLog()
        first = SharesPurchased("ABS1", T0, "exec:1", "alice", 0, 10)
        second = claimed()
        log.emit(first)
        log.emit(second)
        assert len(log) == 2
        assert list(log) == [first, second]
        assert log[-1] is second

    def test_of_type(self):
        log = EventLog()
        log.emit(InterestDeposited("ABS1", T0, "e1", "servicer", 10, (10,), (10,)))
        log.emit(PrincipalDeposited("ABS1", T0, "e2", "servicer", 20, (20,), (20,)))
        log.emit(claimed())
        assert [e.amount for e in log.of_type(DepositEvent)] == [10, 20]
        assert len(log.of_type(PrincipalDeposited)) == 1

    def test_subscribers_notified(self):
        log = EventLog()
        seen = []
        log.subscribe(seen.append)
        event = claimed()
        log.emit(event)
        assert seen == [event]

    def test_failing_subscriber_recorded(self):
        log = EventLog()
        seen = []

        def broken(event):
            raise RuntimeError("indexer offline")

        log.subscribe(broken)
        log.subscribe(seen.append)
        event = claimed()
        failed = log.emit(event)

        assert seen == [event]
        assert list(log) == [event]
        assert len(failed) == 1
        assert failed[0].event is event
        assert failed[0].listener is broken
        assert isinstance(failed[0].error, RuntimeError)
        assert log.failures == failed

    def test_no_failures_by_default(self):
        log = EventLog()
        log.subscribe(lambda e: None)
        assert log.emit(claimed()) == []
        assert log.failures == []

    def test_iteration_is_a_snapshot(self):
        log = EventLog()
        log.emit(claimed())
        for _ in log:
            log.emit(claimed(1, 1))
        assert len(log) == 2
