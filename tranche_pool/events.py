"""
events.py - Observable Pool Events

One frozen record per successful pool operation that has an effect, for
external auditors and indexers. Each event carries the pool id, the ledger
time of the operation and the exec_id of the ledger transaction that
carried its transfers, so an event can always be matched to the audit
trail in Ledger.transaction_log.

EventLog keeps events in emission order and notifies subscribers. A
failing subscriber is recorded in EventLog.failures, never propagated
into the already committed operation.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, List, Tuple, Type, TypeVar


@dataclass(frozen=True, slots=True)
class PoolEvent:
    pool_id: str
    timestamp: datetime
    exec_id: str


@dataclass(frozen=True, slots=True)
class CollateralPooled(PoolEvent):
    originator: str
    loan_ids: Tuple[str, ...]
    recorded_values: Tuple[int, ...]


@dataclass(frozen=True, slots=True)
class TranchesDefined(PoolEvent):
    symbols: Tuple[str, ...]
    principal_weights_bps: Tuple[int, ...]
    interest_weights_bps: Tuple[int, ...]
    minted: Tuple[int, ...]
    total_principal: int


@dataclass(frozen=True, slots=True)
class SharesPurchased(PoolEvent):
    buyer: str
    tranche_index: int
    amount: int


@dataclass(frozen=True, slots=True)
class SharesTransferred(PoolEvent):
    tranche_index: int
    source: str
    dest: str
    amount: int


@dataclass(frozen=True, slots=True)
class DepositEvent(PoolEvent):
    depositor: str
    amount: int
    slices: Tuple[int, ...]     # waterfall slice per tranche
    credited: Tuple[int, ...]   # slice actually attributed (0 where supply was 0)


@dataclass(frozen=True, slots=True)
class InterestDeposited(DepositEvent):
    pass


@dataclass(frozen=True, slots=True)
class PrincipalDeposited(DepositEvent):
    pass


@dataclass(frozen=True, slots=True)
class HolderClaimed(PoolEvent):
    holder: str
    tranche_index: int
    interest: int
    principal: int

    @property
    def total(self) -> int:
        return self.interest + self.principal


E = TypeVar("E", bound=PoolEvent)
EventListener = Callable[[PoolEvent], None]


@dataclass(frozen=True, slots=True)
class ListenerFailure:
    event: PoolEvent
    listener: EventListener
    error: Exception


class EventLog:
    """Append-only list of pool events with subscriber notification."""

    def __init__(self):
        self._events: List[PoolEvent] = []
        self._listeners: List[EventListener] = []
        self.failures: List[ListenerFailure] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[PoolEvent]:
        return iter(list(self._events))

    def __getitem__(self, i: int) -> PoolEvent:
        return self._events[i]

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def emit(self, event: PoolEvent) -> List[ListenerFailure]:
        """
        Record event and notify every listener.

        Listeners run after the operation behind event has committed. A
        listener that raises is recorded in failures and returned, and the
        remaining listeners are still notified.
        """
        self._events.append(event)
        failed = []
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                failed.append(ListenerFailure(event, listener, e))
        self.failures.extend(failed)
        return failed

    def of_type(self, event_type: Type[E]) -> List[E]:
        """All events that are instances of event_type, in emission order."""
        return [e for e in self._events if isinstance(e, event_type)]
