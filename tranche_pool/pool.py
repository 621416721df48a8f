"""
pool.py - Tranche Pool

Pools loan collateral, splits the pooled principal into tranches of
fungible shares and distributes later cash inflows to share holders.

=== LIFECYCLE ===

    COLLATERAL_OPEN --define_tranches()--> PRE_MATURITY --(clock)--> POST_MATURITY

    COLLATERAL_OPEN   originator pools loans (pool_loans)
    PRE_MATURITY      buy, transfer_shares, deposit_interest, claim
    POST_MATURITY     as PRE_MATURITY, plus deposit_principal

PRE_MATURITY and POST_MATURITY together are the "tranches defined" state;
the split between them is a comparison of the ledger clock with the
maturity timestamp at call time, never a scheduled event.

=== OPERATION DISCIPLINE ===

Every operation:
    1. validates all preconditions (raises before touching anything)
    2. plans its DistributionBook update without mutating
    3. executes all of its transfers as ONE ledger transaction
    4. commits pool bookkeeping only if the ledger applied it
    5. emits its event after the operation has finished

A guard refuses any pool call made while another operation is in flight,
e.g. from a transfer rule running inside the ledger's validation. Event
listeners run after the guard is released.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple

from .core import (
    Move, Transaction, TransactionOrigin, OriginType, ExecuteResult, Unit,
    UNIT_TYPE_CASH,
    LedgerError, AuthorizationError, StateError, ValidationError,
    InsufficientResourceError, TrancheIndexError, WalletNotRegistered,
    build_transaction,
)
from .ledger import Ledger
from .waterfall import validate_weights, split_amount
from .distribution import DistributionBook, BookUpdate, Flow, FLOWS
from .events import (
    EventLog, PoolEvent,
    CollateralPooled, TranchesDefined, SharesPurchased, SharesTransferred,
    InterestDeposited, PrincipalDeposited, HolderClaimed,
)
from .units.loan import LoanRegistry, LedgerLoanRegistry, custody_move
from .units.tranche_share import TrancheShares, create_tranche_share_unit, pool_contract_id


class PoolPhase(Enum):
    """Lifecycle phase of a tranche pool."""
    COLLATERAL_OPEN = "collateral_open"
    PRE_MATURITY = "pre_maturity"
    POST_MATURITY = "post_maturity"


@dataclass(frozen=True, slots=True)
class PooledLoan:
    """A loan in the pool's custody, with the value recorded at intake."""
    loan_id: str
    recorded_value: int


@dataclass(frozen=True, slots=True)
class Tranche:
    """One tranche: its share symbol and fixed waterfall weights."""
    index: int
    symbol: str
    name: str
    principal_weight_bps: int
    interest_weight_bps: int

    def weight(self, flow: Flow) -> int:
        if flow is Flow.PRINCIPAL:
            return self.principal_weight_bps
        return self.interest_weight_bps


class TranchePool:
    """
    A single pool of loan collateral with its tranches and distribution book.

    All assets live on the ledger: loan tokens are moved into the pool
    wallet, tranche shares are TRANCHE_SHARE units minted to the pool
    wallet, and the settlement asset flows between callers and the pool
    wallet. The pool itself owns only bookkeeping: pooled loans, tranche
    definitions, the distribution book and running totals.

    Example:
        pool = TranchePool(ledger, "ABS1", "originator", datetime(2030, 1, 1), "USDC")
        pool.pool_loans("originator", ["LOAN-001", "LOAN-002"])
        pool.define_tranches("originator", ["Senior", "Junior"], ["SNR", "JNR"],
                             [7000, 3000], [7000, 3000])
        pool.buy("alice", 0, 630)
        pool.deposit_interest("servicer", 100)
        pool.claim("alice", 0)
    """

    def __init__(
        self,
        ledger: Ledger,
        pool_id: str,
        originator: str,
        maturity: datetime,
        settlement_unit: str,
        registry: Optional[LoanRegistry] = None,
        verbose: Optional[bool] = None,
    ):
        """
        Create a pool and register its wallet on the ledger.

        Args:
            ledger: Ledger hosting loans, shares and the settlement asset
            pool_id: Pool identifier; the pool wallet is "pool:<pool_id>"
            originator: Wallet allowed to pool loans and define tranches
            maturity: Principal deposits are accepted from this time on
            settlement_unit: CASH unit used for purchases, deposits and claims
            registry: Loan registry (default: LOAN unit state on the ledger)
            verbose: Console tracing (default: the ledger's verbose flag)

        Raises:
            ValidationError: Bad pool_id, unregistered originator, settlement
                             unit missing or not CASH, pool wallet taken
        """
        if not pool_id or not pool_id.strip() or ":" in pool_id:
            raise ValidationError(f"invalid pool_id {pool_id!r}")
        if not ledger.is_registered(originator):
            raise WalletNotRegistered(f"Wallet {originator} not registered")
        if ledger.get_unit(settlement_unit).unit_type != UNIT_TYPE_CASH:
            raise ValidationError(f"settlement unit {settlement_unit} must be CASH")
        wallet = f"pool:{pool_id}"
        if ledger.is_registered(wallet):
            raise ValidationError(f"pool wallet {wallet} already registered")

        self.ledger = ledger
        self.pool_id = pool_id
        self.originator = originator
        self.maturity = maturity
        self.settlement_unit = settlement_unit
        self.registry: LoanRegistry = registry if registry is not None else LedgerLoanRegistry(ledger)
        self.verbose = ledger.verbose if verbose is None else verbose
        self.wallet = ledger.register_wallet(wallet)
        self.events = EventLog()

        self._loans: List[PooledLoan] = []
        self._pooled_ids: Set[str] = set()
        self._tranches: Tuple[Tranche, ...] = ()
        self._shares: Tuple[TrancheShares, ...] = ()
        self._book: Optional[DistributionBook] = None
        self._total_principal: Optional[int] = None
        self._proceeds = 0
        self._deposited: Dict[Flow, int] = {flow: 0 for flow in FLOWS}
        self._credited: Dict[Flow, int] = {flow: 0 for flow in FLOWS}
        self._claimed: Dict[Flow, int] = {flow: 0 for flow in FLOWS}
        self._nonce = 0
        self._busy = False
        self._issuing: FrozenSet[Move] = frozenset()

    def __repr__(self) -> str:
        return (f"TranchePool({self.pool_id}, phase={self.phase.value}, "
                f"loans={len(self._loans)}, tranches={len(self._tranches)})")

    # ========================================================================
    # VIEWS
    # ========================================================================

    @property
    def phase(self) -> PoolPhase:
        if not self._tranches:
            return PoolPhase.COLLATERAL_OPEN
        if self.ledger.current_time < self.maturity:
            return PoolPhase.PRE_MATURITY
        return PoolPhase.POST_MATURITY

    @property
    def tranches(self) -> Tuple[Tranche, ...]:
        return self._tranches

    @property
    def pooled_loans(self) -> Tuple[PooledLoan, ...]:
        return tuple(self._loans)

    @property
    def total_principal(self) -> Optional[int]:
        """Principal cached at tranche definition; None before."""
        return self._total_principal

    def shares(self, tranche_index: int) -> TrancheShares:
        self._check_tranche(tranche_index)
        return self._shares[tranche_index]

    def index(self, tranche_index: int, flow: Flow) -> int:
        """Raw magnified index value for a tranche and flow."""
        self._require_defined()
        return self._book.index(tranche_index, flow).value

    def share_balance(self, holder: str, tranche_index: int) -> int:
        return self.shares(tranche_index).balance_of(holder)

    def unsold(self, tranche_index: int) -> int:
        return self.share_balance(self.wallet, tranche_index)

    def claimable(self, holder: str, tranche_index: int, flow: Optional[Flow] = None) -> int:
        """Settlement units holder could claim now (one flow, or both when flow is None)."""
        balance = self.share_balance(holder, tranche_index)
        flows = FLOWS if flow is None else (flow,)
        return sum(self._book.owed(tranche_index, holder, f, balance) for f in flows)

    def withdrawn(self, holder: str, tranche_index: int, flow: Flow) -> int:
        self._require_defined()
        return self._book.record(tranche_index, holder, flow).withdrawn

    def total_deposited(self, flow: Flow) -> int:
        return self._deposited[flow]

    def total_credited(self, flow: Flow) -> int:
        """Deposited amounts attributed to tranches with holders (after truncation and forfeits)."""
        return self._credited[flow]

    def total_claimed(self, flow: Flow) -> int:
        return self._claimed[flow]

    def verify_solvency(self) -> Dict[str, Any]:
        """
        Reconcile the pool's settlement balance with its bookkeeping.

        Checks, per flow, claimed <= credited <= deposited, and that the
        pool wallet holds exactly sale proceeds + deposits - claims.

        Returns:
            Dict with 'valid', 'balance', 'expected_balance' and a
            per-flow breakdown under 'flows'.
        """
        balance = self.ledger.get_balance(self.wallet, self.settlement_unit)
        expected = self._proceeds + sum(self._deposited.values()) - sum(self._claimed.values())
        flows = {}
        valid = balance == expected
        for flow in FLOWS:
            deposited, credited, claimed = self._deposited[flow], self._credited[flow], self._claimed[flow]
            flows[flow.value] = {'deposited': deposited, 'credited': credited, 'claimed': claimed}
            valid = valid and claimed <= credited <= deposited
        return {
            'valid': valid,
            'balance': balance,
            'expected_balance': expected,
            'proceeds': self._proceeds,
            'flows': flows,
        }

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @contextmanager
    def _operation(self, name: str) -> Iterator[str]:
        """Hold the re-entrancy guard and hand out a unique move reference."""
        if self._busy:
            raise StateError(f"{name}: pool {self.pool_id} is already executing an operation")
        self._busy = True
        self._nonce += 1
        try:
            yield f"{name}:{self._nonce}"
        except LedgerError as e:
            if self.verbose:
                print(f"✗ {name.upper()} REFUSED [{self.pool_id}]: {e}")
            raise
        finally:
            self._busy = False

    def _execute(
        self,
        moves: List[Move],
        event_type: str,
        units_to_create: Tuple[Unit, ...] = (),
    ) -> Transaction:
        origin = TransactionOrigin(OriginType.POOL, self.pool_id, event_type=event_type)
        pending = build_transaction(self.ledger, moves, origin=origin, units_to_create=units_to_create)
        self._issuing = frozenset(pending.moves)
        try:
            result = self.ledger.execute(pending)
        finally:
            self._issuing = frozenset()
        if result == ExecuteResult.REJECTED:
            raise InsufficientResourceError(f"{event_type} rejected by ledger: {self.ledger.last_rejection}")
        if result == ExecuteResult.ALREADY_APPLIED:
            raise StateError(f"{event_type} already applied (intent {pending.intent_id})")
        return self.ledger.transaction_log[-1]

    def _is_issuing(self, move: Move) -> bool:
        """True only for moves of the transaction this pool is executing."""
        return move in self._issuing

    def _settlement_move(self, amount: int, source: str, dest: str, reference: str) -> Move:
        return Move(amount, self.settlement_unit, source, dest,
                    pool_contract_id(self.pool_id, reference))

    def _emit(self, event: PoolEvent) -> None:
        for failure in self.events.emit(event):
            if self.verbose:
                print(f"✗ LISTENER FAILED [{self.pool_id}]: {type(event).__name__} "
                      f"{event.exec_id}: {failure.error!r}")

    def _require_originator(self, caller: str) -> None:
        if caller != self.originator:
            raise AuthorizationError(f"{caller} is not the originator of pool {self.pool_id}")

    def _require_wallet(self, wallet: str) -> None:
        if not self.ledger.is_registered(wallet):
            raise WalletNotRegistered(f"Wallet {wallet} not registered")
        if wallet == self.wallet:
            raise ValidationError(f"pool wallet {wallet} cannot act as a counterparty")

    def _require_defined(self) -> None:
        if not self._tranches:
            raise StateError(f"tranches of pool {self.pool_id} are not defined yet")

    def _check_tranche(self, tranche_index: int) -> None:
        self._require_defined()
        if isinstance(tranche_index, bool) or not isinstance(tranche_index, int):
            raise TrancheIndexError(f"tranche index must be int, got {tranche_index!r}")
        if not 0 <= tranche_index < len(self._tranches):
            raise TrancheIndexError(
                f"tranche index {tranche_index} out of range [0, {len(self._tranches)})"
            )

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(f"amount must be int base units, got {amount!r}")
        if amount <= 0:
            raise ValidationError(f"amount must be positive, got {amount}")

    # ========================================================================
    # COLLATERAL INTAKE
    # ========================================================================

    def pool_loans(self, caller: str, loan_ids: Sequence[str]) -> CollateralPooled:
        """
        Move custody of a batch of loans into the pool.

        The whole batch is pooled or none of it is. Recorded values are
        read from the registry now and never re-read.

        Raises:
            AuthorizationError: caller is not the originator
            StateError: tranches are already defined
            ValidationError: empty batch, duplicate or unknown loan
            InsufficientResourceError: caller does not hold a loan token
        """
        with self._operation("pool") as ref:
            self._require_originator(caller)
            if self._tranches:
                raise StateError(f"collateral intake of pool {self.pool_id} closed at tranche definition")
            loan_ids = tuple(loan_ids)
            if not loan_ids:
                raise ValidationError("loan_ids cannot be empty")

            seen: Set[str] = set()
            records = []
            for loan_id in loan_ids:
                if loan_id in seen:
                    raise ValidationError(f"loan {loan_id} appears twice in the batch")
                if loan_id in self._pooled_ids:
                    raise ValidationError(f"loan {loan_id} is already pooled")
                seen.add(loan_id)
                records.append(self.registry.lookup(loan_id))

            moves = [
                custody_move(r.loan_id, caller, self.wallet,
                             pool_contract_id(self.pool_id, f"{ref}:{r.loan_id}"))
                for r in records
            ]
            tx = self._execute(moves, "POOL_COLLATERAL")

            pooled = [PooledLoan(r.loan_id, r.recorded_value) for r in records]
            self._loans.extend(pooled)
            self._pooled_ids.update(p.loan_id for p in pooled)
            event = CollateralPooled(
                pool_id=self.pool_id,
                timestamp=tx.execution_time,
                exec_id=tx.exec_id,
                originator=caller,
                loan_ids=tuple(p.loan_id for p in pooled),
                recorded_values=tuple(p.recorded_value for p in pooled),
            )
            if self.verbose:
                print(f"✓ POOLED [{self.pool_id}]: {len(pooled)} loans, "
                      f"value {sum(event.recorded_values)}")
        self._emit(event)
        return event

    # ========================================================================
    # TRANCHE DEFINITION
    # ========================================================================

    def define_tranches(
        self,
        caller: str,
        names: Sequence[str],
        symbols: Sequence[str],
        principal_weights_bps: Sequence[int],
        interest_weights_bps: Sequence[int],
    ) -> TranchesDefined:
        """
        Define the tranches once and mint their shares to the pool.

        Tranche i is minted total_principal * principal_weights_bps[i] // 10000
        shares, held by the pool wallet until sold.

        Raises:
            AuthorizationError: caller is not the originator
            StateError: tranches already defined, or no loans pooled
            ValidationError: mismatched lengths, empty definition, bad
                             weights, duplicate or taken symbols
        """
        with self._operation("define") as ref:
            self._require_originator(caller)
            if self._tranches:
                raise StateError(f"tranches of pool {self.pool_id} are already defined")
            if not self._loans:
                raise StateError(f"pool {self.pool_id} holds no collateral")

            names, symbols = tuple(names), tuple(symbols)
            count = len(names)
            if count == 0:
                raise ValidationError("at least one tranche is required")
            if not (len(symbols) == len(principal_weights_bps) == len(interest_weights_bps) == count):
                raise ValidationError(
                    f"mismatched lengths: {count} names, {len(symbols)} symbols, "
                    f"{len(principal_weights_bps)} principal weights, "
                    f"{len(interest_weights_bps)} interest weights"
                )
            principal = validate_weights(principal_weights_bps, "principal_weights_bps")
            interest = validate_weights(interest_weights_bps, "interest_weights_bps")
            if len(set(symbols)) != count:
                raise ValidationError(f"tranche symbols must be unique, got {symbols}")
            registered = set(self.ledger.list_units())
            for symbol in symbols:
                if not isinstance(symbol, str) or not symbol.strip():
                    raise ValidationError(f"invalid tranche symbol {symbol!r}")
                if symbol in registered:
                    raise ValidationError(f"unit {symbol} is already registered")

            total_principal = sum(loan.recorded_value for loan in self._loans)
            minted = split_amount(total_principal, principal)
            tranches = tuple(
                Tranche(i, symbols[i], names[i], principal[i], interest[i])
                for i in range(count)
            )
            units = tuple(
                create_tranche_share_unit(
                    t.symbol, t.name, self.pool_id, t.index,
                    t.principal_weight_bps, t.interest_weight_bps, self.settlement_unit,
                    self._is_issuing,
                )
                for t in tranches
            )
            shares = tuple(TrancheShares(self.ledger, t.symbol, self.pool_id) for t in tranches)
            # indices start at zero, so the initial mint needs no checkpoint
            moves = [s.mint(self.wallet, qty, ref) for s, qty in zip(shares, minted) if qty > 0]
            tx = self._execute(moves, "DEFINE_TRANCHES", units_to_create=units)

            self._tranches = tranches
            self._shares = shares
            self._book = DistributionBook(count)
            self._total_principal = total_principal
            event = TranchesDefined(
                pool_id=self.pool_id,
                timestamp=tx.execution_time,
                exec_id=tx.exec_id,
                symbols=symbols,
                principal_weights_bps=principal,
                interest_weights_bps=interest,
                minted=minted,
                total_principal=total_principal,
            )
            if self.verbose:
                print(f"✓ DEFINED [{self.pool_id}]: {count} tranches over principal "
                      f"{total_principal}, minted {minted}")
        self._emit(event)
        return event

    # ========================================================================
    # SHARE SALE AND TRANSFER
    # ========================================================================

    def buy(self, caller: str, tranche_index: int, amount: int) -> SharesPurchased:
        """
        Buy unsold shares of a tranche at 1:1 in the settlement asset.

        Raises:
            StateError: tranches not defined
            TrancheIndexError: unknown tranche
            ValidationError: non-positive amount, unknown caller
            InsufficientResourceError: not enough unsold shares, or the
                                       caller cannot pay
        """
        with self._operation("buy") as ref:
            self._require_wallet(caller)
            self._check_tranche(tranche_index)
            self._check_amount(amount)
            shares = self._shares[tranche_index]
            unsold = shares.balance_of(self.wallet)
            if amount > unsold:
                raise InsufficientResourceError(
                    f"tranche {tranche_index} has {unsold} unsold shares, {amount} requested"
                )

            update = self._book.plan_movement(tranche_index, self.wallet, caller, amount)
            moves = [
                self._settlement_move(amount, caller, self.wallet, f"{ref}:pay"),
                shares.transfer(self.wallet, caller, amount, ref),
            ]
            tx = self._execute(moves, "BUY")

            self._book.apply(update)
            self._proceeds += amount
            event = SharesPurchased(
                pool_id=self.pool_id,
                timestamp=tx.execution_time,
                exec_id=tx.exec_id,
                buyer=caller,
                tranche_index=tranche_index,
                amount=amount,
            )
            if self.verbose:
                print(f"✓ BOUGHT [{self.pool_id}]: {caller} {amount} {shares.symbol}")
        self._emit(event)
        return event

    def transfer_shares(
        self,
        caller: str,
        tranche_index: int,
        recipient: str,
        amount: int,
    ) -> SharesTransferred:
        """
        Transfer shares between holders, checkpointing both claim records.

        Whatever accrued before the transfer stays claimable by the sender;
        the recipient earns only on deposits made after it.

        Raises:
            StateError: tranches not defined
            TrancheIndexError: unknown tranche
            ValidationError: non-positive amount, self-transfer, unknown or pool wallet
            InsufficientResourceError: caller holds fewer shares than amount
        """
        with self._operation("transfer") as ref:
            self._require_wallet(caller)
            self._require_wallet(recipient)
            self._check_tranche(tranche_index)
            self._check_amount(amount)
            if recipient == caller:
                raise ValidationError("cannot transfer shares to self")
            shares = self._shares[tranche_index]
            balance = shares.balance_of(caller)
            if amount > balance:
                raise InsufficientResourceError(
                    f"{caller} holds {balance} {shares.symbol}, {amount} requested"
                )

            update = self._book.plan_movement(tranche_index, caller, recipient, amount)
            tx = self._execute([shares.transfer(caller, recipient, amount, ref)], "TRANSFER")

            self._book.apply(update)
            event = SharesTransferred(
                pool_id=self.pool_id,
                timestamp=tx.execution_time,
                exec_id=tx.exec_id,
                tranche_index=tranche_index,
                source=caller,
                dest=recipient,
                amount=amount,
            )
            if self.verbose:
                print(f"✓ TRANSFERRED [{self.pool_id}]: {amount} {shares.symbol} {caller}→{recipient}")
        self._emit(event)
        return event

    # ========================================================================
    # DEPOSITS
    # ========================================================================

    def deposit_interest(self, caller: str, amount: int) -> InterestDeposited:
        """
        Pay interest into the pool and distribute it by interest weights.

        Raises:
            StateError: tranches not defined
            ValidationError: non-positive amount, unknown caller
            InsufficientResourceError: caller cannot pay
        """
        return self._deposit(caller, amount, Flow.INTEREST)

    def deposit_principal(self, caller: str, amount: int) -> PrincipalDeposited:
        """
        Pay principal into the pool and distribute it by principal weights.

        Raises:
            StateError: tranches not defined, or ledger time before maturity
            ValidationError: non-positive amount, unknown caller
            InsufficientResourceError: caller cannot pay
        """
        return self._deposit(caller, amount, Flow.PRINCIPAL)

    def _deposit(self, caller: str, amount: int, flow: Flow):
        with self._operation(f"deposit_{flow.value}") as ref:
            self._require_wallet(caller)
            self._require_defined()
            if flow is Flow.PRINCIPAL and self.ledger.current_time < self.maturity:
                raise StateError(
                    f"principal deposits open at maturity {self.maturity}, "
                    f"ledger time is {self.ledger.current_time}"
                )
            self._check_amount(amount)

            slices = split_amount(amount, [t.weight(flow) for t in self._tranches])
            supplies = [s.total_supply() for s in self._shares]
            update, credited = self._book.plan_accrual(flow, slices, supplies)
            tx = self._execute(
                [self._settlement_move(amount, caller, self.wallet, f"{ref}:pay")],
                f"{flow.name}_DEPOSIT",
            )

            self._book.apply(update)
            self._deposited[flow] += amount
            self._credited[flow] += sum(credited)
            event_type = InterestDeposited if flow is Flow.INTEREST else PrincipalDeposited
            event = event_type(
                pool_id=self.pool_id,
                timestamp=tx.execution_time,
                exec_id=tx.exec_id,
                depositor=caller,
                amount=amount,
                slices=slices,
                credited=credited,
            )
            if self.verbose:
                print(f"✓ DEPOSIT [{self.pool_id}]: {flow.value} {amount} from {caller}, slices {slices}")
        self._emit(event)
        return event

    # ========================================================================
    # CLAIMS
    # ========================================================================

    def claim(self, caller: str, tranche_index: int) -> int:
        """
        Pay caller everything owed on one tranche (interest and principal).

        Returns:
            Settlement units paid; 0 when nothing is owed (not an error).

        Raises:
            StateError: tranches not defined
            TrancheIndexError: unknown tranche
        """
        with self._operation("claim") as ref:
            self._require_wallet(caller)
            self._check_tranche(tranche_index)
            paid, events = self._claim(caller, [tranche_index], ref)
        for event in events:
            self._emit(event)
        return paid

    def claim_all(self, caller: str) -> int:
        """
        Pay caller everything owed on every tranche in one transaction.

        Returns:
            Settlement units paid; 0 when nothing is owed or no tranches exist.
        """
        with self._operation("claim_all") as ref:
            self._require_wallet(caller)
            paid, events = self._claim(caller, list(range(len(self._tranches))), ref)
        for event in events:
            self._emit(event)
        return paid

    def _claim(
        self,
        caller: str,
        tranche_indices: List[int],
        ref: str,
    ) -> Tuple[int, List[HolderClaimed]]:
        planned: List[Tuple[int, Dict[Flow, int]]] = []
        update = BookUpdate()
        for i in tranche_indices:
            balance = self._shares[i].balance_of(caller)
            owed, tranche_update = self._book.plan_claim(i, caller, balance)
            if sum(owed.values()) > 0:
                planned.append((i, owed))
                update = update.merge(tranche_update)
        if not planned:
            return 0, []

        moves = [
            self._settlement_move(sum(owed.values()), self.wallet, caller,
                                  f"{ref}:{self._tranches[i].symbol}")
            for i, owed in planned
        ]
        tx = self._execute(moves, "CLAIM")

        self._book.apply(update)
        events = []
        for i, owed in planned:
            for flow in FLOWS:
                self._claimed[flow] += owed[flow]
            events.append(HolderClaimed(
                pool_id=self.pool_id,
                timestamp=tx.execution_time,
                exec_id=tx.exec_id,
                holder=caller,
                tranche_index=i,
                interest=owed[Flow.INTEREST],
                principal=owed[Flow.PRINCIPAL],
            ))
        paid = sum(e.total for e in events)
        if self.verbose:
            print(f"✓ CLAIMED [{self.pool_id}]: {caller} {paid} {self.settlement_unit}")
        return paid, events
