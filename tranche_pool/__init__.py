"""
tranche_pool - Loan Collateral Pool with Tranched Cash-Flow Distribution

Pools loan collateral, splits the pooled principal into tranches of
fungible shares and distributes later interest and principal inflows to
share holders through a magnified per-share index.

Usage:
    from datetime import datetime
    from tranche_pool import (
        Ledger, TranchePool, Move, SYSTEM_WALLET, build_transaction,
        cash, create_loan_unit, originate_loan,
    )

    ledger = Ledger("main", datetime(2025, 1, 1))
    ledger.register_unit(cash("USDC", "USD Coin"))
    for wallet in ("originator", "alice", "servicer"):
        ledger.register_wallet(wallet)
    ledger.execute(build_transaction(ledger, [
        Move(1000, "USDC", SYSTEM_WALLET, "alice", "fund_alice"),
        Move(1000, "USDC", SYSTEM_WALLET, "servicer", "fund_servicer"),
    ]))
    ledger.execute(originate_loan(ledger, create_loan_unit("LOAN-1", 1000, "originator")))

    pool = TranchePool(ledger, "ABS1", "originator", datetime(2030, 1, 1), "USDC")
    pool.pool_loans("originator", ["LOAN-1"])
    pool.define_tranches("originator", ["Senior", "Junior"], ["SNR", "JNR"],
                         [8000, 2000], [6000, 4000])
    pool.buy("alice", 0, 800)
    pool.deposit_interest("servicer", 50)
    pool.claim("alice", 0)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    ExecuteResult,
    LedgerError,
    AuthorizationError,
    StateError,
    ValidationError,
    TrancheIndexError,
    InsufficientResourceError,
    InsufficientFunds,
    TransferRuleViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    cash,
    SYSTEM_WALLET,
    MAG,
    BPS_DENOMINATOR,
    UNIT_TYPE_CASH,
    UNIT_TYPE_LOAN,
    UNIT_TYPE_TRANCHE_SHARE,
)

# Ledger
from .ledger import Ledger

# Waterfall
from .waterfall import validate_weights, split_amount, split_residual

# Distribution
from .distribution import (
    Flow,
    FLOWS,
    MagnifiedIndex,
    ClaimRecord,
    BookUpdate,
    DistributionBook,
)

# Loans
from .units.loan import (
    LoanRecord,
    LoanRegistry,
    LedgerLoanRegistry,
    create_loan_unit,
    originate_loan,
    custody_move,
    custodian_of,
)

# Tranche shares
from .units.tranche_share import (
    TrancheShares,
    create_tranche_share_unit,
    tranche_share_transfer_rule,
    pool_contract_id,
)

# Events
from .events import (
    PoolEvent,
    CollateralPooled,
    TranchesDefined,
    SharesPurchased,
    SharesTransferred,
    DepositEvent,
    InterestDeposited,
    PrincipalDeposited,
    HolderClaimed,
    EventLog,
    ListenerFailure,
)

# Pool
from .pool import PoolPhase, PooledLoan, Tranche, TranchePool

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin', 'OriginType',
    'build_transaction', 'Unit', 'ExecuteResult',
    'LedgerError', 'AuthorizationError', 'StateError', 'ValidationError', 'TrancheIndexError',
    'InsufficientResourceError', 'InsufficientFunds', 'TransferRuleViolation',
    'UnitNotRegistered', 'WalletNotRegistered',
    'cash', 'SYSTEM_WALLET', 'MAG', 'BPS_DENOMINATOR',
    'UNIT_TYPE_CASH', 'UNIT_TYPE_LOAN', 'UNIT_TYPE_TRANCHE_SHARE',
    # Ledger
    'Ledger',
    # Waterfall
    'validate_weights', 'split_amount', 'split_residual',
    # Distribution
    'Flow', 'FLOWS', 'MagnifiedIndex', 'ClaimRecord', 'BookUpdate', 'DistributionBook',
    # Loans
    'LoanRecord', 'LoanRegistry', 'LedgerLoanRegistry', 'create_loan_unit', 'originate_loan',
    'custody_move', 'custodian_of',
    # Tranche shares
    'TrancheShares', 'create_tranche_share_unit', 'tranche_share_transfer_rule', 'pool_contract_id',
    # Events
    'PoolEvent', 'CollateralPooled', 'TranchesDefined', 'SharesPurchased', 'SharesTransferred',
    'DepositEvent', 'InterestDeposited', 'PrincipalDeposited', 'HolderClaimed', 'EventLog', 'ListenerFailure',
    # Pool
    'PoolPhase', 'PooledLoan', 'Tranche', 'TranchePool',
]

__version__ = '1.0.0'
