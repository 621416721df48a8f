"""
test_loan.py - Unit tests for loan tokens, the loan registry and custody

Tests:
- create_loan_unit validation and registry state
- originate_loan issues exactly one token to the originator
- custody moves and custodian lookup
- LedgerLoanRegistry lookups (known, unknown, wrong unit type)
"""

import pytest
from datetime import datetime

from tranche_pool import (
    Ledger, ExecuteResult, cash, build_transaction,
    create_loan_unit, originate_loan, custody_move, custodian_of,
    LedgerLoanRegistry, LoanRegistry, LoanRecord,
    UNIT_TYPE_LOAN, SYSTEM_WALLET, ValidationError,
)
from tests.fake_view import FakeView


class TestCreateLoanUnit:

    def test_non_fungible_unit(self):
        unit = create_loan_unit("LOAN-001", 600, "originator")
        assert unit.unit_type == UNIT_TYPE_LOAN
        assert unit.min_balance == 0
        assert unit.max_balance == 1
        assert unit.name == "Loan LOAN-001"

    def test_state_holds_registry_entry(self):
        when = datetime(2024, 6, 1)
        unit = create_loan_unit("LOAN-001", 600, "originator", when, {'rate_bps': 725})
        assert unit.state == {
            'recorded_value': 600,
            'originator': 'originator',
            'origination_date': when,
            'metadata': {'rate_bps': 725},
        }

    @pytest.mark.parametrize("value", [0, -1])
    def test_value_must_be_positive(self, value):
        with pytest.raises(ValueError, match="positive"):
            create_loan_unit("LOAN-001", value, "originator")

    def test_value_must_be_int(self):
        with pytest.raises(ValueError, match="must be int"):
            create_loan_unit("LOAN-001", 600.0, "originator")

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError, match="loan_id"):
            create_loan_unit("", 600, "originator")

    def test_empty_originator_rejected(self):
        with pytest.raises(ValueError, match="originator"):
            create_loan_unit("LOAN-001", 600, " ")


class TestOrigination:

    def test_originate_issues_one_token(self, funded_ledger):
        unit = create_loan_unit("LOAN-001", 600, "originator")
        assert funded_ledger.execute(originate_loan(funded_ledger, unit)) == ExecuteResult.APPLIED
        assert funded_ledger.get_balance("originator", "LOAN-001") == 1
        assert funded_ledger.total_supply("LOAN-001") == 1
        assert custodian_of(funded_ledger, "LOAN-001") == "originator"

    def test_originate_twice_rejected(self, funded_ledger):
        unit = create_loan_unit("LOAN-001", 600, "originator")
        funded_ledger.execute(originate_loan(funded_ledger, unit))
        duplicate = create_loan_unit("LOAN-001", 999, "originator")
        assert funded_ledger.execute(originate_loan(funded_ledger, duplicate)) != ExecuteResult.APPLIED
        assert funded_ledger.get_unit_state("LOAN-001")['recorded_value'] == 600

    def test_originate_requires_loan_unit(self, funded_ledger):
        with pytest.raises(ValueError, match="not a LOAN unit"):
            originate_loan(funded_ledger, cash("EURC", "Euro Coin"))

    def test_originate_to_unknown_wallet_rolls_back(self, funded_ledger):
        unit = create_loan_unit("LOAN-001", 600, "nobody")
        assert funded_ledger.execute(originate_loan(funded_ledger, unit)) == ExecuteResult.REJECTED
        assert "LOAN-001" not in funded_ledger.list_units()


class TestCustody:

    def test_custody_move(self):
        move = custody_move("LOAN-001", "originator", "pool:ABS1", "ABS1:pool:1:LOAN-001")
        assert move.quantity == 1
        assert move.unit_symbol == "LOAN-001"

    def test_custody_transfer(self, funded_ledger):
        funded_ledger.execute(originate_loan(funded_ledger, create_loan_unit("LOAN-001", 600, "originator")))
        funded_ledger.register_wallet("custodian")
        tx = build_transaction(funded_ledger, [custody_move("LOAN-001", "originator", "custodian", "hand_over")])
        assert funded_ledger.execute(tx) == ExecuteResult.APPLIED
        assert custodian_of(funded_ledger, "LOAN-001") == "custodian"

    def test_custody_cannot_be_duplicated(self, funded_ledger):
        funded_ledger.execute(originate_loan(funded_ledger, create_loan_unit("LOAN-001", 600, "originator")))
        tx = build_transaction(funded_ledger, [custody_move("LOAN-001", "alice", "bob", "steal")])
        assert funded_ledger.execute(tx) == ExecuteResult.REJECTED
        assert custodian_of(funded_ledger, "LOAN-001") == "originator"

    def test_custodian_of_unissued_loan(self):
        view = FakeView(balances={SYSTEM_WALLET: {}})
        assert custodian_of(view, "LOAN-404") is None


class TestLedgerLoanRegistry:

    def test_implements_protocol(self, funded_ledger):
        assert isinstance(LedgerLoanRegistry(funded_ledger), LoanRegistry)

    def test_lookup(self, funded_ledger):
        unit = create_loan_unit("LOAN-001", 600, "originator", metadata={'term_months': 36})
        funded_ledger.execute(originate_loan(funded_ledger, unit))
        record = LedgerLoanRegistry(funded_ledger).lookup("LOAN-001")
        assert record == LoanRecord("LOAN-001", 600, "originator", None, {'term_months': 36})

    def test_lookup_on_fake_view(self):
        unit = create_loan_unit("LOAN-007", 42, "bank")
        view = FakeView(balances={'bank': {'LOAN-007': 1}}, units={'LOAN-007': unit})
        assert LedgerLoanRegistry(view).lookup("LOAN-007").recorded_value == 42

    def test_unknown_loan(self, funded_ledger):
        with pytest.raises(ValidationError, match="unknown loan"):
            LedgerLoanRegistry(funded_ledger).lookup("LOAN-404")

    def test_non_loan_unit(self, funded_ledger):
        with pytest.raises(ValidationError, match="is not a loan"):
            LedgerLoanRegistry(funded_ledger).lookup("USDC")
