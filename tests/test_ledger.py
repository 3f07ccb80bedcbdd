"""Tests for the in-memory ledger and block height oracle."""

import pytest

from htlc_registry.chain import Chain
from htlc_registry.errors import InsufficientFunds, LedgerError
from htlc_registry.ledger import InMemoryLedger
from htlc_registry.models import TransferEvent


@pytest.fixture
def ledger():
    return InMemoryLedger({"alice": 500, "bob": 0})


class TestInMemoryLedger:
    """Balance transfers."""

    def test_transfer_moves_funds(self, ledger):
        """Test a transfer debits and credits."""
        event = ledger.transfer("alice", "escrow", 200)

        assert event == TransferEvent(amount=200, sender="alice", recipient="escrow")
        assert ledger.balance("alice") == 300
        assert ledger.balance("escrow") == 200

    def test_insufficient_funds(self, ledger):
        """Test overdrafts are refused without side effects."""
        with pytest.raises(InsufficientFunds) as exc_info:
            ledger.transfer("alice", "bob", 501)

        assert exc_info.value.context == {"account": "alice", "balance": 500, "amount": 501}
        assert ledger.balance("alice") == 500
        assert ledger.balance("bob") == 0

    def test_unknown_account_has_no_funds(self, ledger):
        """Test unseen accounts hold nothing."""
        assert ledger.balance("carol") == 0
        with pytest.raises(InsufficientFunds):
            ledger.transfer("carol", "bob", 1)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, ledger, amount):
        """Test zero and negative transfers are refused."""
        with pytest.raises(LedgerError):
            ledger.transfer("alice", "bob", amount)

    def test_self_transfer_refused(self, ledger):
        """Test transfers to the same account are refused."""
        with pytest.raises(LedgerError):
            ledger.transfer("alice", "alice", 1)

    def test_balances_skip_empty_accounts(self, ledger):
        """Test zero balances are omitted."""
        assert ledger.balances() == {"alice": 500}

    def test_total_supply_constant(self, ledger):
        """Test transfers conserve supply."""
        ledger.transfer("alice", "bob", 120)
        ledger.transfer("bob", "carol", 20)
        assert ledger.total_supply() == 500

    def test_credit_rejects_negative(self, ledger):
        """Test negative credits are refused."""
        with pytest.raises(ValueError):
            ledger.credit("alice", -1)


class TestChain:
    """Block height oracle."""

    def test_mining(self):
        """Test block mining."""
        chain = Chain()
        assert chain.current_height() == 0
        assert chain.mine_block() == 1
        assert chain.mine_empty_blocks(9) == 10
        assert chain.current_height() == 10

    def test_advance_to(self):
        """Test advancing to an absolute height."""
        chain = Chain(100)
        assert chain.advance_to(105) == 105
        assert chain.advance_to(105) == 105

    def test_height_never_decreases(self):
        """Test the chain refuses to move backwards."""
        chain = Chain(100)
        with pytest.raises(ValueError):
            chain.advance_to(99)
        with pytest.raises(ValueError):
            chain.mine_empty_blocks(-1)
        assert chain.current_height() == 100

    def test_negative_start(self):
        """Test a negative starting height is refused."""
        with pytest.raises(ValueError):
            Chain(-1)
