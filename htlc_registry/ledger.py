"""
Value transfer backend for swap escrow.

The registry only needs one primitive from its host: move an amount from one
account to another, atomically, or refuse. Escrow is an ordinary account
named after the swap identity, so locking and releasing funds are both plain
transfers.
"""

from abc import ABC, abstractmethod

import structlog

from .errors import InsufficientFunds, LedgerError
from .models import TransferEvent

logger = structlog.get_logger()


class Ledger(ABC):
    """Base class for balance ledgers."""

    @abstractmethod
    def balance(self, account: str) -> int:
        """Current balance of an account (zero if unknown)."""
        pass

    @abstractmethod
    def transfer(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        """Move `amount` from sender to recipient or raise a LedgerError."""
        pass


class InMemoryLedger(Ledger):
    """Account balances held in a dict."""

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = {}
        for account, amount in (balances or {}).items():
            self.credit(account, amount)

    def balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def balances(self) -> dict[str, int]:
        """Snapshot of every account with a non-zero balance."""
        return {account: amount for account, amount in self._balances.items() if amount}

    def total_supply(self) -> int:
        return sum(self._balances.values())

    def credit(self, account: str, amount: int):
        """Provision an account with new funds."""
        if amount < 0:
            raise ValueError("Cannot credit a negative amount")
        self._balances[account] = self.balance(account) + amount
        logger.debug("Credited account", account=account, amount=amount)

    def transfer(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        if amount <= 0:
            raise LedgerError("Transfer amount must be positive", amount=amount)
        if sender == recipient:
            raise LedgerError("Sender and recipient are the same account", account=sender)

        available = self.balance(sender)
        if available < amount:
            raise InsufficientFunds(
                account=sender, balance=available, amount=amount
            )

        # Both legs applied together; nothing above this line mutates state
        self._balances[sender] = available - amount
        self._balances[recipient] = self.balance(recipient) + amount

        logger.debug(
            "Transferred funds", sender=sender, recipient=recipient, amount=amount
        )
        return TransferEvent(amount=amount, sender=sender, recipient=recipient)
