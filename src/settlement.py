"""
Value transfer adapters for the royalty ledger.

The ledger never moves funds itself. It calls a ValueTransfer primitive:
- transfer(amount, sender, recipient) -> bool, atomic per call
- atomic(): a scope in which every transfer is rolled back if the block raises

Implementations:
- LocalTransferLedger: in-memory account balances for tests and
  single-node deployments

Usage:
    transfers = LocalTransferLedger({"fan": 1_000})
    with transfers.atomic():
        if not transfers.transfer(400, "fan", "platform-pool"):
            raise InsufficientFundsError(...)
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from monitoring import get_logger

logger = get_logger(__name__)


@dataclass
class TransferRecord:
    """A completed transfer."""

    amount: int
    sender: str
    recipient: str
    sequence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "sender": self.sender,
            "recipient": self.recipient,
            "sequence": self.sequence,
        }


class ValueTransfer(ABC):
    """
    Abstract value-transfer primitive.

    ``transfer`` either moves the full amount and returns True, or moves
    nothing and returns False.
    """

    @abstractmethod
    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        """
        Move funds between accounts.

        Args:
            amount: Amount in minimal units (> 0)
            sender: Account debited
            recipient: Account credited

        Returns:
            True if the transfer happened, False if it failed
        """
        pass

    @abstractmethod
    @contextmanager
    def atomic(self):
        """
        Group transfers into one all-or-nothing batch.

        Transfers made inside the block are reverted if the block raises.
        """
        yield


@dataclass
class _Journal:
    balances: dict[str, int]
    history_len: int
    entries: list[TransferRecord] = field(default_factory=list)


class LocalTransferLedger(ValueTransfer):
    """
    In-memory account balances.

    Thread-safe. Nested ``atomic()`` scopes roll back to their own entry
    point only.
    """

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = dict(balances or {})
        self._lock = threading.RLock()
        self._journals: list[_Journal] = []
        self._sequence = 0
        self.history: list[TransferRecord] = []
        # accounts whose outgoing or incoming transfers are refused
        self.blocked_accounts: set[str] = set()

    def balance(self, account: str) -> int:
        """Current balance of an account (0 if unknown)."""
        with self._lock:
            return self._balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        """Credit an account out of thin air (funding test payers)."""
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        if amount <= 0:
            return False
        with self._lock:
            if sender in self.blocked_accounts or recipient in self.blocked_accounts:
                logger.warning(
                    "Transfer refused for blocked account",
                    extra={"sender": sender, "recipient": recipient, "amount": amount},
                )
                return False
            if self._balances.get(sender, 0) < amount:
                return False

            self._balances[sender] -= amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            self._sequence += 1
            record = TransferRecord(amount, sender, recipient, self._sequence)
            self.history.append(record)
            for journal in self._journals:
                journal.entries.append(record)
            return True

    @contextmanager
    def atomic(self):
        with self._lock:
            journal = _Journal(balances=dict(self._balances), history_len=len(self.history))
            self._journals.append(journal)
            try:
                yield self
            except BaseException:
                self._balances = journal.balances
                del self.history[journal.history_len:]
                for outer in self._journals:
                    if outer is not journal:
                        outer.entries = [e for e in outer.entries if e not in journal.entries]
                if journal.entries:
                    logger.info(
                        "Rolled back transfer batch",
                        extra={"reverted_transfers": len(journal.entries)},
                    )
                raise
            finally:
                self._journals.remove(journal)

    def snapshot(self) -> dict[str, int]:
        """Copy of all balances."""
        with self._lock:
            return dict(self._balances)
