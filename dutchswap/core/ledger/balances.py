"""
Balance Book - shared account bookkeeping for the in-memory ledgers.

Both the fungible token ledger and the native currency ledger are
account -> balance maps with the same transfer semantics:

1. Transfers are all-or-nothing: a failed transfer changes nothing
2. A recipient may refuse funds (reject_payments)
3. A recipient may run code on receipt (on_receive hooks), which can
   re-enter whoever initiated the transfer
4. Every balance change records its inverse in the thread's open
   journal, so callers such as the auction registry can revert exactly
   the writes their own operation made

Each balance update is applied as a delta under the book's lock, so
undoing one thread's writes never discards another thread's.
"""

import threading
from typing import Callable, Dict, List, Set

from dutchswap.core import journal
from dutchswap.core.errors import InsufficientBalance, LedgerError, PaymentRejected
from dutchswap.utils.logger import get_logger

logger = get_logger("ledger")

# hook(sender, recipient, amount)
ReceiveHook = Callable[[str, str, int], None]


class BalanceBook:
    """
    Account balances with hook and rejection support.

    Attributes:
        name: Label used in logs and error messages
        balances: Mapping of account address to balance
    """

    def __init__(self, name: str):
        self.name = name
        self.balances: Dict[str, int] = {}
        self._hooks: Dict[str, List[ReceiveHook]] = {}
        self._rejecting: Set[str] = set()
        self._lock = threading.Lock()

    # =========================================================================
    # Queries
    # =========================================================================

    def balance_of(self, account: str) -> int:
        """Balance of an account (0 for unknown accounts)."""
        return self.balances.get(account, 0)

    # =========================================================================
    # Recipient Behaviour
    # =========================================================================

    def on_receive(self, account: str, hook: ReceiveHook) -> None:
        """Register code to run after `account` is credited by a transfer."""
        self._hooks.setdefault(account, []).append(hook)

    def clear_hooks(self, account: str) -> None:
        self._hooks.pop(account, None)

    def reject_payments(self, account: str, reject: bool = True) -> None:
        """Make every incoming transfer to `account` fail (or stop failing)."""
        if reject:
            self._rejecting.add(account)
        else:
            self._rejecting.discard(account)

    # =========================================================================
    # Internal Movements
    # =========================================================================

    def _apply(self, account: str, delta: int) -> None:
        with self._lock:
            self.balances[account] = self.balances.get(account, 0) + delta

    def _adjust(self, account: str, delta: int) -> None:
        """Apply a balance delta and journal its inverse."""
        self._apply(account, delta)
        journal.record(lambda: self._apply(account, -delta))

    def _debit(self, account: str, amount: int) -> None:
        """Remove `amount` from `account`, checking funds under the lock."""
        with self._lock:
            available = self.balances.get(account, 0)
            if available < amount:
                raise InsufficientBalance(
                    f"{self.name}: {account} has {available}, needs {amount}"
                )
            self.balances[account] = available - amount
        journal.record(lambda: self._apply(account, amount))

    def _credit(self, account: str, amount: int) -> None:
        """Add funds without running hooks (minting, faucets)."""
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        self._adjust(account, amount)

    def _move(self, sender: str, to: str, amount: int) -> None:
        """
        Move `amount` from `sender` to `to`, then run the recipient's hooks.

        The move and everything the hooks do run as one nested transaction,
        so a failing hook reverts the move along with its own writes.

        Raises:
            ValueError: negative amount
            PaymentRejected: recipient refuses funds or a hook failed
            InsufficientBalance: sender cannot cover the amount
        """
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")

        if to in self._rejecting:
            raise PaymentRejected(f"{self.name}: {to} rejects incoming transfers")

        with journal.transaction():
            self._debit(sender, amount)
            self._adjust(to, amount)

            for hook in list(self._hooks.get(to, ())):
                try:
                    hook(sender, to, amount)
                except LedgerError as e:
                    logger.warning(f"{self.name}: receive hook of {to} failed, transfer reverted: {e}")
                    raise
                except Exception as e:
                    logger.warning(f"{self.name}: receive hook of {to} failed, transfer reverted: {e}")
                    raise PaymentRejected(f"{self.name}: receive hook of {to} failed: {e}") from e

        logger.debug(f"{self.name}: moved {amount} {sender[:10]}... -> {to[:10]}...")
