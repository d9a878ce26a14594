"""
Native currency balances and the value transfer primitive.

Buyers pay in the native currency. A buy attaches its payment to the
call (collected into the registry account), and the registry forwards
the price to the seller and any excess back to the buyer.
"""

from dutchswap.core.ledger.balances import BalanceBook
from dutchswap.utils.logger import get_logger

logger = get_logger("ledger.native")


class NativeBalances(BalanceBook):
    """In-memory native currency ledger."""

    def __init__(self, name: str = "native"):
        super().__init__(name=name)

    def credit(self, account: str, amount: int) -> None:
        """Fund an account out of thin air (genesis / faucet)."""
        self._credit(account, amount)
        logger.debug(f"Credited {amount} to {account[:10]}...")

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        self._move(sender, to, amount)
        return True

    @property
    def total(self) -> int:
        with self._lock:
            return sum(self.balances.values())


class ValueTransfer:
    """
    Payment operations the auction registry needs.

    Each call is all-or-nothing and raises a LedgerError on failure.
    Writes are journaled by the underlying ledger, so a registry rollback
    reverts them.
    """

    def collect(self, sender: str, amount: int) -> None:
        """Take `amount` from `sender` into the registry account."""
        raise NotImplementedError

    def send(self, to: str, amount: int) -> None:
        """Pay `amount` from the registry account to `to`."""
        raise NotImplementedError


class NativeTransfer(ValueTransfer):
    """ValueTransfer over NativeBalances, paying out of `custodian`."""

    def __init__(self, balances: NativeBalances, custodian: str):
        self.balances = balances
        self.custodian = custodian

    def collect(self, sender: str, amount: int) -> None:
        if amount:
            self.balances.transfer(sender, self.custodian, amount)

    def send(self, to: str, amount: int) -> None:
        if amount:
            self.balances.transfer(self.custodian, to, amount)
