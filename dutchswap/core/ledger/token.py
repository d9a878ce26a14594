"""
Fungible Token - in-memory ERC-20 style asset ledger.

Provides:
- FungibleToken: balances, allowances, transfer / approve / transfer_from
- TokenDirectory: asset id -> token lookup
- AssetLedger: the escrow interface the auction registry consumes
- TokenEscrow: AssetLedger bound to one token and one custodian account

The registry never touches balances directly. It pulls an approved amount
from a seller into its custodian account and pushes it out again on
settlement or cancellation.
"""

from typing import Dict, Iterator, Optional, Tuple

from dutchswap.core.errors import InsufficientAllowance, UnknownAsset
from dutchswap.core import journal
from dutchswap.core.ledger.balances import BalanceBook
from dutchswap.utils.logger import get_logger

logger = get_logger("ledger.token")


# =============================================================================
# Fungible Token
# =============================================================================


class FungibleToken(BalanceBook):
    """
    ERC-20 style token.

    Attributes:
        asset_id: Identifier auctions refer to
        symbol: Ticker used for display
        decimals: Display decimals
        allowances: (owner, spender) -> approved amount
    """

    def __init__(
        self,
        asset_id: str,
        name: str = "",
        symbol: str = "",
        decimals: int = 18,
    ):
        super().__init__(name=symbol or asset_id)
        self.asset_id = asset_id
        self.token_name = name or asset_id
        self.symbol = symbol or asset_id
        self.decimals = decimals
        self.allowances: Dict[Tuple[str, str], int] = {}
        self._total_supply = 0

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def mint(self, to: str, amount: int) -> None:
        """Create `amount` new tokens for `to`."""
        self._credit(to, amount)
        self._adjust_supply(amount)
        logger.debug(f"{self.symbol}: minted {amount} to {to[:10]}...")

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move tokens from `sender` to `to`."""
        self._move(sender, to, amount)
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Allow `spender` to move up to `amount` of `owner`'s tokens."""
        if amount < 0:
            raise ValueError(f"Allowance must be non-negative, got {amount}")
        key = (owner, spender)
        previous = self._set_allowance(key, amount)
        journal.record(lambda: self._set_allowance(key, previous))
        logger.debug(f"{self.symbol}: {owner[:10]}... approved {spender[:10]}... for {amount}")
        return True

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """
        Move `owner`'s tokens on their behalf, consuming allowance.

        Raises:
            InsufficientAllowance: spender approved for less than `amount`
            InsufficientBalance: owner cannot cover the amount
        """
        approved = self.allowance(owner, spender)
        if approved < amount:
            raise InsufficientAllowance(
                f"{self.symbol}: {spender} approved for {approved} of {owner}'s tokens, needs {amount}"
            )

        with journal.transaction():
            self._adjust_allowance((owner, spender), -amount)
            self._move(owner, to, amount)
        return True

    def _set_allowance(self, key: Tuple[str, str], amount: int) -> int:
        """Overwrite an allowance, returning the previous value."""
        with self._lock:
            previous = self.allowances.get(key, 0)
            self.allowances[key] = amount
        return previous

    def _apply_allowance(self, key: Tuple[str, str], delta: int) -> None:
        with self._lock:
            self.allowances[key] = self.allowances.get(key, 0) + delta

    def _adjust_allowance(self, key: Tuple[str, str], delta: int) -> None:
        self._apply_allowance(key, delta)
        journal.record(lambda: self._apply_allowance(key, -delta))

    def _apply_supply(self, delta: int) -> None:
        with self._lock:
            self._total_supply += delta

    def _adjust_supply(self, delta: int) -> None:
        self._apply_supply(delta)
        journal.record(lambda: self._apply_supply(-delta))

    def __repr__(self) -> str:
        return f"FungibleToken({self.asset_id!r}, supply={self._total_supply}, holders={len(self.balances)})"


# =============================================================================
# Escrow Interface
# =============================================================================


class AssetLedger:
    """
    Escrow operations the auction registry needs from an asset ledger.

    Each call is all-or-nothing and raises a LedgerError on failure.
    """

    def pull_into(self, owner: str, amount: int) -> None:
        """Move `amount` from `owner` into escrow (requires prior approval)."""
        raise NotImplementedError

    def push_to(self, to: str, amount: int) -> None:
        """Move `amount` out of escrow to `to`."""
        raise NotImplementedError

    def balance_of(self, account: str) -> int:
        raise NotImplementedError


class TokenEscrow(AssetLedger):
    """AssetLedger over a FungibleToken, holding funds in `custodian`."""

    def __init__(self, token: FungibleToken, custodian: str):
        self.token = token
        self.custodian = custodian

    def pull_into(self, owner: str, amount: int) -> None:
        self.token.transfer_from(self.custodian, owner, self.custodian, amount)

    def push_to(self, to: str, amount: int) -> None:
        self.token.transfer(self.custodian, to, amount)

    def balance_of(self, account: str) -> int:
        return self.token.balance_of(account)


# =============================================================================
# Token Directory
# =============================================================================


class TokenDirectory:
    """Asset id -> FungibleToken lookup shared by the registry and callers."""

    def __init__(self, tokens: Optional[Dict[str, FungibleToken]] = None):
        self.tokens: Dict[str, FungibleToken] = dict(tokens or {})

    def add(self, token: FungibleToken) -> FungibleToken:
        if token.asset_id in self.tokens:
            raise ValueError(f"Asset already registered: {token.asset_id}")
        self.tokens[token.asset_id] = token
        logger.info(f"Registered asset {token.asset_id} ({token.symbol})")
        return token

    def create(self, asset_id: str, name: str = "", symbol: str = "", decimals: int = 18) -> FungibleToken:
        """Create and register a new token."""
        return self.add(FungibleToken(asset_id, name=name, symbol=symbol, decimals=decimals))

    def get(self, asset_id: str) -> FungibleToken:
        token = self.tokens.get(asset_id)
        if token is None:
            raise UnknownAsset(f"No ledger registered for asset {asset_id!r}")
        return token

    def escrow(self, asset_id: str, custodian: str) -> TokenEscrow:
        """Escrow adapter for `asset_id` held by `custodian`."""
        return TokenEscrow(self.get(asset_id), custodian)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self.tokens

    def __iter__(self) -> Iterator[FungibleToken]:
        return iter(self.tokens.values())

    def __len__(self) -> int:
        return len(self.tokens)
