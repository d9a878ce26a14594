"""In-memory asset and native currency ledgers"""
from dutchswap.core.ledger.balances import BalanceBook, ReceiveHook
from dutchswap.core.ledger.token import (
    FungibleToken,
    TokenDirectory,
    AssetLedger,
    TokenEscrow,
)
from dutchswap.core.ledger.native import NativeBalances, ValueTransfer, NativeTransfer

__all__ = [
    "BalanceBook",
    "ReceiveHook",
    "FungibleToken",
    "TokenDirectory",
    "AssetLedger",
    "TokenEscrow",
    "NativeBalances",
    "ValueTransfer",
    "NativeTransfer",
]
