"""
Error taxonomy for the auction registry and its ledgers.

Registry operations raise an AuctionError subclass and commit nothing.
Ledger failures are LedgerError subclasses; the registry re-raises them
as TransferFailed with the ledger error as __cause__.
"""

from typing import Optional


# =============================================================================
# Registry Errors
# =============================================================================


class AuctionError(Exception):
    """Base class for every registry failure."""

    def __init__(self, message: str, auction_id: Optional[int] = None):
        super().__init__(message)
        self.auction_id = auction_id


class NotFound(AuctionError, LookupError):
    """Auction id was never issued."""


class AuctionNotActive(AuctionError):
    """Auction was already sold or cancelled."""


class AuctionExpired(AuctionError):
    """Auction is still active but its duration has elapsed."""


class InsufficientPayment(AuctionError):
    """Payment is below the current price."""

    def __init__(self, message: str, auction_id: Optional[int] = None, price: int = 0, payment: int = 0):
        super().__init__(message, auction_id)
        self.price = price
        self.payment = payment


class Unauthorized(AuctionError):
    """Caller may not perform this operation (non-seller cancel)."""


class TransferFailed(AuctionError):
    """Escrow pull/push or value send failed; the operation was rolled back."""


class ArithmeticOverflow(AuctionError, OverflowError):
    """decay_rate * duration does not fit the unsigned word."""


class InvalidParameter(AuctionError, ValueError):
    """Creation parameter out of range or of the wrong type."""


# =============================================================================
# Ledger Errors
# =============================================================================


class LedgerError(Exception):
    """Base class for balance book failures."""


class InsufficientBalance(LedgerError):
    """Sender balance is below the transfer amount."""


class InsufficientAllowance(LedgerError):
    """Spender was not approved for the transfer amount."""


class PaymentRejected(LedgerError):
    """Recipient refuses incoming funds."""


class UnknownAsset(LedgerError, LookupError):
    """No ledger is registered for the asset id."""


__all__ = [
    "AuctionError",
    "NotFound",
    "AuctionNotActive",
    "AuctionExpired",
    "InsufficientPayment",
    "Unauthorized",
    "TransferFailed",
    "ArithmeticOverflow",
    "InvalidParameter",
    "LedgerError",
    "InsufficientBalance",
    "InsufficientAllowance",
    "PaymentRejected",
    "UnknownAsset",
]
