"""
Auction record and lifecycle states.

State machine:

    ACTIVE --buy--> SOLD
       \\--cancel--> CANCELLED

SOLD and CANCELLED are terminal. Records are never deleted; a settled
auction stays in the registry as history.
"""

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Optional


class AuctionStatus(IntEnum):
    """Lifecycle state of an auction."""
    ACTIVE = 0      # Escrow held, open for buy or cancel
    SOLD = 1        # Settled with a buyer
    CANCELLED = 2   # Escrow returned to seller


@dataclass
class Auction:
    """
    A single-asset reverse Dutch auction.

    Attributes:
        auction_id: Monotonic identifier, first auction is 0
        seller: Address that created the auction and may cancel it
        asset: Identifier of the escrowed asset
        initial_price: Price at start_time (fixed-point integer)
        start_time: Creation timestamp in seconds
        duration: Seconds until the price reaches zero and buying closes
        decay_rate: Price decrease per elapsed second
        amount: Escrowed quantity of `asset`
        status: Lifecycle state
        buyer: Winning buyer, once sold
        price_paid: Settlement price, once sold
    """
    auction_id: int
    seller: str
    asset: str
    initial_price: int
    start_time: int
    duration: int
    decay_rate: int
    amount: int
    status: AuctionStatus = AuctionStatus.ACTIVE
    buyer: Optional[str] = None
    price_paid: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.status is AuctionStatus.ACTIVE

    @property
    def end_time(self) -> int:
        """First timestamp at which the auction counts as expired."""
        return self.start_time + self.duration

    def elapsed(self, now: int) -> int:
        """Seconds since start, never negative."""
        return max(0, now - self.start_time)

    def has_expired(self, now: int) -> bool:
        return self.elapsed(now) >= self.duration

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.name
        data["active"] = self.active
        return data
