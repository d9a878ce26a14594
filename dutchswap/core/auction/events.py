"""
Registry events.

Emitted once per committed lifecycle transition:
- AuctionCreated    (create_auction)
- AuctionFinalized  (buy)
- AuctionCancelled  (cancel_auction)

Events are immutable pydantic models so they can be exported with
model_dump() / model_dump_json() for logs or downstream consumers.
"""

from typing import Callable

from pydantic import BaseModel, ConfigDict, Field


class AuctionEvent(BaseModel):
    """Fields common to every registry event."""

    model_config = ConfigDict(frozen=True)

    auction_id: int = Field(ge=0)
    timestamp: int

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_record(self) -> dict:
        """Flat dict with the event name under 'event'."""
        return {"event": self.name, **self.model_dump()}


class AuctionCreated(AuctionEvent):
    seller: str
    asset: str
    initial_price: int = Field(ge=0)
    duration: int = Field(gt=0)
    decay_rate: int = Field(ge=0)
    amount: int = Field(gt=0)


class AuctionFinalized(AuctionEvent):
    buyer: str
    price_paid: int = Field(ge=0)


class AuctionCancelled(AuctionEvent):
    pass


EventListener = Callable[[AuctionEvent], None]
