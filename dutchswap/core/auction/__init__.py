"""
Reverse Dutch auction module.

This module provides:
- Auction records and lifecycle states
- Linear price decay
- Registry events
- The auction registry (create, price, buy, cancel)
"""

from dutchswap.core.auction.model import Auction, AuctionStatus
from dutchswap.core.auction.pricing import (
    check_decay_bound,
    current_price,
    price_at,
    price_schedule,
    saturating_sub,
)
from dutchswap.core.auction.events import (
    AuctionEvent,
    AuctionCreated,
    AuctionFinalized,
    AuctionCancelled,
    EventListener,
)
from dutchswap.core.auction.registry import AuctionRegistry

__all__ = [
    # Model
    "Auction",
    "AuctionStatus",
    # Pricing
    "check_decay_bound",
    "current_price",
    "price_at",
    "price_schedule",
    "saturating_sub",
    # Events
    "AuctionEvent",
    "AuctionCreated",
    "AuctionFinalized",
    "AuctionCancelled",
    "EventListener",
    # Registry
    "AuctionRegistry",
]
