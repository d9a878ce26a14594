"""
Auction Registry - reverse Dutch auction lifecycle and atomic settlement.

This module provides:
- Auction creation with asset escrow
- Linear price decay queries
- Buy: atomic swap of escrowed asset for native payment
- Cancel: escrow returned to the seller

Settlement Ordering:
-------------------
Every mutating operation runs under one re-entrant lock and follows the
same shape:

1. Check preconditions against local state
2. Update local state (the auction leaves ACTIVE here)
3. Perform external transfers, any of which may run recipient code that
   re-enters the registry
4. Append the event to the log

A re-entrant call during step 3 already sees the updated state, so it
cannot buy or cancel the auction being settled. Every write is recorded
in the thread's undo journal (see dutchswap.core.journal). If any step
raises, the writes made since step 1 are reverted, including those of
re-entrant calls into this or any other registry, and the error
propagates. Writes other threads made meanwhile are kept.
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Dict, Iterator, List, Optional

from dutchswap.core import journal
from dutchswap.core.auction.events import (
    AuctionCancelled,
    AuctionCreated,
    AuctionEvent,
    AuctionFinalized,
    EventListener,
)
from dutchswap.core.auction.model import Auction, AuctionStatus
from dutchswap.core.auction.pricing import check_decay_bound, current_price
from dutchswap.core.clock import SystemClock
from dutchswap.core.config import RegistryConfig
from dutchswap.core.errors import (
    AuctionError,
    AuctionExpired,
    AuctionNotActive,
    InsufficientPayment,
    InvalidParameter,
    LedgerError,
    NotFound,
    TransferFailed,
    Unauthorized,
)
from dutchswap.core.ledger.native import NativeBalances, NativeTransfer, ValueTransfer
from dutchswap.core.ledger.token import AssetLedger, TokenDirectory
from dutchswap.crypto import generate_keypair
from dutchswap.utils.logger import get_logger
from dutchswap.utils.validation import (
    validate_address,
    validate_amount,
    validate_asset_id,
    validate_positive,
)

logger = get_logger("registry")


# =============================================================================
# Auction Registry
# =============================================================================


class AuctionRegistry:
    """
    Registry of reverse Dutch auctions.

    Owns every auction record and the escrow account holding sellers'
    assets. Records are stored by id and never removed.

    Attributes:
        address: Custodian account holding escrow and in-flight payments
        tokens: Asset ledgers, by asset id
        value_transfer: Native payment primitive bound to `address`
        events: Log of committed events, in order
    """

    def __init__(
        self,
        tokens: TokenDirectory,
        native: NativeBalances,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[RegistryConfig] = None,
        address: Optional[str] = None,
        value_transfer: Optional[ValueTransfer] = None,
    ):
        """
        Initialize the registry.

        Args:
            tokens: Directory of asset ledgers auctions can escrow
            native: Native currency ledger buyers pay with
            clock: Zero-argument callable returning seconds. None = wall clock
            config: Numeric domain and logging settings
            address: Custodian account. None = freshly generated address
            value_transfer: Payment primitive. None = NativeTransfer over `native`
        """
        self.config = config or RegistryConfig()
        self.max_uint = self.config.max_uint
        self.address = address or generate_keypair().address
        self.tokens = tokens
        self.native = native
        self.value_transfer = value_transfer or NativeTransfer(native, self.address)
        self.clock = clock or SystemClock()

        # Auction ID -> Auction (committed records are never removed)
        self._auctions: Dict[int, Auction] = {}
        self._next_id = 0

        self.events: List[AuctionEvent] = []
        self._listeners: List[EventListener] = []
        self._delivered = 0

        self._lock = threading.RLock()

        logger.info(f"AuctionRegistry initialized at {self.address} ({self.config.word_bits}-bit amounts)")

    # =========================================================================
    # Create
    # =========================================================================

    def create_auction(
        self,
        seller: str,
        asset: str,
        initial_price: int,
        duration: int,
        decay_rate: int,
        amount: int,
    ) -> int:
        """
        Escrow `amount` of `asset` from `seller` and open an auction.

        The seller must have approved the registry address for `amount`.

        Returns:
            The new auction id

        Raises:
            InvalidParameter: malformed address/asset or out-of-range integer
            ArithmeticOverflow: decay_rate * duration exceeds the word size
            TransferFailed: the escrow pull failed (nothing was created)
        """
        self._check(validate_address(seller, "seller"))
        self._check(validate_asset_id(asset))
        self._check(validate_amount(initial_price, "initial_price", self.max_uint))
        self._check(validate_positive(duration, "duration", self.max_uint))
        self._check(validate_amount(decay_rate, "decay_rate", self.max_uint))
        self._check(validate_positive(amount, "amount", self.max_uint))
        check_decay_bound(decay_rate, duration, self.max_uint)

        with self._atomic():
            try:
                self._escrow(asset).pull_into(seller, amount)
            except LedgerError as e:
                raise self._reject(
                    TransferFailed(f"Escrow pull of {amount} {asset} from {seller} failed: {e}")
                ) from e

            now = self.clock()
            auction_id = self._allocate_id()

            self._store(Auction(
                auction_id=auction_id,
                seller=seller,
                asset=asset,
                initial_price=initial_price,
                start_time=now,
                duration=duration,
                decay_rate=decay_rate,
                amount=amount,
            ))
            self._emit(AuctionCreated(
                auction_id=auction_id,
                timestamp=now,
                seller=seller,
                asset=asset,
                initial_price=initial_price,
                duration=duration,
                decay_rate=decay_rate,
                amount=amount,
            ))

        logger.info(
            f"Auction {auction_id} created by {seller[:10]}...: {amount} {asset}, "
            f"price {initial_price} decaying {decay_rate}/s over {duration}s"
        )
        return auction_id

    # =========================================================================
    # Price
    # =========================================================================

    def get_current_price(self, auction_id: int) -> int:
        """
        Current price of an auction.

        Pure read; also answers for sold or cancelled auctions. Does not
        wait for in-flight settlements: records are replaced rather than
        mutated, and the price does not depend on status.

        Raises:
            NotFound: id was never issued
        """
        auction = self._get(auction_id)
        return current_price(auction, self.clock())

    # =========================================================================
    # Buy
    # =========================================================================

    def buy(self, buyer: str, auction_id: int, payment: int) -> int:
        """
        Buy an auction's escrow at the current price.

        `payment` is taken from the buyer, the price goes to the seller and
        any excess is refunded to the buyer.

        Returns:
            The price paid

        Raises:
            NotFound: id was never issued
            AuctionNotActive: already sold or cancelled
            AuctionExpired: still active but past its duration
            InsufficientPayment: payment below the current price
            TransferFailed: a transfer failed; the buy was rolled back
        """
        self._check(validate_address(buyer, "buyer"))
        self._check(validate_amount(payment, "payment", self.max_uint))

        with self._atomic():
            auction = self._get(auction_id)
            if not auction.active:
                raise self._reject(AuctionNotActive(
                    f"Auction {auction_id} is {auction.status.name}", auction_id
                ))

            now = self.clock()
            if auction.has_expired(now):
                raise self._reject(AuctionExpired(
                    f"Auction {auction_id} expired at {auction.end_time}", auction_id
                ))

            price = current_price(auction, now)
            if payment < price:
                raise self._reject(InsufficientPayment(
                    f"Payment {payment} below current price {price} for auction {auction_id}",
                    auction_id,
                    price=price,
                    payment=payment,
                ))

            # Leave ACTIVE before any external call
            self._store(replace(auction, status=AuctionStatus.SOLD, buyer=buyer, price_paid=price))

            try:
                self.value_transfer.collect(buyer, payment)
                self._escrow(auction.asset).push_to(buyer, auction.amount)
                self.value_transfer.send(auction.seller, price)
                self.value_transfer.send(buyer, payment - price)
            except LedgerError as e:
                raise self._reject(TransferFailed(
                    f"Settlement of auction {auction_id} failed: {e}", auction_id
                )) from e

            self._emit(AuctionFinalized(
                auction_id=auction_id,
                timestamp=now,
                buyer=buyer,
                price_paid=price,
            ))

        logger.info(
            f"Auction {auction_id} sold to {buyer[:10]}... for {price} "
            f"(paid {payment}, refunded {payment - price})"
        )
        return price

    # =========================================================================
    # Cancel
    # =========================================================================

    def cancel_auction(self, caller: str, auction_id: int) -> None:
        """
        Cancel an active auction and return its escrow to the seller.

        Allowed at any time before settlement, including after expiry.

        Raises:
            NotFound: id was never issued
            Unauthorized: caller is not the seller
            AuctionNotActive: already sold or cancelled
            TransferFailed: the escrow push failed; nothing changed
        """
        with self._atomic():
            auction = self._get(auction_id)
            if caller != auction.seller:
                raise self._reject(Unauthorized(
                    f"Only the seller may cancel auction {auction_id}", auction_id
                ))
            if not auction.active:
                raise self._reject(AuctionNotActive(
                    f"Auction {auction_id} is {auction.status.name}", auction_id
                ))

            self._store(replace(auction, status=AuctionStatus.CANCELLED))

            try:
                self._escrow(auction.asset).push_to(auction.seller, auction.amount)
            except LedgerError as e:
                raise self._reject(TransferFailed(
                    f"Returning escrow of auction {auction_id} failed: {e}", auction_id
                )) from e

            self._emit(AuctionCancelled(auction_id=auction_id, timestamp=self.clock()))

        logger.info(f"Auction {auction_id} cancelled, {auction.amount} {auction.asset} returned")

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_auction(self, auction_id: int) -> Auction:
        """Copy of an auction record."""
        with self._lock:
            return replace(self._get(auction_id))

    def is_expired(self, auction_id: int) -> bool:
        """True if the auction is active but can no longer be bought."""
        with self._lock:
            auction = self._get(auction_id)
            return auction.active and auction.has_expired(self.clock())

    def auction_count(self) -> int:
        return self._next_id

    def list_auctions(
        self,
        seller: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> List[Auction]:
        """Copies of matching auctions in id order."""
        with self._lock:
            return [
                replace(a)
                for a in self._auctions.values()
                if (seller is None or a.seller == seller)
                and (active is None or a.active == active)
            ]

    def escrowed_amount(self, asset: str) -> int:
        """Total of `asset` the registry holds for active auctions."""
        with self._lock:
            return sum(a.amount for a in self._auctions.values() if a.active and a.asset == asset)

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, listener: EventListener) -> None:
        """Call `listener` with every event once its operation commits."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        self._listeners.remove(listener)

    def _emit(self, event: AuctionEvent) -> None:
        self.events.append(event)
        journal.record(self.events.pop)
        logger.debug(f"Event {event.name}: {event.model_dump()}")

    def _deliver(self) -> None:
        """Hand committed, undelivered events to listeners."""
        while self._delivered < len(self.events):
            event = self.events[self._delivered]
            self._delivered += 1
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    logger.error(f"Listener {listener!r} failed on {event.name}: {e}")

    # =========================================================================
    # Atomicity
    # =========================================================================

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """
        Run a block as one all-or-nothing operation.

        The block joins the thread's open transaction if there is one
        (re-entrant calls from recipient hooks), so it is undone if
        anything enclosing it fails. The registry lock is held until that
        transaction ends, and listeners are notified only once it commits.
        """
        with journal.transaction() as txn:
            txn.enlist(self, self._lock, on_commit=self._deliver)
            yield

    def _store(self, auction: Auction) -> None:
        """Insert or replace a record. Records are never mutated in place."""
        previous = self._auctions.get(auction.auction_id)
        self._auctions[auction.auction_id] = auction
        journal.record(lambda: self._unstore(auction.auction_id, previous))

    def _unstore(self, auction_id: int, previous: Optional[Auction]) -> None:
        if previous is None:
            del self._auctions[auction_id]
        else:
            self._auctions[auction_id] = previous

    def _allocate_id(self) -> int:
        auction_id = self._next_id
        self._next_id += 1
        journal.record(lambda: setattr(self, "_next_id", auction_id))
        return auction_id

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get(self, auction_id: int) -> Auction:
        if not isinstance(auction_id, int) or isinstance(auction_id, bool):
            raise self._reject(NotFound(f"Auction {auction_id!r} not found"))
        auction = self._auctions.get(auction_id)
        if auction is None:
            raise self._reject(NotFound(f"Auction {auction_id} not found", auction_id))
        return auction

    def _escrow(self, asset: str) -> AssetLedger:
        try:
            return self.tokens.escrow(asset, self.address)
        except LedgerError as e:
            raise TransferFailed(str(e)) from e

    @staticmethod
    def _check(result) -> None:
        """Raise InvalidParameter for a failed (is_valid, error) check."""
        is_valid, error = result
        if not is_valid:
            raise InvalidParameter(error)

    @staticmethod
    def _reject(error: AuctionError) -> AuctionError:
        logger.warning(f"{type(error).__name__}: {error}")
        return error

    # =========================================================================
    # Statistics
    # =========================================================================

    def stats(self) -> dict:
        """Get registry statistics."""
        with self._lock:
            by_status = {status.name.lower(): 0 for status in AuctionStatus}
            escrow: Dict[str, int] = {}
            for auction in self._auctions.values():
                by_status[auction.status.name.lower()] += 1
                if auction.active:
                    escrow[auction.asset] = escrow.get(auction.asset, 0) + auction.amount

            return {
                "total_auctions": len(self._auctions),
                **by_status,
                "escrow": escrow,
                "events": len(self.events),
                "custodian": self.address,
            }

    def __repr__(self) -> str:
        return f"AuctionRegistry(address={self.address}, auctions={len(self._auctions)})"


__all__ = ["AuctionRegistry"]
