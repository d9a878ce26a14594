"""
Tests for the Auction Registry.

Tests cover:
1. Auction creation and escrow
2. Price queries
3. Buying, refunds and precondition ordering
4. Cancellation and authorization
5. Rollback of failed settlements
6. Record accessors, events and statistics
"""

import threading

import pytest

from dutchswap.core.auction import (
    AuctionCancelled,
    AuctionCreated,
    AuctionFinalized,
    AuctionRegistry,
    AuctionStatus,
)
from dutchswap.core.clock import ManualClock
from dutchswap.core.config import RegistryConfig
from dutchswap.core.errors import (
    ArithmeticOverflow,
    AuctionExpired,
    AuctionNotActive,
    InsufficientPayment,
    InvalidParameter,
    NotFound,
    TransferFailed,
    Unauthorized,
)
from dutchswap.core.ledger import NativeBalances, TokenDirectory
from dutchswap.crypto import generate_keypair

ETHER = 10**18
SUPPLY = 1000 * ETHER

SELLER = generate_keypair(b"seller").address
BUYER = generate_keypair(b"buyer").address
OTHER = generate_keypair(b"other").address


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock():
    return ManualClock(start=1_000_000)


@pytest.fixture
def tokens():
    directory = TokenDirectory()
    token = directory.create("MTK", name="Mock Token", symbol="MTK")
    token.mint(SELLER, SUPPLY)
    return directory


@pytest.fixture
def token(tokens):
    return tokens.get("MTK")


@pytest.fixture
def native():
    balances = NativeBalances()
    balances.credit(BUYER, 10 * ETHER)
    balances.credit(OTHER, 10 * ETHER)
    return balances


@pytest.fixture
def registry(tokens, native, clock, token):
    """Registry with the seller's full supply approved."""
    reg = AuctionRegistry(tokens, native, clock=clock)
    token.approve(SELLER, reg.address, SUPPLY)
    return reg


def create_default(registry, amount=100 * ETHER):
    """1 ETHER start price, 0.0001 ETHER/s decay, one hour."""
    return registry.create_auction(
        seller=SELLER,
        asset="MTK",
        initial_price=ETHER,
        duration=3600,
        decay_rate=ETHER // 10_000,
        amount=amount,
    )


# =============================================================================
# Creation
# =============================================================================


class TestCreateAuction:
    """Tests for auction creation."""

    def test_create_success(self, registry, token, clock):
        auction_id = create_default(registry)

        assert auction_id == 0
        auction = registry.get_auction(auction_id)
        assert auction.seller == SELLER
        assert auction.asset == "MTK"
        assert auction.amount == 100 * ETHER
        assert auction.start_time == clock.now
        assert auction.active
        assert auction.status == AuctionStatus.ACTIVE

    def test_asset_moves_into_escrow(self, registry, token):
        create_default(registry)

        assert token.balance_of(SELLER) == SUPPLY - 100 * ETHER
        assert token.balance_of(registry.address) == 100 * ETHER
        assert registry.escrowed_amount("MTK") == 100 * ETHER

    def test_ids_increase(self, registry):
        ids = [create_default(registry, amount=ETHER) for _ in range(3)]

        assert ids == [0, 1, 2]
        assert registry.auction_count() == 3

    def test_emits_created_event(self, registry):
        auction_id = create_default(registry)

        event = registry.events[-1]
        assert isinstance(event, AuctionCreated)
        assert event.auction_id == auction_id
        assert event.seller == SELLER
        assert event.asset == "MTK"
        assert event.initial_price == ETHER
        assert event.duration == 3600
        assert event.decay_rate == ETHER // 10_000
        assert event.amount == 100 * ETHER

    def test_without_approval_fails_cleanly(self, tokens, native, clock, token):
        registry = AuctionRegistry(tokens, native, clock=clock)

        with pytest.raises(TransferFailed):
            create_default(registry)

        assert registry.auction_count() == 0
        assert registry.events == []
        assert token.balance_of(SELLER) == SUPPLY
        with pytest.raises(NotFound):
            registry.get_auction(0)

    def test_insufficient_balance(self, registry, token):
        with pytest.raises(TransferFailed):
            create_default(registry, amount=SUPPLY + 1)

        assert token.balance_of(SELLER) == SUPPLY

    def test_unknown_asset(self, registry):
        with pytest.raises(TransferFailed):
            registry.create_auction(SELLER, "NOPE", ETHER, 100, 1, 1)

    def test_failed_create_does_not_consume_id(self, registry):
        with pytest.raises(TransferFailed):
            create_default(registry, amount=SUPPLY + 1)

        assert create_default(registry) == 0

    @pytest.mark.parametrize("field,value", [
        ("duration", 0),
        ("amount", 0),
        ("initial_price", -1),
        ("decay_rate", -5),
        ("duration", True),
        ("amount", 1.5),
    ])
    def test_invalid_parameters(self, registry, field, value):
        params = dict(
            seller=SELLER,
            asset="MTK",
            initial_price=ETHER,
            duration=100,
            decay_rate=1,
            amount=ETHER,
        )
        params[field] = value

        with pytest.raises(InvalidParameter):
            registry.create_auction(**params)

        assert registry.auction_count() == 0

    def test_invalid_seller_address(self, registry):
        with pytest.raises(InvalidParameter):
            registry.create_auction("seller", "MTK", ETHER, 100, 1, ETHER)

    def test_invalid_parameter_is_value_error(self, registry):
        with pytest.raises(ValueError):
            registry.create_auction(SELLER, "MTK", ETHER, 0, 1, ETHER)

    def test_decay_overflow_rejected(self, registry, token):
        with pytest.raises(ArithmeticOverflow):
            registry.create_auction(SELLER, "MTK", ETHER, 2, 2**255, ETHER)

        assert registry.auction_count() == 0
        assert token.balance_of(SELLER) == SUPPLY

    def test_smaller_word_size(self, tokens, native, clock, token):
        registry = AuctionRegistry(tokens, native, clock=clock, config=RegistryConfig(word_bits=64))
        token.approve(SELLER, registry.address, SUPPLY)

        with pytest.raises(ArithmeticOverflow):
            registry.create_auction(SELLER, "MTK", 1, 2**32, 2**32, 1)
        with pytest.raises(InvalidParameter):
            registry.create_auction(SELLER, "MTK", 2**64, 10, 1, 1)


# =============================================================================
# Price
# =============================================================================


class TestGetCurrentPrice:
    """Tests for price queries."""

    def test_initial_price(self, registry):
        auction_id = create_default(registry)
        assert registry.get_current_price(auction_id) == ETHER

    def test_price_decreases(self, registry, clock):
        auction_id = create_default(registry)

        clock.advance(1800)

        price = registry.get_current_price(auction_id)
        assert price < ETHER
        assert price == ETHER - 1800 * (ETHER // 10_000)

    def test_zero_after_duration(self, registry, clock):
        auction_id = create_default(registry)
        clock.advance(3600)
        assert registry.get_current_price(auction_id) == 0

    def test_unknown_id(self, registry):
        with pytest.raises(NotFound):
            registry.get_current_price(7)

    def test_non_integer_id(self, registry):
        with pytest.raises(NotFound):
            registry.get_current_price("0")

    def test_query_does_not_wait_for_settlement(self, registry, native):
        auction_id = create_default(registry)
        in_hook = threading.Event()
        release = threading.Event()

        def seller_hook(sender, to, amount):
            in_hook.set()
            release.wait(timeout=5)

        native.on_receive(SELLER, seller_hook)
        buyer = threading.Thread(target=registry.buy, args=(BUYER, auction_id, ETHER))
        buyer.start()

        prices = []
        observed = None
        try:
            assert in_hook.wait(timeout=5)
            reader = threading.Thread(target=lambda: prices.append(registry.get_current_price(auction_id)))
            reader.start()
            reader.join(timeout=2)
            observed = list(prices)
        finally:
            release.set()
            buyer.join(timeout=5)

        assert observed == [ETHER]
        assert not registry.get_auction(auction_id).active

    def test_readable_after_settlement(self, registry, clock):
        auction_id = create_default(registry)
        registry.buy(BUYER, auction_id, ETHER)

        clock.advance(100)

        assert registry.get_current_price(auction_id) == ETHER - 100 * (ETHER // 10_000)

    def test_clock_moving_backwards(self, registry, clock):
        auction_id = create_default(registry)
        clock.set(clock.now - 500)
        assert registry.get_current_price(auction_id) == ETHER


# =============================================================================
# Buy
# =============================================================================


class TestBuy:
    """Tests for settlement."""

    def test_buy_at_current_price(self, registry, token, native):
        auction_id = create_default(registry)

        price = registry.buy(BUYER, auction_id, ETHER)

        assert price == ETHER
        assert token.balance_of(BUYER) == 100 * ETHER
        assert token.balance_of(registry.address) == 0
        assert native.balance_of(SELLER) == ETHER
        assert native.balance_of(BUYER) == 9 * ETHER
        assert native.balance_of(registry.address) == 0

    def test_record_after_buy(self, registry):
        auction_id = create_default(registry)
        registry.buy(BUYER, auction_id, ETHER)

        auction = registry.get_auction(auction_id)
        assert not auction.active
        assert auction.status == AuctionStatus.SOLD
        assert auction.buyer == BUYER
        assert auction.price_paid == ETHER

    def test_overpayment_refunded(self, registry, native, clock):
        auction_id = create_default(registry)
        clock.advance(1000)
        expected = ETHER - 1000 * (ETHER // 10_000)

        paid = registry.buy(BUYER, auction_id, 2 * ETHER)

        assert paid == expected
        assert native.balance_of(SELLER) == expected
        assert native.balance_of(BUYER) == 10 * ETHER - expected
        assert native.balance_of(registry.address) == 0

    def test_emits_finalized_event(self, registry):
        auction_id = create_default(registry)
        registry.buy(BUYER, auction_id, ETHER)

        event = registry.events[-1]
        assert isinstance(event, AuctionFinalized)
        assert event.auction_id == auction_id
        assert event.buyer == BUYER
        assert event.price_paid == ETHER

    def test_second_buy_not_active(self, registry):
        auction_id = create_default(registry)
        registry.buy(BUYER, auction_id, ETHER)

        with pytest.raises(AuctionNotActive) as exc_info:
            registry.buy(OTHER, auction_id, ETHER)

        assert exc_info.value.auction_id == auction_id

    def test_insufficient_payment_leaves_state(self, registry, token, native):
        auction_id = create_default(registry)
        events_before = list(registry.events)

        with pytest.raises(InsufficientPayment) as exc_info:
            registry.buy(BUYER, auction_id, ETHER - 1)

        assert exc_info.value.price == ETHER
        assert exc_info.value.payment == ETHER - 1
        assert registry.get_auction(auction_id).active
        assert token.balance_of(registry.address) == 100 * ETHER
        assert native.balance_of(BUYER) == 10 * ETHER
        assert registry.events == events_before

    def test_retry_after_price_drop(self, registry, clock):
        auction_id = create_default(registry)
        payment = ETHER * 9 // 10

        with pytest.raises(InsufficientPayment):
            registry.buy(BUYER, auction_id, payment)

        clock.advance(1000)
        assert registry.buy(BUYER, auction_id, payment) == payment

    def test_target_price_below_curve_floor(self, registry, clock):
        """0.5 ETHER needs 5000s of decay but the auction lasts 3600s."""
        auction_id = create_default(registry)

        clock.advance(4999)

        with pytest.raises(AuctionExpired):
            registry.buy(BUYER, auction_id, ETHER // 2)

    def test_expired(self, registry, clock):
        auction_id = create_default(registry)
        clock.advance(3601)

        with pytest.raises(AuctionExpired):
            registry.buy(BUYER, auction_id, ETHER)

        assert registry.get_auction(auction_id).active
        assert registry.is_expired(auction_id)

    def test_expired_exactly_at_duration(self, registry, clock):
        auction_id = create_default(registry)
        clock.advance(3600)

        with pytest.raises(AuctionExpired):
            registry.buy(BUYER, auction_id, ETHER)

    def test_last_second_still_buyable(self, registry, clock):
        auction_id = create_default(registry)
        clock.advance(3599)

        assert not registry.is_expired(auction_id)
        registry.buy(BUYER, auction_id, ETHER)

    def test_not_active_reported_before_expired(self, registry, clock):
        auction_id = create_default(registry)
        registry.cancel_auction(SELLER, auction_id)
        clock.advance(10_000)

        with pytest.raises(AuctionNotActive):
            registry.buy(BUYER, auction_id, ETHER)

    def test_expired_reported_before_payment(self, registry, clock):
        auction_id = create_default(registry)
        clock.advance(10_000)

        with pytest.raises(AuctionExpired):
            registry.buy(BUYER, auction_id, 0)

    def test_unknown_auction(self, registry):
        with pytest.raises(NotFound):
            registry.buy(BUYER, 42, ETHER)

    def test_invalid_payment(self, registry):
        auction_id = create_default(registry)

        with pytest.raises(InvalidParameter):
            registry.buy(BUYER, auction_id, -1)

    def test_zero_price_buy(self, registry, token, native):
        auction_id = registry.create_auction(SELLER, "MTK", 0, 100, 0, ETHER)

        assert registry.buy(BUYER, auction_id, 0) == 0
        assert token.balance_of(BUYER) == ETHER
        assert native.balance_of(BUYER) == 10 * ETHER


class TestBuyRollback:
    """Failed transfers must leave no trace."""

    def test_buyer_without_funds(self, registry, token, native):
        auction_id = create_default(registry)
        poor = generate_keypair(b"poor").address
        events_before = list(registry.events)

        with pytest.raises(TransferFailed) as exc_info:
            registry.buy(poor, auction_id, ETHER)

        assert exc_info.value.__cause__ is not None
        auction = registry.get_auction(auction_id)
        assert auction.active
        assert auction.buyer is None
        assert auction.price_paid is None
        assert token.balance_of(registry.address) == 100 * ETHER
        assert token.balance_of(poor) == 0
        assert registry.events == events_before

    def test_seller_rejects_payment(self, registry, token, native):
        auction_id = create_default(registry)
        native.reject_payments(SELLER)

        with pytest.raises(TransferFailed):
            registry.buy(BUYER, auction_id, ETHER)

        assert registry.get_auction(auction_id).active
        assert token.balance_of(BUYER) == 0
        assert token.balance_of(registry.address) == 100 * ETHER
        assert native.balance_of(BUYER) == 10 * ETHER
        assert native.balance_of(registry.address) == 0

    def test_refund_rejected(self, registry, token, native):
        auction_id = create_default(registry)
        native.reject_payments(BUYER)

        with pytest.raises(TransferFailed):
            registry.buy(BUYER, auction_id, 2 * ETHER)

        assert registry.get_auction(auction_id).active
        assert native.balance_of(SELLER) == 0
        assert native.balance_of(BUYER) == 10 * ETHER

    def test_buy_succeeds_after_failure(self, registry, native):
        auction_id = create_default(registry)
        native.reject_payments(SELLER)
        with pytest.raises(TransferFailed):
            registry.buy(BUYER, auction_id, ETHER)

        native.reject_payments(SELLER, reject=False)
        assert registry.buy(BUYER, auction_id, ETHER) == ETHER


# =============================================================================
# Cancel
# =============================================================================


class TestCancelAuction:
    """Tests for cancellation."""

    def test_cancel_restores_escrow(self, registry, token):
        auction_id = create_default(registry)

        registry.cancel_auction(SELLER, auction_id)

        auction = registry.get_auction(auction_id)
        assert not auction.active
        assert auction.status == AuctionStatus.CANCELLED
        assert token.balance_of(SELLER) == SUPPLY
        assert token.balance_of(registry.address) == 0

    def test_emits_cancelled_event(self, registry):
        auction_id = create_default(registry)
        registry.cancel_auction(SELLER, auction_id)

        event = registry.events[-1]
        assert isinstance(event, AuctionCancelled)
        assert event.auction_id == auction_id

    def test_buy_after_cancel(self, registry):
        auction_id = create_default(registry)
        registry.cancel_auction(SELLER, auction_id)

        with pytest.raises(AuctionNotActive):
            registry.buy(BUYER, auction_id, ETHER)

    def test_cancel_twice(self, registry):
        auction_id = create_default(registry)
        registry.cancel_auction(SELLER, auction_id)

        with pytest.raises(AuctionNotActive):
            registry.cancel_auction(SELLER, auction_id)

    def test_cancel_after_buy(self, registry):
        auction_id = create_default(registry)
        registry.buy(BUYER, auction_id, ETHER)

        with pytest.raises(AuctionNotActive):
            registry.cancel_auction(SELLER, auction_id)

    def test_non_seller(self, registry, token):
        auction_id = create_default(registry)

        with pytest.raises(Unauthorized):
            registry.cancel_auction(BUYER, auction_id)

        assert registry.get_auction(auction_id).active
        assert token.balance_of(registry.address) == 100 * ETHER

    def test_authorization_checked_before_state(self, registry):
        auction_id = create_default(registry)
        registry.buy(BUYER, auction_id, ETHER)

        with pytest.raises(Unauthorized):
            registry.cancel_auction(OTHER, auction_id)

    def test_cancel_after_expiry(self, registry, clock, token):
        auction_id = create_default(registry)
        clock.advance(100_000)

        registry.cancel_auction(SELLER, auction_id)

        assert token.balance_of(SELLER) == SUPPLY

    def test_unknown_auction(self, registry):
        with pytest.raises(NotFound):
            registry.cancel_auction(SELLER, 3)

    def test_seller_rejecting_tokens(self, registry, token):
        auction_id = create_default(registry)
        token.reject_payments(SELLER)

        with pytest.raises(TransferFailed):
            registry.cancel_auction(SELLER, auction_id)

        assert registry.get_auction(auction_id).active
        assert token.balance_of(registry.address) == 100 * ETHER


# =============================================================================
# Queries, Events, Stats
# =============================================================================


class TestQueries:
    """Tests for record accessors."""

    def test_get_auction_returns_copy(self, registry):
        auction_id = create_default(registry)

        copy = registry.get_auction(auction_id)
        copy.amount = 1
        copy.status = AuctionStatus.CANCELLED

        auction = registry.get_auction(auction_id)
        assert auction.amount == 100 * ETHER
        assert auction.active

    def test_list_auctions(self, registry):
        first = create_default(registry, amount=ETHER)
        second = create_default(registry, amount=ETHER)
        registry.cancel_auction(SELLER, first)

        assert [a.auction_id for a in registry.list_auctions()] == [first, second]
        assert [a.auction_id for a in registry.list_auctions(active=True)] == [second]
        assert [a.auction_id for a in registry.list_auctions(active=False)] == [first]
        assert registry.list_auctions(seller=BUYER) == []

    def test_escrowed_amount_tracks_active(self, registry):
        create_default(registry, amount=ETHER)
        second = create_default(registry, amount=2 * ETHER)

        assert registry.escrowed_amount("MTK") == 3 * ETHER
        registry.buy(BUYER, second, ETHER)
        assert registry.escrowed_amount("MTK") == ETHER

    def test_to_dict(self, registry):
        auction_id = create_default(registry)
        data = registry.get_auction(auction_id).to_dict()

        assert data["status"] == "ACTIVE"
        assert data["active"] is True
        assert data["seller"] == SELLER

    def test_stats(self, registry):
        first = create_default(registry, amount=ETHER)
        second = create_default(registry, amount=ETHER)
        create_default(registry, amount=ETHER)
        registry.buy(BUYER, first, ETHER)
        registry.cancel_auction(SELLER, second)

        stats = registry.stats()

        assert stats["total_auctions"] == 3
        assert stats["active"] == 1
        assert stats["sold"] == 1
        assert stats["cancelled"] == 1
        assert stats["escrow"] == {"MTK": ETHER}
        assert stats["events"] == 5


class TestListeners:
    """Tests for event subscription."""

    def test_listener_receives_committed_events(self, registry):
        seen = []
        registry.subscribe(seen.append)

        auction_id = create_default(registry)
        registry.buy(BUYER, auction_id, ETHER)

        assert [e.name for e in seen] == ["AuctionCreated", "AuctionFinalized"]

    def test_failed_operation_not_delivered(self, registry, native):
        seen = []
        registry.subscribe(seen.append)
        auction_id = create_default(registry)
        native.reject_payments(SELLER)

        with pytest.raises(TransferFailed):
            registry.buy(BUYER, auction_id, ETHER)

        assert [e.name for e in seen] == ["AuctionCreated"]

    def test_failing_listener_does_not_undo(self, registry):
        def listener(event):
            raise RuntimeError("boom")

        registry.subscribe(listener)
        auction_id = create_default(registry)

        assert registry.get_auction(auction_id).active

    def test_unsubscribe(self, registry):
        seen = []
        registry.subscribe(seen.append)
        registry.unsubscribe(seen.append)

        create_default(registry)

        assert seen == []

    def test_event_export(self, registry):
        auction_id = create_default(registry)
        record = registry.events[0].to_record()

        assert record["event"] == "AuctionCreated"
        assert record["auction_id"] == auction_id
        assert record["amount"] == 100 * ETHER


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
