"""
Linear price decay.

    elapsed = max(0, now - start_time)
    price   = max(0, initial_price - decay_rate * min(elapsed, duration))

All arithmetic is on non-negative integers. The product decay_rate * elapsed
is bounded by decay_rate * duration, which is checked against the word size
when an auction is created, so the query path can never overflow.
"""

from typing import List, Tuple

from dutchswap.core.auction.model import Auction
from dutchswap.core.errors import ArithmeticOverflow
from dutchswap.utils.validation import MAX_UINT


def saturating_sub(a: int, b: int) -> int:
    """a - b, clamped at zero."""
    return a - b if a > b else 0


def check_decay_bound(decay_rate: int, duration: int, max_uint: int = MAX_UINT) -> int:
    """
    Verify the worst-case decay fits in the unsigned word.

    Returns:
        decay_rate * duration

    Raises:
        ArithmeticOverflow: the product exceeds max_uint
    """
    worst_case = decay_rate * duration
    if worst_case > max_uint:
        raise ArithmeticOverflow(
            f"decay_rate * duration = {worst_case} exceeds {max_uint.bit_length()}-bit range"
        )
    return worst_case


def price_at(
    initial_price: int,
    decay_rate: int,
    start_time: int,
    duration: int,
    now: int,
) -> int:
    """Price of an auction with the given parameters at time `now`."""
    elapsed = max(0, now - start_time)
    if elapsed >= duration:
        return 0
    return saturating_sub(initial_price, decay_rate * elapsed)


def current_price(auction: Auction, now: int) -> int:
    """Price of `auction` at `now`, independent of its status."""
    return price_at(
        auction.initial_price,
        auction.decay_rate,
        auction.start_time,
        auction.duration,
        now,
    )


def price_schedule(
    initial_price: int,
    decay_rate: int,
    duration: int,
    steps: int,
) -> List[Tuple[int, int]]:
    """
    Sample the price curve at `steps` + 1 evenly spaced offsets.

    Returns:
        List of (elapsed_seconds, price) from 0 to duration inclusive
    """
    if steps <= 0:
        raise ValueError(f"steps must be positive, got {steps}")
    offsets = sorted({duration * i // steps for i in range(steps + 1)})
    return [(t, price_at(initial_price, decay_rate, 0, duration, t)) for t in offsets]
