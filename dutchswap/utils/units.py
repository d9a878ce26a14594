"""
Fixed-point unit conversion.

Prices and amounts are stored as integers scaled by 10**decimals,
the same convention ERC-20 tokens and native wei balances use.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

DEFAULT_DECIMALS = 18


def parse_units(value: Union[str, int, Decimal], decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Convert a human-readable amount to its integer representation.

    parse_units("1.5", 18) == 1_500_000_000_000_000_000

    Raises:
        ValueError: malformed, negative, or more precise than `decimals`
    """
    if isinstance(value, float):
        raise ValueError("floats are not accepted, pass a string or Decimal")

    try:
        dec = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e

    if not dec.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    if dec < 0:
        raise ValueError(f"Amount must be non-negative: {value!r}")

    # Default context precision (28 digits) would round large amounts
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = dec.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value!r} has more than {decimals} decimal places")

    return int(scaled)


def format_units(value: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """
    Convert an integer amount to a human-readable decimal string.

    Trailing zeros are stripped, but at least one fractional digit is kept:
    format_units(10**18) == "1.0"
    """
    if value < 0:
        raise ValueError(f"Amount must be non-negative: {value}")

    whole, frac = divmod(value, 10**decimals)
    if decimals == 0:
        return str(whole)

    frac_str = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{whole}.{frac_str}"
