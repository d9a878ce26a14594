"""
Input Validation - bounds and format checks for registry inputs.

Guards every externally supplied value before it reaches auction state:
- Integer amounts stay inside the unsigned word range
- Durations and escrow amounts are strictly positive
- Addresses and asset identifiers are well formed
"""

from typing import Any, Tuple

# =============================================================================
# Constants
# =============================================================================

# Unsigned word width used for prices, amounts and durations
WORD_BITS = 256
MAX_UINT = 2**WORD_BITS - 1

MIN_AMOUNT = 0
MAX_AMOUNT = MAX_UINT

ADDRESS_HEX_LENGTH = 40  # 20 bytes
MAX_ASSET_ID_LENGTH = 64


# =============================================================================
# Validation Functions
# =============================================================================


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Booleans are rejected even though they subclass int.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount", max_val: int = MAX_AMOUNT) -> Tuple[bool, str]:
    """Validate a non-negative token or currency amount."""
    return validate_integer(amount, name, MIN_AMOUNT, max_val)


def validate_positive(value: Any, name: str, max_val: int = MAX_AMOUNT) -> Tuple[bool, str]:
    """Validate a strictly positive integer (durations, escrow size)."""
    return validate_integer(value, name, 1, max_val)


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """
    Validate an account address.

    Addresses are 0x-prefixed, 20-byte hex strings.
    """
    if not isinstance(address, str):
        return False, f"{name} must be str, got {type(address).__name__}"

    if not address.startswith("0x"):
        return False, f"{name} must start with 0x"

    hex_str = address[2:]
    if len(hex_str) != ADDRESS_HEX_LENGTH:
        return False, f"{name} must be 20 bytes, got {len(hex_str) // 2}"

    try:
        bytes.fromhex(hex_str)
    except ValueError:
        return False, f"{name} contains invalid hex characters"

    return True, ""


def validate_asset_id(asset: Any) -> Tuple[bool, str]:
    """Validate an asset identifier (non-empty string)."""
    if not isinstance(asset, str):
        return False, f"asset must be str, got {type(asset).__name__}"

    if not asset:
        return False, "asset must not be empty"

    if len(asset) > MAX_ASSET_ID_LENGTH:
        return False, f"asset exceeds max length {MAX_ASSET_ID_LENGTH}"

    return True, ""


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_integer",
    "validate_amount",
    "validate_positive",
    "validate_address",
    "validate_asset_id",
    "WORD_BITS",
    "MAX_UINT",
    "MAX_AMOUNT",
]
