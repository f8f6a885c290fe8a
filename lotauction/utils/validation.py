"""
Input Validation - Sanitization of every value crossing the auction boundary.

Provides validation for external inputs to prevent:
- Malformed addresses
- Integer overflows (amounts are unsigned 256-bit)
- Invalid item sets
- Resource exhaustion
"""

from typing import Any, Tuple

from lotauction.crypto import is_valid_address

# =============================================================================
# Constants
# =============================================================================

# Maximum sizes
MAX_ITEMS_PER_LOT = 1024

# Field bounds
MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1
MIN_TIMESTAMP = 0
MAX_TIMESTAMP = 2**64 - 1
MAX_ITEM_ID = 2**256 - 1


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


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a strictly positive uint256 value amount."""
    return validate_integer(amount, name, 1, MAX_AMOUNT)


def validate_timestamp(value: Any, name: str = "timestamp") -> Tuple[bool, str]:
    """Validate a unix timestamp."""
    return validate_integer(value, name, MIN_TIMESTAMP, MAX_TIMESTAMP)


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte hex address."""
    if not isinstance(address, str):
        return False, f"{name} must be str, got {type(address).__name__}"
    if not is_valid_address(address):
        return False, f"{name} is not a valid address: {address!r}"
    return True, ""


def validate_item_ids(
    item_ids: Any,
    max_length: int = MAX_ITEMS_PER_LOT,
) -> Tuple[bool, str]:
    """
    Validate the item ids of a lot.

    Args:
        item_ids: Sequence of item identifiers
        max_length: Maximum number of items in one lot

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(item_ids, (list, tuple)):
        return False, f"item_ids must be list/tuple, got {type(item_ids).__name__}"

    if len(item_ids) == 0:
        return False, "at least one item must be auctioned"

    if len(item_ids) > max_length:
        return False, f"item_ids exceeds max length {max_length}, got {len(item_ids)}"

    for item_id in item_ids:
        valid, err = validate_integer(item_id, "item_id", 0, MAX_ITEM_ID)
        if not valid:
            return False, err

    if len(set(item_ids)) != len(item_ids):
        return False, "item_ids must be unique"

    return True, ""


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_integer",
    "validate_amount",
    "validate_timestamp",
    "validate_address",
    "validate_item_ids",
    "MAX_ITEMS_PER_LOT",
    "MAX_AMOUNT",
    "MAX_TIMESTAMP",
]
