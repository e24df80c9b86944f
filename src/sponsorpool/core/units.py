"""
Token unit helpers.

These helpers standardize 18-decimal token amounts, provide base-unit
conversions without relying on floats, and implement the checked uint256
arithmetic used on every escrow mutation.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any

from sponsorpool.core.campaign_exceptions import InvariantViolationError
from sponsorpool.core.constants import TOKEN_DECIMALS, UINT256_MAX, WEI_PER_TOKEN

_QUANTIZER = Decimal(f"1e-{TOKEN_DECIMALS}")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)):
        return Decimal(str(value))
    raise ValueError("Amount must be int, float, str, or Decimal")


def quantize_token(value: Any) -> Decimal:
    """Convert to a Decimal token amount with 18-decimal precision."""
    try:
        dec = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"Invalid amount value: {value}") from exc

    if dec.is_nan():
        raise ValueError("Amount cannot be NaN")
    if dec.is_infinite():
        raise ValueError("Amount cannot be infinite")

    return dec.quantize(_QUANTIZER, rounding=ROUND_DOWN)


def to_base_units(value: Any) -> int:
    """Convert a token amount (e.g. ``"1.5"``) to base units as int."""
    dec = quantize_token(value)
    if dec < 0:
        raise ValueError("Amount cannot be negative")
    return int((dec * Decimal(WEI_PER_TOKEN)).to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: int) -> Decimal:
    """Convert a base-unit int to a Decimal token amount."""
    if not isinstance(value, int):
        raise ValueError("Base units must be an int")
    return (Decimal(value) / Decimal(WEI_PER_TOKEN)).quantize(_QUANTIZER, rounding=ROUND_DOWN)


def format_token(value: int) -> str:
    """Format a base-unit amount as a token string without trailing zeros."""
    text = f"{from_base_units(value):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def ether(value: Any) -> int:
    """Shorthand for ``to_base_units``; ``ether(1) == 10**18``."""
    return to_base_units(value)


def is_uint256(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= UINT256_MAX


def checked_add(a: int, b: int) -> int:
    """Add two uint256 values, raising on overflow."""
    result = a + b
    if not is_uint256(a) or not is_uint256(b) or result > UINT256_MAX:
        raise InvariantViolationError(
            "uint256 overflow",
            details={"operation": "add", "a": a, "b": b},
        )
    return result


def checked_sub(a: int, b: int) -> int:
    """Subtract two uint256 values, raising on underflow."""
    if not is_uint256(a) or not is_uint256(b) or b > a:
        raise InvariantViolationError(
            "uint256 underflow",
            details={"operation": "sub", "a": a, "b": b},
        )
    return a - b
