"""
Input validation helpers shared by the campaign core and the API layer.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from sponsorpool.core.constants import LOG_ADDRESS_CHARS, UINT256_MAX, ZERO_ADDRESS

_ADDRESS_PATTERN = re.compile(r"0x[0-9a-f]{40}")


def normalize_address(address: Optional[str]) -> str:
    """Lowercase and strip an address; ``None`` becomes the empty string."""
    if address is None:
        return ""
    if not isinstance(address, str):
        raise ValueError("Address must be a string")
    return address.strip().lower()


def is_null_address(address: Optional[str]) -> bool:
    normalized = normalize_address(address)
    return not normalized or normalized == ZERO_ADDRESS


def validate_address(address: Any) -> str:
    """
    Validate and normalize a hex account address.

    Args:
        address: Address to validate (``0x`` + 40 hex characters)

    Returns:
        Normalized address

    Raises:
        ValueError: If address is invalid or the zero address
    """
    if not address or not isinstance(address, str):
        raise ValueError("Address must be a non-empty string")
    normalized = normalize_address(address)
    if not _ADDRESS_PATTERN.fullmatch(normalized):
        raise ValueError(f"Invalid address format: {address[:20]}")
    if normalized == ZERO_ADDRESS:
        raise ValueError("Zero address is not allowed")
    return normalized


def validate_uint256(value: Any, field: str = "amount") -> int:
    """
    Coerce an integer (or integer string) into the uint256 range.

    Raises:
        ValueError: If the value is not an integer or out of range
    """
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer")
    if isinstance(value, str):
        text = value.strip()
        if not re.fullmatch(r"\d+", text):
            raise ValueError(f"{field} must be a non-negative integer")
        value = int(text)
    if not isinstance(value, int):
        raise ValueError(f"{field} must be an integer")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{field} out of uint256 range")
    return value


def short_address(address: str) -> str:
    """Truncate an address for log output."""
    return address[:LOG_ADDRESS_CHARS]
