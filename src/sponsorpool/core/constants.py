"""
SponsorPool Constants

Numeric limits and well-known values shared across the campaign ledger.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_MINUTE: Final[int] = 60
SECONDS_PER_HOUR: Final[int] = 3600  # 60 * 60
SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24
SECONDS_PER_WEEK: Final[int] = 604800  # 60 * 60 * 24 * 7

# =============================================================================
# TOKEN AMOUNTS
# =============================================================================

# Decimal precision
TOKEN_DECIMALS: Final[int] = 18  # Standard ERC20 decimals
WEI_PER_TOKEN: Final[int] = 10**18  # 1 token = 10^18 wei

# Amounts are unsigned 256-bit integers
UINT256_MAX: Final[int] = 2**256 - 1

# =============================================================================
# ADDRESSES
# =============================================================================

ZERO_ADDRESS: Final[str] = "0x" + "0" * 40

# Address recorded as the escrow holder on the value ledger
ESCROW_ADDRESS: Final[str] = "0x" + "5" * 40

# Truncation length for addresses in log output
LOG_ADDRESS_CHARS: Final[int] = 10

# =============================================================================
# CAMPAIGN IDENTIFIERS
# =============================================================================

FIRST_CAMPAIGN_ID: Final[int] = 1

__all__ = [
    'SECONDS_PER_MINUTE', 'SECONDS_PER_HOUR', 'SECONDS_PER_DAY', 'SECONDS_PER_WEEK',
    'TOKEN_DECIMALS', 'WEI_PER_TOKEN', 'UINT256_MAX',
    'ZERO_ADDRESS', 'ESCROW_ADDRESS', 'LOG_ADDRESS_CHARS',
    'FIRST_CAMPAIGN_ID',
]
