"""
SponsorPool Configuration

Supports testnet and mainnet with separate configurations. All values are
read from ``SPONSORPOOL_*`` environment variables at import time.

SECURITY NOTICE:
- The owner address MUST be provided via environment on mainnet
- Never commit deployment addresses or keys to version control
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Dict

from sponsorpool.core.validation import validate_address

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _env_flag(env_var: str, default: str = "0") -> bool:
    return os.getenv(env_var, default).strip().lower() in ("1", "true", "yes", "on")


def _get_required_value(env_var: str, network: str) -> str:
    """Get a required value from environment, with mainnet enforcement.

    On mainnet, missing values raise ConfigurationError.
    On testnet, missing values return an empty string with a warning.
    """
    value = os.getenv(env_var, "").strip()
    if value:
        return value

    if network.lower() == NetworkType.MAINNET.value:
        raise ConfigurationError(
            f"CRITICAL: {env_var} environment variable required for mainnet."
        )

    logger.warning(
        "Configuration: %s not set, falling back to testnet defaults",
        env_var,
        extra={"event": "config.value_missing", "env_var": env_var},
    )
    return ""


def _parse_api_keys(env_var: str) -> Dict[str, str]:
    """Parse comma-separated ``key:address`` pairs into a key -> address map."""
    keys: Dict[str, str] = {}
    for entry in os.getenv(env_var, "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        key, sep, address = entry.partition(":")
        try:
            if not sep or not key.strip():
                raise ValueError("entries must look like key:address")
            keys[key.strip()] = validate_address(address)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid {env_var}: {exc}") from exc
    return keys


# Get network type from environment variable
NETWORK = os.getenv("SPONSORPOOL_NETWORK", "testnet")  # Default to testnet for safety

DATA_DIR = os.getenv("SPONSORPOOL_DATA_DIR", os.path.join(os.getcwd(), "data"))
LOG_LEVEL = os.getenv("SPONSORPOOL_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("SPONSORPOOL_LOG_FILE", "").strip()
API_HOST = os.getenv("SPONSORPOOL_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("SPONSORPOOL_API_PORT", "8650"))
API_MAX_JSON_BYTES = int(os.getenv("SPONSORPOOL_API_MAX_JSON_BYTES", "65536"))
OWNER_ADDRESS = _get_required_value("SPONSORPOOL_OWNER_ADDRESS", NETWORK).lower()
# Underfunded claims keep the recipient marked as claimed unless disabled
BURN_CLAIM_ON_INSUFFICIENT_FUNDS = _env_flag("SPONSORPOOL_BURN_CLAIM_ON_INSUFFICIENT_FUNDS", "1")
# 0 means campaigns may run for any duration
MAX_CAMPAIGN_DURATION = int(os.getenv("SPONSORPOOL_MAX_CAMPAIGN_DURATION", "0"))
# API keys bound to the addresses they act for
API_KEYS = _parse_api_keys("SPONSORPOOL_API_KEYS")


class TestnetConfig:
    """Testnet configuration"""

    NETWORK_TYPE = NetworkType.TESTNET
    DATA_DIR = DATA_DIR
    STATE_FILE = "campaign_state.json"
    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    API_HOST = API_HOST
    API_PORT = API_PORT
    API_MAX_JSON_BYTES = API_MAX_JSON_BYTES
    OWNER_ADDRESS = OWNER_ADDRESS or "0x" + "a" * 40
    BURN_CLAIM_ON_INSUFFICIENT_FUNDS = BURN_CLAIM_ON_INSUFFICIENT_FUNDS
    MAX_CAMPAIGN_DURATION = MAX_CAMPAIGN_DURATION
    API_KEYS = API_KEYS

    # Reference adapters are allowed on testnet
    ALLOW_IN_MEMORY_ADAPTERS = True


class MainnetConfig:
    """Mainnet configuration"""

    NETWORK_TYPE = NetworkType.MAINNET
    DATA_DIR = DATA_DIR
    STATE_FILE = "campaign_state.json"
    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    API_HOST = API_HOST
    API_PORT = API_PORT
    API_MAX_JSON_BYTES = API_MAX_JSON_BYTES
    OWNER_ADDRESS = OWNER_ADDRESS
    BURN_CLAIM_ON_INSUFFICIENT_FUNDS = BURN_CLAIM_ON_INSUFFICIENT_FUNDS
    MAX_CAMPAIGN_DURATION = MAX_CAMPAIGN_DURATION
    API_KEYS = API_KEYS

    ALLOW_IN_MEMORY_ADAPTERS = False


# Select config based on network
if NETWORK.lower() == NetworkType.MAINNET.value:
    Config = MainnetConfig
else:
    Config = TestnetConfig

# Export config
__all__ = [
    "Config",
    "ConfigurationError",
    "NetworkType",
    "TestnetConfig",
    "MainnetConfig",
    "NETWORK",
    "DATA_DIR",
    "OWNER_ADDRESS",
    "BURN_CLAIM_ON_INSUFFICIENT_FUNDS",
    "MAX_CAMPAIGN_DURATION",
]
