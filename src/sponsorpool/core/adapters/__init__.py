"""
Reference collaborator implementations for the campaign manager.

Production deployments swap these for a real token ledger, identity
registry and randomness beacon behind the same protocols.
"""

from sponsorpool.core.adapters.access_control import OwnerAccessControl
from sponsorpool.core.adapters.clock import ManualClock, SystemClock
from sponsorpool.core.adapters.ledger import InMemoryTokenLedger, LedgerError
from sponsorpool.core.adapters.randomness import (
    FixedRandomnessProvider,
    SecureRandomnessProvider,
)
from sponsorpool.core.adapters.verifier import InMemoryIdentityVerifier

__all__ = [
    "FixedRandomnessProvider",
    "InMemoryIdentityVerifier",
    "InMemoryTokenLedger",
    "LedgerError",
    "ManualClock",
    "OwnerAccessControl",
    "SecureRandomnessProvider",
    "SystemClock",
]
