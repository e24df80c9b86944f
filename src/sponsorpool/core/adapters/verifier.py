"""
In-memory identity verifier.

Records, per address, the timestamp until which its verification is valid.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from sponsorpool.core.validation import normalize_address, short_address

logger = logging.getLogger(__name__)


class InMemoryIdentityVerifier:
    """IdentityVerifier backed by an address -> verified-until map."""

    def __init__(self) -> None:
        self._verified_until: Dict[str, int] = {}
        self._lock = threading.Lock()

    def verify(self, address: str, verified_until: int) -> None:
        """Mark ``address`` verified through ``verified_until`` (inclusive)."""
        address = normalize_address(address)
        if not address:
            raise ValueError("Address is required")
        with self._lock:
            self._verified_until[address] = int(verified_until)
        logger.debug(
            "Identity verified",
            extra={
                "event": "verifier.verified",
                "address": short_address(address),
                "verified_until": verified_until,
            },
        )

    def revoke(self, address: str) -> None:
        with self._lock:
            self._verified_until.pop(normalize_address(address), None)

    def verified_until(self, address: str) -> Optional[int]:
        with self._lock:
            return self._verified_until.get(normalize_address(address))

    def is_verified_at(self, address: str, timestamp: int) -> bool:
        expiry = self.verified_until(address)
        return expiry is not None and timestamp <= expiry
