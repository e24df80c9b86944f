"""
Owner access control.

Single-owner capability gating campaign creation, early termination and
withdrawal of unclaimed funds. Ownership changes are audited.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import List

from sponsorpool.core.campaign_exceptions import InvalidConfigurationError, UnauthorizedError
from sponsorpool.core.validation import is_null_address, normalize_address, short_address

logger = logging.getLogger(__name__)


@dataclass
class OwnershipChange:
    previous_owner: str
    new_owner: str
    timestamp: float = field(default_factory=time.time)


class OwnerAccessControl:
    """
    OwnerCapability with a single transferable owner.

    Usage:
        ac = OwnerAccessControl(owner="0xabc...")
        if ac.is_owner(caller):
            perform_privileged_operation()
    """

    def __init__(self, owner: str) -> None:
        if is_null_address(owner):
            raise InvalidConfigurationError("Owner address is required")
        self._owner = normalize_address(owner)
        self.history: List[OwnershipChange] = []
        self._lock = threading.Lock()

    @property
    def owner(self) -> str:
        return self._owner

    def is_owner(self, address: str) -> bool:
        return normalize_address(address) == self._owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """
        Hand the owner capability to ``new_owner``.

        Raises:
            UnauthorizedError: If caller is not the current owner
            InvalidConfigurationError: If new_owner is the null address
        """
        with self._lock:
            if not self.is_owner(caller):
                logger.warning(
                    "Ownership transfer denied",
                    extra={
                        "event": "access_control.transfer_denied",
                        "caller": short_address(normalize_address(caller)),
                    },
                )
                raise UnauthorizedError("Caller is not the owner")
            if is_null_address(new_owner):
                raise InvalidConfigurationError("New owner address is required")
            previous = self._owner
            self._owner = normalize_address(new_owner)
            self.history.append(OwnershipChange(previous, self._owner))

        logger.info(
            "Ownership transferred",
            extra={
                "event": "access_control.ownership_transferred",
                "previous": short_address(previous),
                "new_owner": short_address(self._owner),
            },
        )
