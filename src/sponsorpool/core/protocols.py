"""
SponsorPool - Collaborator Protocol Interfaces

The campaign core never implements identity checks, token transfers,
randomness, ownership or time itself. It depends on these Protocols, which
allow for:
- Dependency injection without class inheritance
- Mock implementations in tests
- Swapping the reference in-memory adapters for production services

Security Notes:
- The reward draw is only as unpredictable as the RandomnessProvider
- Ledger implementations must either complete a transfer or raise/return False
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IdentityVerifier(Protocol):
    """
    Answers whether an address holds a valid identity verification.
    """

    def is_verified_at(self, address: str, timestamp: int) -> bool:
        """
        Check verification status.

        Args:
            address: Address to check
            timestamp: Logical time the check applies to

        Returns:
            True if the address is verified as of ``timestamp``
        """
        ...


@runtime_checkable
class ValueLedger(Protocol):
    """
    Ledger capable of escrow-style transfers between accounts and the system.

    Both operations must be atomic: they either move the full amount or
    report failure (by returning False or raising) without moving anything.
    """

    def pull(self, token: str, from_address: str, to_address: str, amount: int) -> bool:
        """
        Move ``amount`` of ``token`` from a participant into escrow.

        Args:
            token: Token handle
            from_address: Payer
            to_address: Escrow account receiving the funds
            amount: Amount in base units

        Returns:
            True if the transfer completed
        """
        ...

    def push(self, token: str, to_address: str, amount: int) -> bool:
        """
        Pay ``amount`` of ``token`` out of escrow.

        Args:
            token: Token handle
            to_address: Recipient
            amount: Amount in base units

        Returns:
            True if the transfer completed
        """
        ...


@runtime_checkable
class RandomnessProvider(Protocol):
    """Source of a seed that is unpredictable at the time it is read."""

    def current_seed(self) -> int:
        """Return a fresh 256-bit seed."""
        ...


@runtime_checkable
class OwnerCapability(Protocol):
    """Capability check gating owner-only configuration operations."""

    def is_owner(self, address: str) -> bool:
        ...


@runtime_checkable
class Clock(Protocol):
    """Logical time source, in whole seconds."""

    def now(self) -> int:
        ...


__all__ = [
    "IdentityVerifier",
    "ValueLedger",
    "RandomnessProvider",
    "OwnerCapability",
    "Clock",
]
