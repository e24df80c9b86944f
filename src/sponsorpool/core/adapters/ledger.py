"""
In-memory multi-token ledger.

Reference ValueLedger implementation modelled on ERC20 semantics: holders
``approve`` the escrow account, ``pull`` spends that allowance
(transferFrom), and ``push`` pays out of the escrow account (transfer).

Security features:
- 256-bit amount bounds
- Zero address checks
- Balance and allowance underflow prevention
- Per-token pause switch
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List

from sponsorpool.core.constants import ESCROW_ADDRESS, UINT256_MAX, ZERO_ADDRESS
from sponsorpool.core.validation import normalize_address, short_address

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Raised when a ledger operation cannot be completed."""
    pass


@dataclass
class TransferRecord:
    """A completed ledger movement."""

    event_type: str  # "Transfer", "Approval" or "Mint"
    token: str
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


class InMemoryTokenLedger:
    """
    Balances and allowances for any number of tokens.

    All state is held in memory; the escrow account is the address that
    ``pull`` credits and ``push`` debits.
    """

    def __init__(self, escrow_address: str = ESCROW_ADDRESS) -> None:
        self.escrow_address = normalize_address(escrow_address)
        # token -> holder -> balance
        self.balances: Dict[str, Dict[str, int]] = {}
        # token -> owner -> spender -> allowance
        self.allowances: Dict[str, Dict[str, Dict[str, int]]] = {}
        self.paused_tokens: set = set()
        self.events: List[TransferRecord] = []
        self._lock = threading.RLock()

    # ==================== View Functions ====================

    def balance_of(self, token: str, account: str) -> int:
        token, account = normalize_address(token), normalize_address(account)
        with self._lock:
            return self.balances.get(token, {}).get(account, 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        token = normalize_address(token)
        with self._lock:
            return (
                self.allowances.get(token, {})
                .get(normalize_address(owner), {})
                .get(normalize_address(spender), 0)
            )

    def escrow_balance(self, token: str) -> int:
        return self.balance_of(token, self.escrow_address)

    # ==================== Holder Functions ====================

    def mint(self, token: str, to: str, amount: int) -> None:
        """Credit ``amount`` of ``token`` to ``to`` out of thin air (test funding)."""
        token, to = normalize_address(token), normalize_address(to)
        self._validate_address(to, "recipient")
        self._validate_amount(amount)
        with self._lock:
            holders = self.balances.setdefault(token, {})
            new_balance = holders.get(to, 0) + amount
            if new_balance > UINT256_MAX:
                raise LedgerError("Ledger: balance overflow")
            holders[to] = new_balance
            self.events.append(TransferRecord("Mint", token, ZERO_ADDRESS, to, amount))

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        token = normalize_address(token)
        owner, spender = normalize_address(owner), normalize_address(spender)
        self._validate_address(spender, "spender")
        self._validate_amount(amount)
        with self._lock:
            self.allowances.setdefault(token, {}).setdefault(owner, {})[spender] = amount
            self.events.append(TransferRecord("Approval", token, owner, spender, amount))

    def pause(self, token: str) -> None:
        with self._lock:
            self.paused_tokens.add(normalize_address(token))

    def unpause(self, token: str) -> None:
        with self._lock:
            self.paused_tokens.discard(normalize_address(token))

    # ==================== ValueLedger ====================

    def pull(self, token: str, from_address: str, to_address: str, amount: int) -> bool:
        """Spend ``to_address``'s allowance on ``from_address``'s balance."""
        token = normalize_address(token)
        from_norm = normalize_address(from_address)
        to_norm = normalize_address(to_address)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        with self._lock:
            self._require_not_paused(token)
            current_allowance = self.allowances.get(token, {}).get(from_norm, {}).get(to_norm, 0)
            if current_allowance < amount:
                raise LedgerError(
                    f"Ledger: insufficient allowance ({current_allowance} < {amount})"
                )
            from_balance = self.balances.get(token, {}).get(from_norm, 0)
            if from_balance < amount:
                raise LedgerError(
                    f"Ledger: transfer amount exceeds balance ({amount} > {from_balance})"
                )

            if current_allowance != UINT256_MAX:
                self.allowances[token][from_norm][to_norm] = current_allowance - amount
            self._move(token, from_norm, to_norm, amount)

        logger.debug(
            "Ledger pull",
            extra={
                "event": "ledger.pull",
                "token": short_address(token),
                "from": short_address(from_norm),
                "amount": amount,
            },
        )
        return True

    def push(self, token: str, to_address: str, amount: int) -> bool:
        """Pay ``amount`` from the escrow account to ``to_address``."""
        token = normalize_address(token)
        to_norm = normalize_address(to_address)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        with self._lock:
            self._require_not_paused(token)
            escrow_balance = self.balances.get(token, {}).get(self.escrow_address, 0)
            if escrow_balance < amount:
                raise LedgerError(
                    f"Ledger: escrow balance too low ({escrow_balance} < {amount})"
                )
            self._move(token, self.escrow_address, to_norm, amount)

        logger.debug(
            "Ledger push",
            extra={
                "event": "ledger.push",
                "token": short_address(token),
                "to": short_address(to_norm),
                "amount": amount,
            },
        )
        return True

    # ==================== Helpers ====================

    def _move(self, token: str, from_addr: str, to_addr: str, amount: int) -> None:
        holders = self.balances.setdefault(token, {})
        holders[from_addr] = holders.get(from_addr, 0) - amount
        holders[to_addr] = holders.get(to_addr, 0) + amount
        self.events.append(TransferRecord("Transfer", token, from_addr, to_addr, amount))

    def _validate_address(self, address: str, field_name: str) -> None:
        if not address or address == ZERO_ADDRESS:
            raise LedgerError(f"Ledger: {field_name} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise LedgerError("Ledger: amount must be an integer")
        if amount < 0:
            raise LedgerError("Ledger: amount cannot be negative")
        if amount > UINT256_MAX:
            raise LedgerError("Ledger: amount exceeds uint256")

    def _require_not_paused(self, token: str) -> None:
        if token in self.paused_tokens:
            raise LedgerError("Ledger: token is paused")
