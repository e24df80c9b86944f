"""API key authentication binding each key to the address it acts for.

Keys are kept only as SHA-256 hashes. A request is authenticated by an
``X-API-Key`` header or an ``Authorization: Bearer`` token; the address bound
to that key is the caller of every campaign operation the request performs.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import threading
from typing import Any, Dict, Mapping, Optional, Tuple

from flask import Request

from sponsorpool.core.validation import short_address, validate_address

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class APIAuthManager:
    """API key authentication for caller identity."""

    def __init__(self, keys: Optional[Mapping[str, str]] = None) -> None:
        """
        Args:
            keys: Plaintext API key -> address it authenticates as
        """
        self._lock = threading.Lock()
        self._addresses: Dict[str, str] = {}
        for key, address in (keys or {}).items():
            self._addresses[self._hash_key(key)] = validate_address(address)

    @classmethod
    def from_config(cls, config: Any) -> "APIAuthManager":
        """Construct manager from the ``API_KEYS`` config mapping."""
        return cls(keys=dict(getattr(config, "API_KEYS", {}) or {}))

    @staticmethod
    def _hash_key(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def __len__(self) -> int:
        return len(self._addresses)

    def issue_key(self, address: str, plaintext: Optional[str] = None) -> str:
        """Bind a new key to ``address`` and return the plaintext key."""
        address = validate_address(address)
        new_key = plaintext or secrets.token_hex(32)
        with self._lock:
            self._addresses[self._hash_key(new_key)] = address
        logger.info(
            "API key issued",
            extra={"event": "api_auth.key_issued", "address": short_address(address)},
        )
        return new_key

    def revoke_key(self, key: str) -> bool:
        with self._lock:
            removed = self._addresses.pop(self._hash_key(key), None)
        if removed is not None:
            logger.info(
                "API key revoked",
                extra={"event": "api_auth.key_revoked", "address": short_address(removed)},
            )
        return removed is not None

    def _extract_key(self, request: Request) -> Optional[str]:
        """Extract API key from headers."""
        header_key = request.headers.get(API_KEY_HEADER)
        if header_key:
            return header_key.strip()

        auth_header = request.headers.get("Authorization", "").strip()
        if auth_header.lower().startswith("bearer "):
            return auth_header.split(" ", 1)[1].strip()

        return None

    def authenticate(self, request: Request) -> Tuple[bool, Optional[str], Optional[str]]:
        """Resolve the request's caller.

        Returns:
            (authenticated, address, error message)
        """
        key = self._extract_key(request)
        if not key:
            return False, None, "API key missing"

        with self._lock:
            address = self._addresses.get(self._hash_key(key))
        if address is None:
            logger.warning(
                "Rejected unknown API key",
                extra={"event": "api_auth.rejected", "remote_addr": request.remote_addr},
            )
            return False, None, "API key invalid"
        return True, address, None
