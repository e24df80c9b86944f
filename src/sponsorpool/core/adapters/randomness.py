"""
Randomness providers for campaign seeds.

The reward draw is only as unpredictable as the provider that seeded the
campaign. ``SecureRandomnessProvider`` draws from the OS CSPRNG;
``FixedRandomnessProvider`` is deterministic and meant for tests and replays.
"""

from __future__ import annotations

import hashlib
import secrets
import threading
from typing import Iterable, List, Optional


class SecureRandomnessProvider:
    """Seeds from ``secrets.token_bytes`` folded through sha3_256 with a counter."""

    def __init__(self) -> None:
        self._counter = 0
        self._lock = threading.Lock()

    def current_seed(self) -> int:
        with self._lock:
            self._counter += 1
            counter = self._counter
        material = secrets.token_bytes(32) + counter.to_bytes(8, "big")
        return int.from_bytes(hashlib.sha3_256(material).digest(), "big")


class FixedRandomnessProvider:
    """Returns preset seeds in order, repeating the last one."""

    def __init__(self, seed: int = 0, seeds: Optional[Iterable[int]] = None) -> None:
        self._seeds: List[int] = list(seeds) if seeds is not None else [seed]
        if not self._seeds:
            raise ValueError("At least one seed is required")
        self._index = 0

    def current_seed(self) -> int:
        seed = self._seeds[min(self._index, len(self._seeds) - 1)]
        self._index += 1
        return seed
