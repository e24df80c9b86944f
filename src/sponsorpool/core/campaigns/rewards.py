"""
Reward Engine.

Computes the reward for a claiming recipient. The draw is deterministic for
fixed inputs (campaign seed, sponsor, claimant) and unpredictable before the
seed is captured:

    r      = sha3_256(seed_32be || sponsor || claimant) mod (upper - lower)
    base   = lower + r
    reward = bonus_amount if bonus configured and base >= bonus_threshold
             else base

Fixed-reward campaigns (lower == upper) always pay ``lower``.
"""

from __future__ import annotations

import hashlib
from typing import Callable

from sponsorpool.core.validation import normalize_address

from .models import Campaign

SEED_BYTES = 32


def _sha3_256(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


class RewardEngine:
    """Bounded pseudo-random reward generator with an optional bonus tier."""

    def __init__(self, hash_function: Callable[[bytes], bytes] = _sha3_256) -> None:
        self.hash_function = hash_function

    def draw(self, seed: int, sponsor: str, claimant: str, reward_range: int) -> int:
        """Return a value in ``[0, reward_range)``."""
        if reward_range <= 0:
            raise ValueError("reward_range must be positive")
        material = (
            seed.to_bytes(SEED_BYTES, "big")
            + normalize_address(sponsor).encode()
            + normalize_address(claimant).encode()
        )
        digest = self.hash_function(material)
        return int.from_bytes(digest, "big") % reward_range

    def base_reward(self, campaign: Campaign, sponsor: str, claimant: str) -> int:
        if campaign.is_fixed_reward:
            return campaign.lower_bound
        reward_range = campaign.upper_bound - campaign.lower_bound
        return campaign.lower_bound + self.draw(
            campaign.randomness_seed, sponsor, claimant, reward_range
        )

    def compute_reward(self, campaign: Campaign, sponsor: str, claimant: str) -> int:
        base = self.base_reward(campaign, sponsor, claimant)
        if campaign.has_bonus and base >= campaign.bonus_threshold:
            return campaign.bonus_amount
        return base
