"""
Campaign data model.

Campaign records are owned by the registry; sponsorship edges and claim
statuses are owned by the sponsorship tracker. Everything here is plain data
plus (de)serialization.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ClaimStatus(Enum):
    """Claim eligibility of an address within one campaign.

    Transitions only move forward:
    NOT_SPONSORED -> CAN_CLAIM -> ALREADY_CLAIMED
    """

    NOT_SPONSORED = "not_sponsored"
    CAN_CLAIM = "can_claim"
    ALREADY_CLAIMED = "already_claimed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER[self]


_STATUS_ORDER = {
    ClaimStatus.NOT_SPONSORED: 0,
    ClaimStatus.CAN_CLAIM: 1,
    ClaimStatus.ALREADY_CLAIMED: 2,
}


class CampaignEventType(Enum):
    """Events emitted on successful campaign operations."""

    CREATED = "CampaignCreated"
    FUNDED = "CampaignFunded"
    ENDED_EARLY = "CampaignEndedEarly"
    FUNDS_WITHDRAWN = "FundsWithdrawn"
    SPONSORED = "Sponsored"
    REWARD_CLAIMED = "RewardClaimed"


@dataclass
class Campaign:
    """A funded, time-bounded reward pool."""

    campaign_id: int
    reward_token: str
    available_funds: int
    ends_at: int
    lower_bound: int
    upper_bound: int
    randomness_seed: int
    bonus_threshold: Optional[int] = None
    bonus_amount: Optional[int] = None
    ended_early: bool = False
    creator: str = ""
    created_at: int = 0

    @property
    def has_bonus(self) -> bool:
        return self.bonus_threshold is not None and self.bonus_amount is not None

    @property
    def is_fixed_reward(self) -> bool:
        return self.lower_bound == self.upper_bound

    def accepts_sponsorship(self, now: int) -> bool:
        return now < self.ends_at and not self.ended_early

    def accepts_claims(self, now: int) -> bool:
        return now < self.ends_at

    def max_reward(self) -> int:
        if self.has_bonus:
            return max(self.upper_bound, self.bonus_amount)
        return self.upper_bound

    def to_dict(self) -> Dict[str, Any]:
        # Seeds and amounts exceed JSON-safe integer ranges for some clients
        data = asdict(self)
        data["randomness_seed"] = hex(self.randomness_seed)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Campaign":
        seed = data["randomness_seed"]
        return cls(
            campaign_id=int(data["campaign_id"]),
            reward_token=data["reward_token"],
            available_funds=int(data["available_funds"]),
            ends_at=int(data["ends_at"]),
            lower_bound=int(data["lower_bound"]),
            upper_bound=int(data["upper_bound"]),
            randomness_seed=int(seed, 16) if isinstance(seed, str) else int(seed),
            bonus_threshold=data.get("bonus_threshold"),
            bonus_amount=data.get("bonus_amount"),
            ended_early=bool(data.get("ended_early", False)),
            creator=data.get("creator", ""),
            created_at=int(data.get("created_at", 0)),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Representation for API consumers; amounts as decimal strings."""
        return {
            "campaign_id": self.campaign_id,
            "reward_token": self.reward_token,
            "available_funds": str(self.available_funds),
            "ends_at": self.ends_at,
            "ended_early": self.ended_early,
            "lower_bound": str(self.lower_bound),
            "upper_bound": str(self.upper_bound),
            "bonus_threshold": None if self.bonus_threshold is None else str(self.bonus_threshold),
            "bonus_amount": None if self.bonus_amount is None else str(self.bonus_amount),
            "creator": self.creator,
            "created_at": self.created_at,
        }


@dataclass
class CampaignEvent:
    """Structured record of a successful campaign operation."""

    event_type: CampaignEventType
    campaign_id: int
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_type.value,
            "campaign_id": self.campaign_id,
            "payload": {k: (str(v) if isinstance(v, int) and not isinstance(v, bool) else v)
                        for k, v in self.payload.items()},
            "timestamp": self.timestamp,
            "sequence": self.sequence,
        }
