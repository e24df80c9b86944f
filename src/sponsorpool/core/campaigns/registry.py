"""
Campaign Registry.

Owns every Campaign record and the id counter. Records are created once,
mutated by funding, early termination, claims and withdrawal, and never
deleted. Mutators journal their inverse on the supplied unit of work.

Callers serialize access per campaign (see ``CampaignManager``); the
registry's own lock only guards id assignment and the record map.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sponsorpool.core.campaign_exceptions import (
    CampaignNotFoundError,
    InvalidConfigurationError,
)
from sponsorpool.core.constants import FIRST_CAMPAIGN_ID
from sponsorpool.core.units import checked_add, checked_sub, is_uint256
from sponsorpool.core.validation import is_null_address, normalize_address

from .models import Campaign
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class CampaignRegistry:
    """In-memory registry of campaigns keyed by integer id."""

    def __init__(self) -> None:
        self._campaigns: Dict[int, Campaign] = {}
        self._next_id = FIRST_CAMPAIGN_ID
        self._lock = threading.RLock()

    # ==================== Queries ====================

    def find(self, campaign_id: Any) -> Optional[Campaign]:
        """Return the live record, or None if no such campaign exists."""
        if not isinstance(campaign_id, int) or isinstance(campaign_id, bool):
            return None
        return self._campaigns.get(campaign_id)

    def get(self, campaign_id: Any) -> Campaign:
        campaign = self.find(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    def snapshot(self, campaign_id: Any) -> Optional[Campaign]:
        """Return a detached copy of the record, or None."""
        campaign = self.find(campaign_id)
        return dataclasses.replace(campaign) if campaign is not None else None

    def list(self) -> List[Campaign]:
        with self._lock:
            campaigns = list(self._campaigns.values())
        return [dataclasses.replace(c) for c in sorted(campaigns, key=lambda c: c.campaign_id)]

    def campaign_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._campaigns)

    def peek_next_id(self) -> int:
        return self._next_id

    def __len__(self) -> int:
        return len(self._campaigns)

    @contextmanager
    def creation_lock(self) -> Iterator[None]:
        """Serialize campaign creation so ids are assigned in order."""
        with self._lock:
            yield

    # ==================== Validation ====================

    @staticmethod
    def validate_parameters(
        token: Optional[str],
        initial_deposit: int,
        ends_at: int,
        lower_bound: int,
        upper_bound: int,
        bonus_threshold: Optional[int],
        bonus_amount: Optional[int],
        now: int,
        max_duration: int = 0,
    ) -> None:
        """
        Validate creation parameters.

        Raises:
            InvalidConfigurationError: On the first violated rule
        """
        if is_null_address(token):
            raise InvalidConfigurationError("Reward token is required")

        for name, value in (
            ("initial_deposit", initial_deposit),
            ("ends_at", ends_at),
            ("lower_bound", lower_bound),
            ("upper_bound", upper_bound),
        ):
            if not is_uint256(value):
                raise InvalidConfigurationError(
                    f"{name} must be an unsigned 256-bit integer", details={"field": name}
                )

        if initial_deposit == 0:
            raise InvalidConfigurationError("Initial deposit must be greater than zero")
        if ends_at <= now:
            raise InvalidConfigurationError(
                "Campaign end must be in the future", details={"ends_at": ends_at, "now": now}
            )
        if max_duration and ends_at - now > max_duration:
            raise InvalidConfigurationError(
                "Campaign duration exceeds the configured maximum",
                details={"max_duration": max_duration},
            )
        if lower_bound > upper_bound:
            raise InvalidConfigurationError("Lower bound must not exceed upper bound")

        if (bonus_threshold is None) != (bonus_amount is None):
            raise InvalidConfigurationError(
                "Bonus threshold and bonus amount must be configured together"
            )
        if bonus_threshold is None:
            return
        if not is_uint256(bonus_threshold) or not is_uint256(bonus_amount):
            raise InvalidConfigurationError("Bonus values must be unsigned 256-bit integers")
        if not lower_bound <= bonus_threshold < upper_bound:
            raise InvalidConfigurationError(
                "Bonus threshold must lie within [lower_bound, upper_bound)"
            )
        if bonus_amount <= upper_bound:
            raise InvalidConfigurationError("Bonus amount must exceed the upper bound")

    # ==================== Mutations ====================

    def create(
        self,
        uow: UnitOfWork,
        token: str,
        initial_deposit: int,
        ends_at: int,
        lower_bound: int,
        upper_bound: int,
        randomness_seed: int,
        bonus_threshold: Optional[int] = None,
        bonus_amount: Optional[int] = None,
        creator: str = "",
        created_at: int = 0,
    ) -> Campaign:
        """Store a new campaign under the next id. Parameters must be validated."""
        with self._lock:
            campaign_id = self._next_id
            campaign = Campaign(
                campaign_id=campaign_id,
                reward_token=normalize_address(token),
                available_funds=initial_deposit,
                ends_at=ends_at,
                lower_bound=lower_bound,
                upper_bound=upper_bound,
                randomness_seed=randomness_seed,
                bonus_threshold=bonus_threshold,
                bonus_amount=bonus_amount,
                creator=normalize_address(creator),
                created_at=created_at,
            )
            self._campaigns[campaign_id] = campaign
            self._next_id = campaign_id + 1

        def undo() -> None:
            with self._lock:
                self._campaigns.pop(campaign_id, None)
                if self._next_id == campaign_id + 1:
                    self._next_id = campaign_id

        uow.record_undo(undo)
        return campaign

    def credit(self, uow: UnitOfWork, campaign_id: int, amount: int) -> int:
        campaign = self.get(campaign_id)
        previous = campaign.available_funds
        campaign.available_funds = checked_add(previous, amount)
        uow.record_undo(lambda: setattr(campaign, "available_funds", previous))
        return campaign.available_funds

    def debit(self, uow: UnitOfWork, campaign_id: int, amount: int) -> int:
        campaign = self.get(campaign_id)
        previous = campaign.available_funds
        campaign.available_funds = checked_sub(previous, amount)
        uow.record_undo(lambda: setattr(campaign, "available_funds", previous))
        return campaign.available_funds

    def drain(self, uow: UnitOfWork, campaign_id: int) -> int:
        """Zero the escrow balance and return what it held."""
        campaign = self.get(campaign_id)
        previous = campaign.available_funds
        campaign.available_funds = 0
        uow.record_undo(lambda: setattr(campaign, "available_funds", previous))
        return previous

    def mark_ended_early(self, uow: UnitOfWork, campaign_id: int) -> None:
        campaign = self.get(campaign_id)
        campaign.ended_early = True
        uow.record_undo(lambda: setattr(campaign, "ended_early", False))

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            campaigns = list(self._campaigns.values())
            next_id = self._next_id
        return {
            "next_id": next_id,
            "campaigns": [c.to_dict() for c in campaigns],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CampaignRegistry":
        registry = cls()
        for item in data.get("campaigns", []):
            campaign = Campaign.from_dict(item)
            registry._campaigns[campaign.campaign_id] = campaign
        highest = max(registry._campaigns, default=FIRST_CAMPAIGN_ID - 1)
        registry._next_id = max(int(data.get("next_id", FIRST_CAMPAIGN_ID)), highest + 1)
        return registry
