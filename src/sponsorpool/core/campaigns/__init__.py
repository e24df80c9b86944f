"""
Campaign ledger: registry, sponsorship tracker, reward engine and the
manager that orchestrates them.
"""

from sponsorpool.core.campaigns.events import EventLog
from sponsorpool.core.campaigns.manager import CampaignManager, ClaimPolicy
from sponsorpool.core.campaigns.models import (
    Campaign,
    CampaignEvent,
    CampaignEventType,
    ClaimStatus,
)
from sponsorpool.core.campaigns.persistence import CampaignStateStore
from sponsorpool.core.campaigns.registry import CampaignRegistry
from sponsorpool.core.campaigns.rewards import RewardEngine
from sponsorpool.core.campaigns.sponsorship import SponsorshipTracker
from sponsorpool.core.campaigns.unit_of_work import UnitOfWork

__all__ = [
    "Campaign",
    "CampaignEvent",
    "CampaignEventType",
    "CampaignManager",
    "CampaignRegistry",
    "CampaignStateStore",
    "ClaimPolicy",
    "ClaimStatus",
    "EventLog",
    "RewardEngine",
    "SponsorshipTracker",
    "UnitOfWork",
]
