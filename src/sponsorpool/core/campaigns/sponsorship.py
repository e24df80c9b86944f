"""
Sponsorship Tracker.

Owns the sponsor -> recipient relation and each address's ClaimStatus,
keyed by campaign id so campaigns never interfere with each other.

Invariants enforced here, independently of the orchestrator's checks:
- a sponsor has at most one outbound edge per campaign
- a recipient has at most one inbound edge per campaign
- ClaimStatus only moves NOT_SPONSORED -> CAN_CLAIM -> ALREADY_CLAIMED
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sponsorpool.core.campaign_exceptions import (
    AlreadyClaimedError,
    AlreadyParticipatedError,
    InvariantViolationError,
    NotSponsoredError,
)
from sponsorpool.core.validation import normalize_address

from .models import ClaimStatus
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class SponsorshipTracker:
    """Per-campaign sponsorship edges and claim statuses."""

    def __init__(self) -> None:
        # campaign_id -> recipient -> sponsor
        self._sponsor_of: Dict[int, Dict[str, str]] = {}
        # campaign_id -> sponsor -> recipient
        self._recipient_of: Dict[int, Dict[str, str]] = {}
        # campaign_id -> address -> status
        self._status: Dict[int, Dict[str, ClaimStatus]] = {}

    # ==================== Queries ====================

    def claim_status(self, campaign_id: int, address: str) -> ClaimStatus:
        statuses = self._status.get(campaign_id, {})
        return statuses.get(normalize_address(address), ClaimStatus.NOT_SPONSORED)

    def sponsor_of(self, campaign_id: int, recipient: str) -> Optional[str]:
        return self._sponsor_of.get(campaign_id, {}).get(normalize_address(recipient))

    def recipient_of(self, campaign_id: int, sponsor: str) -> Optional[str]:
        return self._recipient_of.get(campaign_id, {}).get(normalize_address(sponsor))

    def has_sponsored(self, campaign_id: int, sponsor: str) -> bool:
        return self.recipient_of(campaign_id, sponsor) is not None

    def stats(self, campaign_id: int) -> Dict[str, int]:
        statuses = list(self._status.get(campaign_id, {}).values())
        return {
            "sponsorships": len(self._sponsor_of.get(campaign_id, {})),
            "claimable": sum(1 for s in statuses if s is ClaimStatus.CAN_CLAIM),
            "claimed": sum(1 for s in statuses if s is ClaimStatus.ALREADY_CLAIMED),
        }

    # ==================== Mutations ====================

    def record_sponsorship(
        self, uow: UnitOfWork, campaign_id: int, sponsor: str, recipient: str
    ) -> None:
        """Write the sponsor -> recipient edge and make the recipient claimable."""
        sponsor = normalize_address(sponsor)
        recipient = normalize_address(recipient)

        if self.has_sponsored(campaign_id, sponsor):
            raise AlreadyParticipatedError(
                "Sponsor has already sponsored a recipient in this campaign",
                details={"campaign_id": campaign_id},
            )
        if self.claim_status(campaign_id, recipient) is not ClaimStatus.NOT_SPONSORED:
            raise AlreadyParticipatedError(
                "Recipient has already been sponsored in this campaign",
                details={"campaign_id": campaign_id},
            )

        sponsors = self._sponsor_of.setdefault(campaign_id, {})
        recipients = self._recipient_of.setdefault(campaign_id, {})
        sponsors[recipient] = sponsor
        recipients[sponsor] = recipient
        self._transition(uow, campaign_id, recipient, ClaimStatus.CAN_CLAIM)

        def undo() -> None:
            sponsors.pop(recipient, None)
            recipients.pop(sponsor, None)

        uow.record_undo(undo)

    def mark_claimed(self, uow: UnitOfWork, campaign_id: int, recipient: str) -> None:
        """Consume the recipient's claim eligibility."""
        recipient = normalize_address(recipient)
        status = self.claim_status(campaign_id, recipient)
        if status is ClaimStatus.NOT_SPONSORED:
            raise NotSponsoredError(
                "Address has not been sponsored in this campaign",
                details={"campaign_id": campaign_id},
            )
        if status is ClaimStatus.ALREADY_CLAIMED:
            raise AlreadyClaimedError(
                "Reward has already been claimed",
                details={"campaign_id": campaign_id},
            )
        self._transition(uow, campaign_id, recipient, ClaimStatus.ALREADY_CLAIMED)

    def _transition(
        self, uow: UnitOfWork, campaign_id: int, address: str, new_status: ClaimStatus
    ) -> None:
        statuses = self._status.setdefault(campaign_id, {})
        had_entry = address in statuses
        current = statuses.get(address, ClaimStatus.NOT_SPONSORED)
        if new_status.rank != current.rank + 1:
            raise InvariantViolationError(
                f"Illegal claim status transition {current.value} -> {new_status.value}",
                details={"campaign_id": campaign_id},
            )
        statuses[address] = new_status

        def undo() -> None:
            if had_entry:
                statuses[address] = current
            else:
                statuses.pop(address, None)

        uow.record_undo(undo)

    # ==================== Serialization ====================

    def campaign_state(self, campaign_id: int) -> Dict[str, Any]:
        """Edges and statuses of one campaign, in snapshot form."""
        return {
            "sponsors": dict(self._sponsor_of.get(campaign_id, {})),
            "statuses": {
                addr: status.value
                for addr, status in list(self._status.get(campaign_id, {}).items())
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        campaign_ids = set(self._sponsor_of) | set(self._status)
        states = {cid: self.campaign_state(cid) for cid in campaign_ids}
        return {
            "sponsors": {str(cid): state["sponsors"] for cid, state in states.items()},
            "statuses": {str(cid): state["statuses"] for cid, state in states.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SponsorshipTracker":
        tracker = cls()
        for cid, edges in data.get("sponsors", {}).items():
            campaign_id = int(cid)
            tracker._sponsor_of[campaign_id] = dict(edges)
            tracker._recipient_of[campaign_id] = {
                sponsor: recipient for recipient, sponsor in edges.items()
            }
        for cid, statuses in data.get("statuses", {}).items():
            tracker._status[int(cid)] = {
                addr: ClaimStatus(value) for addr, value in statuses.items()
            }
        return tracker
