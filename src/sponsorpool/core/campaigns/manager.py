"""
Campaign Manager - orchestrates registry, sponsorship tracker and reward engine.

Every externally callable operation runs under its campaign's lock inside a
unit of work:

1. preconditions are evaluated against a consistent snapshot
2. state is mutated (each step journaled)
3. external effects run (ledger pull/push)
4. on success the unit of work commits and publishes its events;
   on any failure every journaled step is undone

Operations on different campaigns never contend; creation is serialized by
the registry so ids are assigned in order.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from sponsorpool.core import campaign_metrics
from sponsorpool.core.campaign_exceptions import (
    AlreadyClaimedError,
    AlreadyParticipatedError,
    CampaignActiveError,
    CampaignEndedError,
    CampaignError,
    CampaignNotFoundError,
    CannotSponsorSelfError,
    InsufficientFundsError,
    InvalidConfigurationError,
    NotSponsoredError,
    NotVerifiedError,
    TransferFailedError,
    UnauthorizedError,
    VerifierUnavailableError,
)
from sponsorpool.core.constants import ESCROW_ADDRESS, UINT256_MAX
from sponsorpool.core.protocols import (
    Clock,
    IdentityVerifier,
    OwnerCapability,
    RandomnessProvider,
    ValueLedger,
)
from sponsorpool.core.units import is_uint256
from sponsorpool.core.validation import is_null_address, normalize_address, short_address

from .events import EventLog
from .models import Campaign, CampaignEvent, CampaignEventType, ClaimStatus
from .persistence import CampaignStateStore
from .registry import CampaignRegistry
from .rewards import RewardEngine
from .sponsorship import SponsorshipTracker
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimPolicy:
    """
    How an underfunded claim is settled.

    burn_on_insufficient_funds:
        True  - the recipient stays ALREADY_CLAIMED and cannot retry
        False - the claim rolls back and may be retried after refunding
    """

    burn_on_insufficient_funds: bool = True

    @classmethod
    def from_config(cls, config: Any) -> "ClaimPolicy":
        return cls(
            burn_on_insufficient_funds=bool(
                getattr(config, "BURN_CLAIM_ON_INSUFFICIENT_FUNDS", True)
            )
        )


class CampaignLocks:
    """One re-entrant lock per campaign id."""

    def __init__(self) -> None:
        self._locks: Dict[int, threading.RLock] = {}
        self._guard = threading.Lock()

    def register(self, campaign_id: int) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault(campaign_id, threading.RLock())

    def get(self, campaign_id: Any) -> Optional[threading.RLock]:
        """Lock of a registered id, or None.

        Locks are registered before their campaign record is published, so
        None means the campaign did not exist when this was called.
        """
        if not isinstance(campaign_id, int) or isinstance(campaign_id, bool):
            return None
        with self._guard:
            return self._locks.get(campaign_id)


class CampaignManager:
    """
    Externally callable campaign operations.

    The ``caller`` argument of each operation is the authenticated address
    performing it (the message sender).
    """

    def __init__(
        self,
        ledger: ValueLedger,
        verifier: IdentityVerifier,
        access_control: OwnerCapability,
        randomness: RandomnessProvider,
        clock: Clock,
        event_log: Optional[EventLog] = None,
        claim_policy: Optional[ClaimPolicy] = None,
        registry: Optional[CampaignRegistry] = None,
        tracker: Optional[SponsorshipTracker] = None,
        reward_engine: Optional[RewardEngine] = None,
        state_store: Optional[CampaignStateStore] = None,
        escrow_address: str = ESCROW_ADDRESS,
        max_campaign_duration: int = 0,
    ) -> None:
        self.ledger = ledger
        self.verifier = verifier
        self.access_control = access_control
        self.randomness = randomness
        self.clock = clock
        self.event_log = event_log or EventLog()
        self.claim_policy = claim_policy or ClaimPolicy()
        self.reward_engine = reward_engine or RewardEngine()
        self.state_store = state_store
        self.escrow_address = normalize_address(escrow_address)
        self.max_campaign_duration = max_campaign_duration

        if registry is None and tracker is None and state_store is not None:
            restored = state_store.load()
            if restored is not None:
                registry, tracker = restored
        self.registry = registry or CampaignRegistry()
        self.tracker = tracker or SponsorshipTracker()

        self._locks = CampaignLocks()
        for campaign in self.registry.list():
            self._locks.register(campaign.campaign_id)

    # ==================== Configuration Operations ====================

    def create_campaign(
        self,
        caller: str,
        token: str,
        initial_deposit: int,
        ends_at: int,
        lower_bound: int,
        upper_bound: int,
        bonus_threshold: Optional[int] = None,
        bonus_amount: Optional[int] = None,
    ) -> int:
        """
        Create and fund a new campaign (owner only).

        Returns:
            The new campaign id

        Raises:
            UnauthorizedError: If caller is not the owner
            InvalidConfigurationError: If any parameter is malformed
            TransferFailedError: If the initial deposit cannot be pulled
        """
        caller = normalize_address(caller)
        with self._operation("create", None):
            self._require_owner(caller)
            now = self.clock.now()
            CampaignRegistry.validate_parameters(
                token,
                initial_deposit,
                ends_at,
                lower_bound,
                upper_bound,
                bonus_threshold,
                bonus_amount,
                now=now,
                max_duration=self.max_campaign_duration,
            )

            with self.registry.creation_lock():
                campaign_id = self.registry.peek_next_id()
                with self._locks.register(campaign_id), self._unit_of_work(campaign_id) as uow:
                    seed = self.randomness.current_seed() & UINT256_MAX
                    campaign = self.registry.create(
                        uow,
                        token=token,
                        initial_deposit=initial_deposit,
                        ends_at=ends_at,
                        lower_bound=lower_bound,
                        upper_bound=upper_bound,
                        randomness_seed=seed,
                        bonus_threshold=bonus_threshold,
                        bonus_amount=bonus_amount,
                        creator=caller,
                        created_at=now,
                    )
                    uow.emit(
                        CampaignEventType.CREATED,
                        campaign.campaign_id,
                        token=campaign.reward_token,
                        creator=caller,
                        initial_deposit=initial_deposit,
                        ends_at=ends_at,
                        lower_bound=lower_bound,
                        upper_bound=upper_bound,
                        bonus_threshold=bonus_threshold,
                        bonus_amount=bonus_amount,
                    )
                    self._pull(campaign.reward_token, caller, initial_deposit)

        campaign_metrics.update_campaign_escrow(campaign.campaign_id, initial_deposit)
        logger.info(
            "Campaign created",
            extra={
                "event": "campaign.created",
                "campaign_id": campaign.campaign_id,
                "token": short_address(campaign.reward_token),
                "initial_deposit": initial_deposit,
                "ends_at": ends_at,
            },
        )
        return campaign.campaign_id

    def fund_campaign(self, caller: str, campaign_id: int, amount: int) -> int:
        """
        Top up a campaign's escrow. Open to any caller.

        Returns:
            The new escrow balance
        """
        caller = normalize_address(caller)
        with self._operation("fund", campaign_id):
            if not is_uint256(amount) or amount == 0:
                raise InvalidConfigurationError("Funding amount must be greater than zero")
            with self._transaction(campaign_id) as uow:
                campaign = self.registry.get(campaign_id)
                now = self.clock.now()
                if now >= campaign.ends_at:
                    raise CampaignEndedError(
                        "Campaign has ended", details={"campaign_id": campaign_id}
                    )
                balance = self.registry.credit(uow, campaign_id, amount)
                uow.emit(
                    CampaignEventType.FUNDED,
                    campaign_id,
                    funder=caller,
                    amount=amount,
                    available_funds=balance,
                )
                self._pull(campaign.reward_token, caller, amount)

        campaign_metrics.update_campaign_escrow(campaign_id, balance)
        logger.info(
            "Campaign funded",
            extra={
                "event": "campaign.funded",
                "campaign_id": campaign_id,
                "funder": short_address(caller),
                "amount": amount,
                "is_owner": self._is_owner(caller),
            },
        )
        return balance

    def withdraw_unclaimed_funds(self, caller: str, campaign_id: int) -> int:
        """
        Recover the escrow of a naturally expired campaign (owner only).

        Returns:
            The amount withdrawn
        """
        caller = normalize_address(caller)
        with self._operation("withdraw", campaign_id):
            self._require_owner(caller)
            with self._transaction(campaign_id) as uow:
                campaign = self.registry.get(campaign_id)
                now = self.clock.now()
                if now <= campaign.ends_at:
                    raise CampaignActiveError(
                        "Campaign has not ended yet",
                        details={"campaign_id": campaign_id, "ends_at": campaign.ends_at},
                        recoverable=True,
                    )
                amount = self.registry.drain(uow, campaign_id)
                uow.emit(
                    CampaignEventType.FUNDS_WITHDRAWN,
                    campaign_id,
                    recipient=caller,
                    amount=amount,
                )
                if amount:
                    self._push(campaign.reward_token, caller, amount)

        campaign_metrics.update_campaign_escrow(campaign_id, 0)
        logger.info(
            "Unclaimed funds withdrawn",
            extra={"event": "campaign.withdrawn", "campaign_id": campaign_id, "amount": amount},
        )
        return amount

    def end_campaign_early(self, caller: str, campaign_id: int) -> None:
        """Stop new sponsorships (owner only). Sponsored recipients may still claim."""
        caller = normalize_address(caller)
        with self._operation("end_early", campaign_id):
            self._require_owner(caller)
            with self._transaction(campaign_id) as uow:
                campaign = self.registry.get(campaign_id)
                if campaign.ended_early:
                    raise CampaignEndedError(
                        "Campaign was already ended early", details={"campaign_id": campaign_id}
                    )
                if self.clock.now() >= campaign.ends_at:
                    raise CampaignEndedError(
                        "Campaign has ended", details={"campaign_id": campaign_id}
                    )
                self.registry.mark_ended_early(uow, campaign_id)
                uow.emit(CampaignEventType.ENDED_EARLY, campaign_id, caller=caller)

        logger.info(
            "Campaign ended early",
            extra={"event": "campaign.ended_early", "campaign_id": campaign_id},
        )

    # ==================== Sponsorship ====================

    def sponsor(self, caller: str, campaign_id: int, recipient: str) -> None:
        """Sponsor ``recipient`` into the campaign; ``caller`` is the sponsor."""
        caller = normalize_address(caller)
        recipient = normalize_address(recipient)
        with self._operation("sponsor", campaign_id):
            with self._transaction(campaign_id) as uow:
                self._check_sponsorship(campaign_id, caller, recipient, self.clock.now())
                self.tracker.record_sponsorship(uow, campaign_id, caller, recipient)
                uow.emit(
                    CampaignEventType.SPONSORED,
                    campaign_id,
                    sponsor=caller,
                    recipient=recipient,
                )

        logger.info(
            "Recipient sponsored",
            extra={
                "event": "campaign.sponsored",
                "campaign_id": campaign_id,
                "sponsor": short_address(caller),
                "recipient": short_address(recipient),
            },
        )

    def can_sponsor(self, campaign_id: int, sponsor: str, recipient: str) -> bool:
        """Dry-run of ``sponsor``: True iff the same call would succeed now."""
        try:
            sponsor = normalize_address(sponsor)
            recipient = normalize_address(recipient)
            with self._reading(campaign_id) as known:
                if not known:
                    raise CampaignNotFoundError(campaign_id)
                self._check_sponsorship(campaign_id, sponsor, recipient, self.clock.now())
        except (CampaignError, ValueError) as exc:
            logger.debug(
                "Sponsorship dry-run rejected",
                extra={
                    "event": "campaign.can_sponsor",
                    "campaign_id": campaign_id,
                    "code": getattr(exc, "code", "invalid_request"),
                },
            )
            return False
        return True

    def _check_sponsorship(self, campaign_id: int, sponsor: str, recipient: str, now: int) -> None:
        """Shared precondition set of ``sponsor`` and ``can_sponsor``."""
        if recipient == sponsor:
            raise CannotSponsorSelfError("Cannot sponsor yourself")
        if is_null_address(recipient):
            raise InvalidConfigurationError("Recipient address is required")
        campaign = self.registry.get(campaign_id)
        if not campaign.accepts_sponsorship(now):
            raise CampaignEndedError(
                "Campaign is not accepting sponsorships",
                details={"campaign_id": campaign_id, "ended_early": campaign.ended_early},
            )
        if not self._is_verified(recipient, now):
            raise NotVerifiedError("Recipient is not verified", details={"role": "recipient"})
        if not self._is_verified(sponsor, now):
            raise NotVerifiedError("Sponsor is not verified", details={"role": "sponsor"})
        if self.tracker.has_sponsored(campaign_id, sponsor):
            raise AlreadyParticipatedError(
                "Sponsor has already sponsored a recipient in this campaign",
                details={"campaign_id": campaign_id},
            )
        if self.tracker.claim_status(campaign_id, recipient) is not ClaimStatus.NOT_SPONSORED:
            raise AlreadyParticipatedError(
                "Recipient has already been sponsored in this campaign",
                details={"campaign_id": campaign_id},
            )

    # ==================== Claiming ====================

    def claim(self, caller: str, campaign_id: int) -> int:
        """
        Draw and pay the caller's reward.

        Returns:
            The reward paid, in base units

        Raises:
            NotSponsoredError: If the caller was never sponsored
            AlreadyClaimedError: If the caller already claimed
            InsufficientFundsError: If escrow cannot cover the reward
        """
        caller = normalize_address(caller)
        with self._operation("claim", campaign_id):
            with self._transaction(campaign_id) as uow:
                campaign = self.registry.get(campaign_id)
                if not campaign.accepts_claims(self.clock.now()):
                    raise CampaignEndedError(
                        "Campaign has ended", details={"campaign_id": campaign_id}
                    )
                status = self.tracker.claim_status(campaign_id, caller)
                if status is ClaimStatus.NOT_SPONSORED:
                    raise NotSponsoredError(
                        "Address has not been sponsored in this campaign",
                        details={"campaign_id": campaign_id},
                    )
                if status is ClaimStatus.ALREADY_CLAIMED:
                    raise AlreadyClaimedError(
                        "Reward has already been claimed", details={"campaign_id": campaign_id}
                    )

                sponsor = self.tracker.sponsor_of(campaign_id, caller)
                reward = self.reward_engine.compute_reward(campaign, sponsor, caller)

                # Consumed before any transfer so a re-entrant claim sees ALREADY_CLAIMED
                self.tracker.mark_claimed(uow, campaign_id, caller)

                if campaign.available_funds < reward:
                    burn = self.claim_policy.burn_on_insufficient_funds
                    error = InsufficientFundsError(
                        "Campaign escrow cannot cover the reward",
                        available=campaign.available_funds,
                        required=reward,
                        details={"campaign_id": campaign_id, "claim_consumed": burn},
                        recoverable=not burn,
                    )
                    if burn:
                        uow.commit()
                    raise error

                balance = self.registry.debit(uow, campaign_id, reward)
                uow.emit(
                    CampaignEventType.REWARD_CLAIMED,
                    campaign_id,
                    recipient=caller,
                    sponsor=sponsor,
                    amount=reward,
                    available_funds=balance,
                )
                self._push(campaign.reward_token, caller, reward)

        campaign_metrics.record_reward_paid(campaign.reward_token, reward)
        campaign_metrics.update_campaign_escrow(campaign_id, balance)
        logger.info(
            "Reward claimed",
            extra={
                "event": "campaign.claimed",
                "campaign_id": campaign_id,
                "recipient": short_address(caller),
                "amount": reward,
            },
        )
        return reward

    # ==================== Queries ====================

    def find_campaign(self, campaign_id: Any) -> Optional[Campaign]:
        """Detached copy of the campaign, or None if it does not exist."""
        with self._reading(campaign_id) as known:
            return self.registry.snapshot(campaign_id) if known else None

    def get_campaign(self, campaign_id: Any) -> Campaign:
        campaign = self.find_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    def list_campaigns(self) -> List[Campaign]:
        """Committed copies of every campaign, each taken under its own lock."""
        campaigns = []
        for campaign_id in self.registry.campaign_ids():
            campaign = self.find_campaign(campaign_id)
            if campaign is not None:
                campaigns.append(campaign)
        return campaigns

    def claim_status(self, campaign_id: int, address: str) -> ClaimStatus:
        with self._reading(campaign_id) as known:
            if not known:
                return ClaimStatus.NOT_SPONSORED
            return self.tracker.claim_status(campaign_id, address)

    def sponsor_of(self, campaign_id: int, recipient: str) -> Optional[str]:
        with self._reading(campaign_id) as known:
            return self.tracker.sponsor_of(campaign_id, recipient) if known else None

    def recipient_of(self, campaign_id: int, sponsor: str) -> Optional[str]:
        with self._reading(campaign_id) as known:
            return self.tracker.recipient_of(campaign_id, sponsor) if known else None

    def participation_stats(self, campaign_id: int) -> Dict[str, int]:
        with self._reading(campaign_id) as known:
            if not known:
                raise CampaignNotFoundError(campaign_id)
            return self.tracker.stats(campaign_id)

    def preview_reward(self, campaign_id: int, recipient: str) -> Optional[int]:
        """Reward ``recipient`` would draw if they claimed now, or None if not claimable."""
        recipient = normalize_address(recipient)
        with self._reading(campaign_id) as known:
            if not known:
                raise CampaignNotFoundError(campaign_id)
            campaign = self.registry.get(campaign_id)
            if self.tracker.claim_status(campaign_id, recipient) is not ClaimStatus.CAN_CLAIM:
                return None
            sponsor = self.tracker.sponsor_of(campaign_id, recipient)
            return self.reward_engine.compute_reward(campaign, sponsor, recipient)

    def events(
        self,
        campaign_id: Optional[int] = None,
        event_type: Optional[CampaignEventType] = None,
        limit: Optional[int] = None,
    ) -> List[CampaignEvent]:
        return self.event_log.query(campaign_id=campaign_id, event_type=event_type, limit=limit)

    # ==================== Internals ====================

    @contextmanager
    def _operation(self, name: str, campaign_id: Optional[int]) -> Iterator[None]:
        try:
            yield
        except CampaignError as exc:
            campaign_metrics.record_operation(name, exc.code)
            logger.warning(
                "Campaign operation rejected: %s",
                exc.message,
                extra={
                    "event": f"campaign.{name}_rejected",
                    "campaign_id": campaign_id,
                    "code": exc.code,
                },
            )
            raise
        campaign_metrics.record_operation(name)

    @contextmanager
    def _reading(self, campaign_id: Any) -> Iterator[bool]:
        """Hold the campaign lock while reading; yields whether the campaign exists."""
        lock = self._locks.get(campaign_id)
        if lock is None:
            yield False
            return
        with lock:
            yield self.registry.find(campaign_id) is not None

    @contextmanager
    def _transaction(self, campaign_id: Any) -> Iterator[UnitOfWork]:
        lock = self._locks.get(campaign_id)
        if lock is None:
            raise CampaignNotFoundError(campaign_id)
        with lock, self._unit_of_work(campaign_id) as uow:
            yield uow

    def _unit_of_work(self, campaign_id: int) -> UnitOfWork:
        return UnitOfWork(self.event_log, on_commit=lambda uow: self._persist(campaign_id))

    def _persist(self, campaign_id: int) -> None:
        """Snapshot the committed campaign. Failures are logged, never raised."""
        if self.state_store is None:
            return
        try:
            self.state_store.record(campaign_id, self.registry, self.tracker)
        except (OSError, TypeError, ValueError) as exc:
            campaign_metrics.record_operation("persist", "persist_failed")
            logger.error(
                "Failed to persist campaign state",
                exc_info=exc,
                extra={"event": "campaign.persist_failed", "campaign_id": campaign_id},
            )

    def _is_owner(self, caller: str) -> bool:
        return bool(self.access_control.is_owner(caller))

    def _require_owner(self, caller: str) -> None:
        if not self._is_owner(caller):
            raise UnauthorizedError("Caller is not the owner")

    def _is_verified(self, address: str, now: int) -> bool:
        try:
            return bool(self.verifier.is_verified_at(address, now))
        except Exception as exc:
            raise VerifierUnavailableError(
                f"Identity verifier failed: {exc}", recoverable=True
            ) from exc

    def _pull(self, token: str, payer: str, amount: int) -> None:
        try:
            ok = self.ledger.pull(token, payer, self.escrow_address, amount)
        except Exception as exc:
            raise TransferFailedError(
                f"Ledger pull failed: {exc}", reason=str(exc), recoverable=True
            ) from exc
        if not ok:
            raise TransferFailedError("Ledger rejected pull", reason="rejected", recoverable=True)

    def _push(self, token: str, recipient: str, amount: int) -> None:
        try:
            ok = self.ledger.push(token, recipient, amount)
        except Exception as exc:
            raise TransferFailedError(
                f"Ledger push failed: {exc}", reason=str(exc), recoverable=True
            ) from exc
        if not ok:
            raise TransferFailedError("Ledger rejected push", reason="rejected", recoverable=True)
