"""
Unit tests for CampaignManager.

Coverage targets:
- Owner-only configuration operations and their failure modes
- Sponsorship preconditions, in order, with can_sponsor in lockstep
- Claim semantics including the underfunded-claim policy
- Rollback of state when the ledger rejects a transfer
- Withdrawal timing and early-termination asymmetry
"""

import logging
import threading

import pytest

from sponsorpool.core.campaign_exceptions import (
    AlreadyClaimedError,
    AlreadyParticipatedError,
    CampaignActiveError,
    CampaignEndedError,
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
from sponsorpool.core.campaigns import (
    CampaignEventType,
    CampaignManager,
    CampaignStateStore,
    ClaimPolicy,
    ClaimStatus,
    RewardEngine,
)
from sponsorpool.core.adapters import FixedRandomnessProvider, LedgerError
from sponsorpool.core.constants import SECONDS_PER_DAY
from sponsorpool.core.units import ether


def _event_types(manager, campaign_id):
    return [event.event_type for event in manager.events(campaign_id=campaign_id)]


class TestCreateCampaign:
    def test_create_assigns_sequential_ids_and_pulls_deposit(self, manager, ledger, accounts, make_campaign):
        first = make_campaign(deposit=ether(10))
        second = make_campaign(deposit=ether(5))

        assert (first, second) == (1, 2)
        assert ledger.escrow_balance(accounts.token) == ether(15)
        assert ledger.balance_of(accounts.token, accounts.owner) == ether(985)

        campaign = manager.get_campaign(first)
        assert campaign.available_funds == ether(10)
        assert campaign.reward_token == accounts.token
        assert campaign.creator == accounts.owner
        assert campaign.randomness_seed == 0xC0FFEE
        assert campaign.ended_early is False
        assert _event_types(manager, first) == [CampaignEventType.CREATED]

    def test_non_owner_cannot_create(self, manager, clock, accounts):
        with pytest.raises(UnauthorizedError):
            manager.create_campaign(
                accounts.sponsor, accounts.token, ether(1), clock.now() + 100, ether(1), ether(2)
            )
        assert manager.list_campaigns() == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"token": ""},
            {"token": "0x" + "0" * 40},
            {"deposit": 0},
            {"deposit": -1},
            {"ends_in": 0},
            {"lower": ether(3), "upper": ether(2)},
            {"bonus_threshold": ether(1)},
            {"bonus_threshold": ether(3), "bonus_amount": ether(5)},
            {"bonus_threshold": ether(1), "bonus_amount": ether(3)},
        ],
    )
    def test_invalid_parameters_are_rejected(self, manager, ledger, clock, accounts, overrides):
        params = {
            "token": accounts.token,
            "deposit": ether(10),
            "ends_in": 100,
            "lower": ether(1),
            "upper": ether(3),
            "bonus_threshold": None,
            "bonus_amount": None,
        }
        params.update(overrides)

        with pytest.raises(InvalidConfigurationError):
            manager.create_campaign(
                accounts.owner,
                params["token"],
                params["deposit"],
                clock.now() + params["ends_in"],
                params["lower"],
                params["upper"],
                bonus_threshold=params["bonus_threshold"],
                bonus_amount=params["bonus_amount"],
            )
        assert ledger.escrow_balance(accounts.token) == 0
        assert manager.registry.peek_next_id() == 1

    def test_fixed_reward_campaign_is_allowed(self, manager, make_campaign):
        campaign_id = make_campaign(lower=ether(2), upper=ether(2))
        assert manager.get_campaign(campaign_id).is_fixed_reward

    def test_failed_deposit_pull_rolls_back_creation(self, manager, ledger, accounts, make_campaign):
        ledger.approve(accounts.token, accounts.owner, ledger.escrow_address, 0)

        with pytest.raises(TransferFailedError):
            make_campaign()

        assert manager.find_campaign(1) is None
        assert manager.registry.peek_next_id() == 1
        assert manager.events() == []

        ledger.approve(accounts.token, accounts.owner, ledger.escrow_address, ether(100))
        assert make_campaign() == 1

    def test_max_duration_is_enforced(self, manager, make_campaign):
        manager.max_campaign_duration = SECONDS_PER_DAY
        with pytest.raises(InvalidConfigurationError):
            make_campaign(duration=SECONDS_PER_DAY + 1)
        assert make_campaign(duration=SECONDS_PER_DAY) == 1

    def test_seed_is_masked_to_uint256(self, ledger, verifier, access_control, clock, accounts):
        manager = CampaignManager(
            ledger,
            verifier,
            access_control,
            FixedRandomnessProvider(seed=2**300 + 7),
            clock,
            escrow_address=ledger.escrow_address,
        )
        campaign_id = manager.create_campaign(
            accounts.owner, accounts.token, ether(1), clock.now() + 10, ether(1), ether(2)
        )
        assert manager.get_campaign(campaign_id).randomness_seed == (2**300 + 7) % 2**256


class TestFundCampaign:
    def test_anyone_can_fund(self, manager, ledger, accounts, make_campaign):
        campaign_id = make_campaign(deposit=ether(10))

        balance = manager.fund_campaign(accounts.other, campaign_id, ether(5))

        assert balance == ether(15)
        assert manager.get_campaign(campaign_id).available_funds == ether(15)
        assert ledger.balance_of(accounts.token, accounts.other) == ether(995)
        assert _event_types(manager, campaign_id)[-1] == CampaignEventType.FUNDED

    def test_zero_amount_rejected_before_lookup(self, manager):
        with pytest.raises(InvalidConfigurationError):
            manager.fund_campaign("0x" + "d" * 40, 99, 0)

    def test_unknown_campaign(self, manager, accounts):
        with pytest.raises(CampaignNotFoundError):
            manager.fund_campaign(accounts.other, 99, ether(1))

    def test_cannot_fund_after_expiry(self, manager, clock, accounts, make_campaign):
        campaign_id = make_campaign(duration=100)
        clock.advance(100)
        with pytest.raises(CampaignEndedError):
            manager.fund_campaign(accounts.other, campaign_id, ether(1))

    def test_early_ended_campaign_can_still_be_funded(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.end_campaign_early(accounts.owner, campaign_id)
        assert manager.fund_campaign(accounts.other, campaign_id, ether(1)) == ether(11)

    def test_failed_pull_restores_escrow(self, manager, ledger, accounts, make_campaign):
        campaign_id = make_campaign()
        ledger.approve(accounts.token, accounts.other, ledger.escrow_address, 0)

        with pytest.raises(TransferFailedError) as exc_info:
            manager.fund_campaign(accounts.other, campaign_id, ether(1))

        assert exc_info.value.recoverable is True
        assert manager.get_campaign(campaign_id).available_funds == ether(10)
        assert CampaignEventType.FUNDED not in _event_types(manager, campaign_id)


class TestSponsorship:
    def test_sponsor_records_edge(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()

        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

        assert manager.claim_status(campaign_id, accounts.recipient) is ClaimStatus.CAN_CLAIM
        assert manager.sponsor_of(campaign_id, accounts.recipient) == accounts.sponsor
        assert manager.recipient_of(campaign_id, accounts.sponsor) == accounts.recipient
        assert manager.claim_status(campaign_id, accounts.sponsor) is ClaimStatus.NOT_SPONSORED
        assert _event_types(manager, campaign_id)[-1] == CampaignEventType.SPONSORED

    def test_addresses_are_case_insensitive(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor.upper().replace("0X", "0x"), campaign_id, accounts.recipient.upper())
        assert manager.sponsor_of(campaign_id, accounts.recipient) == accounts.sponsor

    @pytest.mark.parametrize(
        "case, expected",
        [
            ("self", CannotSponsorSelfError),
            ("null_recipient", InvalidConfigurationError),
            ("unknown_campaign", CampaignNotFoundError),
            ("unverified_recipient", NotVerifiedError),
            ("unverified_sponsor", NotVerifiedError),
            ("sponsor_already_sponsored", AlreadyParticipatedError),
            ("recipient_already_sponsored", AlreadyParticipatedError),
        ],
    )
    def test_can_sponsor_matches_sponsor(self, manager, accounts, make_campaign, case, expected):
        campaign_id = make_campaign()
        sponsor, recipient = accounts.sponsor, accounts.recipient

        if case == "self":
            recipient = sponsor
        elif case == "null_recipient":
            recipient = ""
        elif case == "unknown_campaign":
            campaign_id = 42
        elif case == "unverified_recipient":
            recipient = accounts.unverified
        elif case == "unverified_sponsor":
            sponsor = accounts.unverified
        elif case == "sponsor_already_sponsored":
            manager.sponsor(sponsor, campaign_id, accounts.other)
        elif case == "recipient_already_sponsored":
            manager.sponsor(accounts.other, campaign_id, recipient)

        assert manager.can_sponsor(campaign_id, sponsor, recipient) is False
        with pytest.raises(expected):
            manager.sponsor(sponsor, campaign_id, recipient)

    @pytest.mark.parametrize(
        "campaign_id, sponsor, recipient",
        [
            (1, 123, "0x" + "c" * 40),
            (1, "0x" + "b" * 40, ["0x" + "c" * 40]),
            ("1", "0x" + "b" * 40, "0x" + "c" * 40),
            (None, "0x" + "b" * 40, "0x" + "c" * 40),
        ],
    )
    def test_can_sponsor_is_false_for_malformed_input(
        self, manager, make_campaign, campaign_id, sponsor, recipient
    ):
        make_campaign()
        assert manager.can_sponsor(campaign_id, sponsor, recipient) is False

    def test_can_sponsor_true_when_sponsor_would_succeed(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        assert manager.can_sponsor(campaign_id, accounts.sponsor, accounts.recipient) is True
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        assert manager.can_sponsor(campaign_id, accounts.sponsor, accounts.recipient) is False

    def test_precondition_order_self_before_campaign_lookup(self, manager, accounts):
        with pytest.raises(CannotSponsorSelfError):
            manager.sponsor(accounts.sponsor, 42, accounts.sponsor)

    def test_recipient_verification_checked_before_sponsor(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        with pytest.raises(NotVerifiedError) as exc_info:
            manager.sponsor(accounts.unverified, campaign_id, "0x" + "f" * 40)
        assert exc_info.value.details["role"] == "recipient"

    def test_expired_verification_rejected(self, manager, verifier, clock, accounts, make_campaign):
        campaign_id = make_campaign()
        verifier.verify(accounts.recipient, clock.now() + 10)
        clock.advance(11)
        with pytest.raises(NotVerifiedError):
            manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

    def test_verifier_failure_surfaces_as_unavailable(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()

        class BrokenVerifier:
            def is_verified_at(self, address, timestamp):
                raise ConnectionError("registry offline")

        manager.verifier = BrokenVerifier()
        assert manager.can_sponsor(campaign_id, accounts.sponsor, accounts.recipient) is False
        with pytest.raises(VerifierUnavailableError):
            manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

    def test_cannot_sponsor_after_expiry(self, manager, clock, accounts, make_campaign):
        campaign_id = make_campaign(duration=50)
        clock.advance(50)
        with pytest.raises(CampaignEndedError):
            manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

    def test_recipient_may_sponsor_someone_else(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        manager.sponsor(accounts.recipient, campaign_id, accounts.other)
        assert manager.sponsor_of(campaign_id, accounts.other) == accounts.recipient

    def test_participation_is_scoped_per_campaign(self, manager, accounts, make_campaign):
        first = make_campaign()
        second = make_campaign()
        manager.sponsor(accounts.sponsor, first, accounts.recipient)
        manager.sponsor(accounts.sponsor, second, accounts.recipient)
        assert manager.claim_status(second, accounts.recipient) is ClaimStatus.CAN_CLAIM


class TestClaim:
    def test_referral_chain_scenario(self, manager, ledger, accounts, make_campaign):
        campaign_id = make_campaign(
            deposit=ether(50),
            lower=ether(1),
            upper=ether(10),
            bonus_threshold=ether(9),
            bonus_amount=ether(20),
        )
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        manager.sponsor(accounts.recipient, campaign_id, accounts.other)
        before = ledger.balance_of(accounts.token, accounts.recipient)

        reward = manager.claim(accounts.recipient, campaign_id)

        assert ether(1) <= reward < ether(9) or reward == ether(20)
        assert manager.get_campaign(campaign_id).available_funds == ether(50) - reward
        assert ledger.balance_of(accounts.token, accounts.recipient) == before + reward
        assert manager.claim_status(campaign_id, accounts.recipient) is ClaimStatus.ALREADY_CLAIMED
        assert manager.claim_status(campaign_id, accounts.other) is ClaimStatus.CAN_CLAIM

        claimed = manager.events(campaign_id=campaign_id, event_type=CampaignEventType.REWARD_CLAIMED)
        assert len(claimed) == 1
        assert claimed[0].payload["amount"] == reward
        assert claimed[0].payload["sponsor"] == accounts.sponsor

    def test_reward_is_deterministic_for_inputs(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        expected = RewardEngine().compute_reward(
            manager.get_campaign(campaign_id), accounts.sponsor, accounts.recipient
        )

        assert manager.preview_reward(campaign_id, accounts.recipient) == expected
        assert manager.claim(accounts.recipient, campaign_id) == expected
        assert manager.preview_reward(campaign_id, accounts.recipient) is None

    def test_fixed_reward_pays_lower_bound(self, manager, accounts, make_campaign):
        campaign_id = make_campaign(lower=ether(2), upper=ether(2))
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        assert manager.claim(accounts.recipient, campaign_id) == ether(2)

    def test_bonus_at_lower_bound_always_pays_bonus(self, manager, accounts, make_campaign):
        campaign_id = make_campaign(
            deposit=ether(100), lower=ether(1), upper=ether(3),
            bonus_threshold=ether(1), bonus_amount=ether(7),
        )
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        assert manager.claim(accounts.recipient, campaign_id) == ether(7)

    def test_never_sponsored_cannot_claim(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        with pytest.raises(NotSponsoredError) as exc_info:
            manager.claim(accounts.sponsor, campaign_id)
        assert not isinstance(exc_info.value, AlreadyClaimedError)

    def test_double_claim_rejected(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        manager.claim(accounts.recipient, campaign_id)

        with pytest.raises(AlreadyClaimedError):
            manager.claim(accounts.recipient, campaign_id)
        # Callers treating both cases alike keep working
        with pytest.raises(NotSponsoredError):
            manager.claim(accounts.recipient, campaign_id)

    def test_cannot_claim_after_expiry(self, manager, clock, accounts, make_campaign):
        campaign_id = make_campaign(duration=100)
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        clock.advance(100)
        with pytest.raises(CampaignEndedError):
            manager.claim(accounts.recipient, campaign_id)
        assert manager.claim_status(campaign_id, accounts.recipient) is ClaimStatus.CAN_CLAIM

    def test_unknown_campaign(self, manager, accounts):
        with pytest.raises(CampaignNotFoundError):
            manager.claim(accounts.recipient, 7)

    def test_underfunded_claim_burns_eligibility_by_default(self, manager, ledger, accounts, make_campaign):
        campaign_id = make_campaign(
            deposit=ether(1),
            lower=ether(2),
            upper=ether(3),
            bonus_threshold=ether(2),
            bonus_amount=ether(5),
        )
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

        with pytest.raises(InsufficientFundsError) as exc_info:
            manager.claim(accounts.recipient, campaign_id)

        error = exc_info.value
        assert error.available == ether(1)
        assert error.required == ether(5)
        assert error.recoverable is False
        assert manager.claim_status(campaign_id, accounts.recipient) is ClaimStatus.ALREADY_CLAIMED
        assert manager.get_campaign(campaign_id).available_funds == ether(1)
        assert ledger.escrow_balance(accounts.token) == ether(1)

        manager.fund_campaign(accounts.owner, campaign_id, ether(10))
        with pytest.raises(AlreadyClaimedError):
            manager.claim(accounts.recipient, campaign_id)

    def test_underfunded_claim_can_be_retried_when_not_burning(self, manager, accounts, make_campaign):
        manager.claim_policy = ClaimPolicy(burn_on_insufficient_funds=False)
        campaign_id = make_campaign(
            deposit=ether(1),
            lower=ether(2),
            upper=ether(3),
            bonus_threshold=ether(2),
            bonus_amount=ether(5),
        )
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

        with pytest.raises(InsufficientFundsError) as exc_info:
            manager.claim(accounts.recipient, campaign_id)

        assert exc_info.value.recoverable is True
        assert manager.claim_status(campaign_id, accounts.recipient) is ClaimStatus.CAN_CLAIM

        manager.fund_campaign(accounts.owner, campaign_id, ether(10))
        assert manager.claim(accounts.recipient, campaign_id) == ether(5)
        assert manager.get_campaign(campaign_id).available_funds == ether(6)

    def test_failed_push_rolls_back_claim(self, manager, ledger, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        ledger.pause(accounts.token)

        with pytest.raises(TransferFailedError):
            manager.claim(accounts.recipient, campaign_id)

        assert manager.claim_status(campaign_id, accounts.recipient) is ClaimStatus.CAN_CLAIM
        assert manager.get_campaign(campaign_id).available_funds == ether(10)
        assert CampaignEventType.REWARD_CLAIMED not in _event_types(manager, campaign_id)

        ledger.unpause(accounts.token)
        reward = manager.claim(accounts.recipient, campaign_id)
        assert manager.get_campaign(campaign_id).available_funds == ether(10) - reward

    def test_ledger_returning_false_is_a_transfer_failure(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        manager.ledger.push = lambda token, to_address, amount: False

        with pytest.raises(TransferFailedError) as exc_info:
            manager.claim(accounts.recipient, campaign_id)
        assert exc_info.value.reason == "rejected"
        assert manager.claim_status(campaign_id, accounts.recipient) is ClaimStatus.CAN_CLAIM


class TestLifecycle:
    def test_withdraw_requires_strictly_past_end(self, manager, ledger, clock, accounts, make_campaign):
        campaign_id = make_campaign(deposit=ether(10), duration=1000)
        ends_at = manager.get_campaign(campaign_id).ends_at

        clock.set(ends_at)
        with pytest.raises(CampaignActiveError):
            manager.withdraw_unclaimed_funds(accounts.owner, campaign_id)

        clock.set(ends_at + 1)
        assert manager.withdraw_unclaimed_funds(accounts.owner, campaign_id) == ether(10)
        assert manager.get_campaign(campaign_id).available_funds == 0
        assert ledger.balance_of(accounts.token, accounts.owner) == ether(1000)
        assert ledger.escrow_balance(accounts.token) == 0

    def test_second_withdraw_returns_zero_without_transfer(self, manager, ledger, clock, accounts, make_campaign):
        campaign_id = make_campaign(duration=10)
        clock.advance(11)
        manager.withdraw_unclaimed_funds(accounts.owner, campaign_id)
        transfers = len(ledger.events)

        assert manager.withdraw_unclaimed_funds(accounts.owner, campaign_id) == 0
        assert len(ledger.events) == transfers

    def test_withdraw_is_owner_only(self, manager, clock, accounts, make_campaign):
        campaign_id = make_campaign(duration=10)
        clock.advance(11)
        with pytest.raises(UnauthorizedError):
            manager.withdraw_unclaimed_funds(accounts.other, campaign_id)

    def test_early_end_blocks_sponsorship_but_not_claims(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

        manager.end_campaign_early(accounts.owner, campaign_id)

        assert manager.get_campaign(campaign_id).ended_early is True
        assert manager.can_sponsor(campaign_id, accounts.other, "0x" + "f" * 40) is False
        with pytest.raises(CampaignEndedError):
            manager.sponsor(accounts.recipient, campaign_id, accounts.other)
        assert manager.claim(accounts.recipient, campaign_id) > 0

    def test_early_end_does_not_allow_withdrawal(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.end_campaign_early(accounts.owner, campaign_id)
        with pytest.raises(CampaignActiveError):
            manager.withdraw_unclaimed_funds(accounts.owner, campaign_id)

    def test_end_early_twice_rejected(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.end_campaign_early(accounts.owner, campaign_id)
        with pytest.raises(CampaignEndedError):
            manager.end_campaign_early(accounts.owner, campaign_id)

    def test_end_early_after_expiry_rejected(self, manager, clock, accounts, make_campaign):
        campaign_id = make_campaign(duration=10)
        clock.advance(10)
        with pytest.raises(CampaignEndedError):
            manager.end_campaign_early(accounts.owner, campaign_id)

    def test_end_early_is_owner_only(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        with pytest.raises(UnauthorizedError):
            manager.end_campaign_early(accounts.sponsor, campaign_id)
        assert manager.get_campaign(campaign_id).ended_early is False


class TestQueries:
    def test_find_campaign_returns_detached_copy(self, manager, make_campaign):
        campaign_id = make_campaign()
        snapshot = manager.find_campaign(campaign_id)
        snapshot.available_funds = 0
        assert manager.get_campaign(campaign_id).available_funds == ether(10)

    @pytest.mark.parametrize("campaign_id", [0, 99, "1", None, True])
    def test_find_unknown_campaign(self, manager, make_campaign, campaign_id):
        make_campaign()
        assert manager.find_campaign(campaign_id) is None

    def test_get_unknown_campaign_raises(self, manager):
        with pytest.raises(CampaignNotFoundError) as exc_info:
            manager.get_campaign(5)
        assert exc_info.value.campaign_id == 5

    def test_participation_stats(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)
        manager.sponsor(accounts.recipient, campaign_id, accounts.other)
        manager.claim(accounts.recipient, campaign_id)

        assert manager.participation_stats(campaign_id) == {
            "sponsorships": 2,
            "claimable": 1,
            "claimed": 1,
        }

    def test_rejected_operations_emit_no_events(self, manager, accounts, make_campaign):
        campaign_id = make_campaign()
        with pytest.raises(CannotSponsorSelfError):
            manager.sponsor(accounts.sponsor, campaign_id, accounts.sponsor)
        assert _event_types(manager, campaign_id) == [CampaignEventType.CREATED]


class TestPersistence:
    def test_state_survives_restart(self, ledger, verifier, access_control, clock, accounts, tmp_path):
        store = CampaignStateStore(str(tmp_path / "state.json"))

        def build():
            return CampaignManager(
                ledger,
                verifier,
                access_control,
                FixedRandomnessProvider(seed=1),
                clock,
                state_store=store,
                escrow_address=ledger.escrow_address,
            )

        manager = build()
        campaign_id = manager.create_campaign(
            accounts.owner, accounts.token, ether(10), clock.now() + 100, ether(1), ether(3)
        )
        manager.sponsor(accounts.sponsor, campaign_id, accounts.recipient)

        restored = build()
        assert restored.get_campaign(campaign_id) == manager.get_campaign(campaign_id)
        assert restored.claim_status(campaign_id, accounts.recipient) is ClaimStatus.CAN_CLAIM
        assert restored.registry.peek_next_id() == campaign_id + 1
        assert restored.claim(accounts.recipient, campaign_id) > 0

    def test_failed_snapshot_does_not_fail_committed_operation(
        self, ledger, verifier, access_control, clock, accounts, tmp_path, caplog
    ):
        class FailingStateStore(CampaignStateStore):
            def record(self, campaign_id, registry, tracker):
                raise OSError("No space left on device")

        manager = CampaignManager(
            ledger,
            verifier,
            access_control,
            FixedRandomnessProvider(seed=1),
            clock,
            state_store=FailingStateStore(str(tmp_path / "state.json")),
            escrow_address=ledger.escrow_address,
        )
        campaign_id = manager.create_campaign(
            accounts.owner, accounts.token, ether(10), clock.now() + 100, ether(1), ether(3)
        )

        with caplog.at_level(logging.ERROR, logger="sponsorpool.core.campaigns.manager"):
            balance = manager.fund_campaign(accounts.other, campaign_id, ether(5))

        assert balance == ether(15)
        assert ledger.escrow_balance(accounts.token) == ether(15)
        assert ledger.balance_of(accounts.token, accounts.other) == ether(995)
        assert _event_types(manager, campaign_id)[-1] == CampaignEventType.FUNDED
        assert any(
            getattr(record, "event", None) == "campaign.persist_failed" for record in caplog.records
        )

    def test_snapshot_excludes_other_campaigns_in_flight_changes(
        self, ledger, verifier, access_control, clock, accounts, tmp_path, monkeypatch
    ):
        store = CampaignStateStore(str(tmp_path / "state.json"))

        def build():
            return CampaignManager(
                ledger,
                verifier,
                access_control,
                FixedRandomnessProvider(seed=1),
                clock,
                state_store=store,
                escrow_address=ledger.escrow_address,
            )

        manager = build()
        first = manager.create_campaign(
            accounts.owner, accounts.token, ether(10), clock.now() + 100, ether(1), ether(3)
        )
        second = manager.create_campaign(
            accounts.owner, accounts.token, ether(10), clock.now() + 100, ether(1), ether(3)
        )
        manager.sponsor(accounts.sponsor, first, accounts.recipient)

        entered, release = threading.Event(), threading.Event()

        def stalled_push(token, to_address, amount):
            entered.set()
            release.wait(5)
            raise LedgerError("escrow unavailable")

        monkeypatch.setattr(ledger, "push", stalled_push)
        failures = []

        def claim_first():
            try:
                manager.claim(accounts.recipient, first)
            except TransferFailedError as exc:
                failures.append(exc)

        worker = threading.Thread(target=claim_first)
        worker.start()
        assert entered.wait(5)
        # Commits on the second campaign while the first one's claim is mid-flight
        manager.sponsor(accounts.other, second, accounts.sponsor)
        release.set()
        worker.join(5)

        assert len(failures) == 1
        restored = build()
        assert restored.claim_status(first, accounts.recipient) is ClaimStatus.CAN_CLAIM
        assert restored.get_campaign(first).available_funds == ether(10)
        assert restored.claim_status(second, accounts.sponsor) is ClaimStatus.CAN_CLAIM
        assert restored.get_campaign(first) == manager.get_campaign(first)
