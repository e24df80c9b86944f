"""
Shared fixtures for campaign tests.

Every fixture builds fresh in-memory collaborators so tests never share
ledger balances, verification records or campaign state.
"""

from types import SimpleNamespace

import pytest

from sponsorpool.core.adapters import (
    FixedRandomnessProvider,
    InMemoryIdentityVerifier,
    InMemoryTokenLedger,
    ManualClock,
    OwnerAccessControl,
)
from sponsorpool.core.api_auth import APIAuthManager
from sponsorpool.core.campaigns import CampaignManager, ClaimPolicy
from sponsorpool.core.constants import SECONDS_PER_DAY, UINT256_MAX
from sponsorpool.core.units import ether

OWNER = "0x" + "a" * 40
SPONSOR = "0x" + "b" * 40
RECIPIENT = "0x" + "c" * 40
OTHER = "0x" + "d" * 40
UNVERIFIED = "0x" + "e" * 40
TOKEN = "0x" + "1" * 40

START_TIME = 1_700_000_000
ACCOUNTS = (OWNER, SPONSOR, RECIPIENT, OTHER, UNVERIFIED)


@pytest.fixture
def accounts():
    """Well-known addresses: owner, sponsor, recipient, other, unverified, token."""
    return SimpleNamespace(
        owner=OWNER,
        sponsor=SPONSOR,
        recipient=RECIPIENT,
        other=OTHER,
        unverified=UNVERIFIED,
        token=TOKEN,
        start_time=START_TIME,
    )


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def ledger():
    ledger = InMemoryTokenLedger()
    for account in ACCOUNTS:
        ledger.mint(TOKEN, account, ether(1000))
        ledger.approve(TOKEN, account, ledger.escrow_address, UINT256_MAX)
    return ledger


@pytest.fixture
def verifier():
    verifier = InMemoryIdentityVerifier()
    for account in (OWNER, SPONSOR, RECIPIENT, OTHER):
        verifier.verify(account, START_TIME + 365 * SECONDS_PER_DAY)
    return verifier


@pytest.fixture
def access_control():
    return OwnerAccessControl(OWNER)


@pytest.fixture
def api_auth():
    """One API key per well-known account, spelled ``key-<address>``."""
    return APIAuthManager({f"key-{account}": account for account in ACCOUNTS})


@pytest.fixture
def claim_policy():
    return ClaimPolicy()


@pytest.fixture
def manager(ledger, verifier, access_control, clock, claim_policy):
    return CampaignManager(
        ledger=ledger,
        verifier=verifier,
        access_control=access_control,
        randomness=FixedRandomnessProvider(seed=0xC0FFEE),
        clock=clock,
        claim_policy=claim_policy,
        escrow_address=ledger.escrow_address,
    )


@pytest.fixture
def make_campaign(manager, clock):
    """Factory creating a campaign owned by OWNER; returns its id."""

    def _make(
        deposit=ether(10),
        duration=SECONDS_PER_DAY,
        lower=ether(1),
        upper=ether(3),
        bonus_threshold=None,
        bonus_amount=None,
    ):
        return manager.create_campaign(
            OWNER,
            TOKEN,
            deposit,
            clock.now() + duration,
            lower,
            upper,
            bonus_threshold=bonus_threshold,
            bonus_amount=bonus_amount,
        )

    return _make
