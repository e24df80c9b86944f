"""
Main CLI entry point for SponsorPool.

Campaign commands talk to a running API node over HTTP; ``serve`` starts
one backed by the reference in-memory adapters.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Sequence

import click
import requests

from sponsorpool.cli.campaign_commands import (
    CAMPAIGN_COMMANDS,
    CampaignClient,
    _handle_cli_error,
    console,
)
from sponsorpool.core.constants import UINT256_MAX
from sponsorpool.core.units import to_base_units

logger = logging.getLogger(__name__)

DEFAULT_NODE_URL = "http://127.0.0.1:8650"
DEFAULT_TIMEOUT = 30.0


@click.group()
@click.option(
    "--node-url",
    default=DEFAULT_NODE_URL,
    envvar="SPONSORPOOL_NODE_URL",
    help="SponsorPool API URL",
    show_default=True,
)
@click.option(
    "--timeout",
    default=DEFAULT_TIMEOUT,
    type=float,
    help="Request timeout in seconds",
    show_default=True,
)
@click.option(
    "--api-key",
    envvar="SPONSORPOOL_API_KEY",
    help="API key identifying the acting address",
)
@click.option(
    "--caller",
    envvar="SPONSORPOOL_CALLER",
    help="Expected acting address; the node rejects a mismatch with the API key",
)
@click.option("--json-output", "--json", "json_output", is_flag=True, help="Output raw JSON")
@click.pass_context
def cli(
    ctx: click.Context,
    node_url: str,
    timeout: float,
    api_key: Optional[str],
    caller: Optional[str],
    json_output: bool,
):
    """
    SponsorPool CLI - referral campaigns with randomized rewards
    """
    ctx.ensure_object(dict)
    ctx.obj["client"] = CampaignClient(node_url, timeout, caller=caller, api_key=api_key)
    ctx.obj["json_output"] = json_output


for _command in CAMPAIGN_COMMANDS:
    cli.add_command(_command)


def build_in_memory_manager(
    config,
    token: str,
    seed_accounts: Sequence[str] = (),
    seed_balance: int = 0,
    persist: bool = True,
):
    """Campaign manager over the reference adapters, with optional demo accounts."""
    from sponsorpool.core.adapters import (
        InMemoryIdentityVerifier,
        InMemoryTokenLedger,
        OwnerAccessControl,
        SecureRandomnessProvider,
        SystemClock,
    )
    from sponsorpool.core.campaigns import CampaignManager, CampaignStateStore, ClaimPolicy

    ledger = InMemoryTokenLedger()
    verifier = InMemoryIdentityVerifier()
    for account in [config.OWNER_ADDRESS, *seed_accounts]:
        if seed_balance:
            ledger.mint(token, account, seed_balance)
        ledger.approve(token, account, ledger.escrow_address, UINT256_MAX)
        verifier.verify(account, UINT256_MAX)

    state_store = None
    if persist:
        state_store = CampaignStateStore(os.path.join(config.DATA_DIR, config.STATE_FILE))

    return CampaignManager(
        ledger=ledger,
        verifier=verifier,
        access_control=OwnerAccessControl(config.OWNER_ADDRESS),
        randomness=SecureRandomnessProvider(),
        clock=SystemClock(),
        claim_policy=ClaimPolicy.from_config(config),
        state_store=state_store,
        escrow_address=ledger.escrow_address,
        max_campaign_duration=config.MAX_CAMPAIGN_DURATION,
    )


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (defaults to SPONSORPOOL_API_HOST)")
@click.option("--port", default=None, type=int, help="Port (defaults to SPONSORPOOL_API_PORT)")
@click.option("--token", default="0x" + "1" * 40, show_default=True, help="Demo reward token")
@click.option(
    "--seed-account",
    "seed_accounts",
    multiple=True,
    help="Demo account to verify, fund and approve (repeatable)",
)
@click.option("--seed-balance", default="1000000", show_default=True, help="Demo balance in token units")
@click.option("--no-persist", is_flag=True, help="Do not snapshot state to the data directory")
def serve(
    host: Optional[str],
    port: Optional[int],
    token: str,
    seed_accounts: Sequence[str],
    seed_balance: str,
    no_persist: bool,
):
    """Run the campaign API over the reference in-memory adapters."""
    from sponsorpool.core.api_auth import APIAuthManager
    from sponsorpool.core.api_blueprints import create_app
    from sponsorpool.core.config import Config
    from sponsorpool.core.logging_config import setup_logging

    setup_logging(name="sponsorpool", log_file=Config.LOG_FILE or None, level=Config.LOG_LEVEL)
    if not Config.ALLOW_IN_MEMORY_ADAPTERS:
        raise click.ClickException("In-memory adapters are disabled on this network")

    manager = build_in_memory_manager(
        Config,
        token=token,
        seed_accounts=seed_accounts,
        seed_balance=to_base_units(seed_balance),
        persist=not no_persist,
    )
    api_auth = APIAuthManager.from_config(Config)
    if not len(api_auth):
        # No SPONSORPOOL_API_KEYS: issue session keys for the demo accounts
        for account in [Config.OWNER_ADDRESS, *seed_accounts]:
            key = api_auth.issue_key(account)
            console.print(f"API key for {account}: [bold]{key}[/]")
    app = create_app(manager, Config, api_auth=api_auth)
    bind_host = host or Config.API_HOST
    bind_port = port or Config.API_PORT
    console.print(f"[bold green]SponsorPool API listening on http://{bind_host}:{bind_port}[/]")
    app.run(host=bind_host, port=bind_port)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except (click.ClickException, requests.RequestException, ValueError, KeyError, TypeError) as exc:
        _handle_cli_error(exc)


if __name__ == "__main__":
    main()
