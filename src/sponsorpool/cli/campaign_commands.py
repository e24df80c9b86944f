#!/usr/bin/env python3
"""
SponsorPool Campaign CLI Commands

Provides CLI equivalents for the campaign API endpoints:
- Campaign creation, funding, early termination and withdrawal
- Sponsorship and sponsorship dry-runs
- Reward claims
- Campaign, participant and event queries

Amounts are entered in token units (e.g. ``1.5``) and sent as base units.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

import click
import requests
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sponsorpool.core.units import format_token, to_base_units

logger = logging.getLogger(__name__)
console = Console()

CALLER_HEADER = "X-Caller-Address"
API_KEY_HEADER = "X-API-Key"


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _amount(value: str | None) -> str | None:
    """Token-unit string to a base-unit decimal string."""
    if value is None:
        return None
    return str(to_base_units(value))


def _tokens(value: Any) -> str:
    if value is None:
        return "-"
    return format_token(int(value))


def _timestamp(value: Any) -> str:
    return datetime.fromtimestamp(int(value), tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


class CampaignClient:
    """Client for campaign API operations."""

    def __init__(
        self,
        node_url: str,
        timeout: float = 30.0,
        caller: str | None = None,
        api_key: str | None = None,
    ):
        self.node_url = node_url.rstrip("/")
        self.timeout = timeout
        self.caller = caller
        self.api_key = api_key

    def _request(self, method: str, endpoint: str, **kwargs) -> dict[str, Any]:
        """Make HTTP request to campaign endpoint."""
        url = f"{self.node_url}/{endpoint.lstrip('/')}"
        logger.debug("Campaign request: %s %s", method, url)
        headers = kwargs.pop("headers", {})
        if self.api_key:
            headers.setdefault(API_KEY_HEADER, self.api_key)
        if self.caller:
            headers.setdefault(CALLER_HEADER, self.caller)
        try:
            response = requests.request(
                method, url, timeout=self.timeout, headers=headers, **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.error("Campaign API error: %s", e)
            raise click.ClickException(f"Campaign API error: {e}")

        logger.debug("Campaign response: status=%d", response.status_code)
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.status_code >= 400:
            if isinstance(data, dict) and data.get("error"):
                raise click.ClickException(f"{data['error']} ({data.get('code', 'error')})")
            raise click.ClickException(f"Campaign API error: HTTP {response.status_code}")
        if not isinstance(data, dict):
            raise click.ClickException("Campaign API returned a non-JSON response")
        return data

    def _require_caller(self) -> None:
        if not self.api_key:
            raise click.ClickException("--api-key is required for this command")

    def create_campaign(self, payload: dict[str, Any]) -> dict[str, Any]:
        self._require_caller()
        return self._request("POST", "/campaigns", json=payload)

    def list_campaigns(self) -> dict[str, Any]:
        return self._request("GET", "/campaigns")

    def get_campaign(self, campaign_id: int) -> dict[str, Any]:
        return self._request("GET", f"/campaigns/{campaign_id}")

    def fund(self, campaign_id: int, amount: str) -> dict[str, Any]:
        self._require_caller()
        return self._request("POST", f"/campaigns/{campaign_id}/fund", json={"amount": amount})

    def end_early(self, campaign_id: int) -> dict[str, Any]:
        self._require_caller()
        return self._request("POST", f"/campaigns/{campaign_id}/end")

    def withdraw(self, campaign_id: int) -> dict[str, Any]:
        self._require_caller()
        return self._request("POST", f"/campaigns/{campaign_id}/withdraw")

    def sponsor(self, campaign_id: int, recipient: str) -> dict[str, Any]:
        self._require_caller()
        return self._request(
            "POST", f"/campaigns/{campaign_id}/sponsor", json={"recipient": recipient}
        )

    def can_sponsor(self, campaign_id: int, sponsor: str, recipient: str) -> dict[str, Any]:
        params = {"sponsor": sponsor, "recipient": recipient}
        return self._request("GET", f"/campaigns/{campaign_id}/can-sponsor", params=params)

    def claim(self, campaign_id: int) -> dict[str, Any]:
        self._require_caller()
        return self._request("POST", f"/campaigns/{campaign_id}/claim")

    def participant(self, campaign_id: int, address: str) -> dict[str, Any]:
        return self._request("GET", f"/campaigns/{campaign_id}/participants/{address}")

    def events(
        self, campaign_id: int, event_type: str | None = None, limit: int | None = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if event_type:
            params["type"] = event_type
        if limit is not None:
            params["limit"] = limit
        return self._request("GET", f"/campaigns/{campaign_id}/events", params=params)


def _client(ctx: click.Context) -> CampaignClient:
    return ctx.obj["client"]


def _emit_json(ctx: click.Context, data: dict[str, Any]) -> bool:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(data, indent=2))
        return True
    return False


def _campaign_table(campaign: dict[str, Any]) -> Table:
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Campaign", str(campaign["campaign_id"]))
    table.add_row("[bold cyan]Token", campaign["reward_token"])
    table.add_row("[bold green]Escrow", _tokens(campaign["available_funds"]))
    table.add_row(
        "[bold cyan]Reward Range",
        f"{_tokens(campaign['lower_bound'])} - {_tokens(campaign['upper_bound'])}",
    )
    if campaign.get("bonus_amount") is not None:
        table.add_row(
            "[bold magenta]Bonus",
            f"{_tokens(campaign['bonus_amount'])} at >= {_tokens(campaign['bonus_threshold'])}",
        )
    table.add_row("[bold yellow]Ends At", _timestamp(campaign["ends_at"]))
    table.add_row("[bold yellow]Ended Early", "yes" if campaign.get("ended_early") else "no")
    return table


@click.command("create")
@click.option("--token", required=True, help="Reward token address")
@click.option("--deposit", required=True, help="Initial deposit in token units")
@click.option("--ends-at", required=True, type=int, help="Expiry as a unix timestamp")
@click.option("--lower", required=True, help="Lower reward bound in token units")
@click.option("--upper", required=True, help="Upper reward bound in token units (exclusive)")
@click.option("--bonus-threshold", default=None, help="Bonus threshold in token units")
@click.option("--bonus-amount", default=None, help="Bonus reward in token units")
@click.pass_context
def create_campaign(
    ctx: click.Context,
    token: str,
    deposit: str,
    ends_at: int,
    lower: str,
    upper: str,
    bonus_threshold: str | None,
    bonus_amount: str | None,
):
    """
    Create and fund a new campaign (owner only).

    Example:
        sponsorpool --api-key $OWNER_KEY create --token 0xTOKEN --deposit 10 \\
            --ends-at 1767225600 --lower 1 --upper 3
    """
    try:
        payload = {
            "token": token,
            "initial_deposit": _amount(deposit),
            "ends_at": ends_at,
            "lower_bound": _amount(lower),
            "upper_bound": _amount(upper),
            "bonus_threshold": _amount(bonus_threshold),
            "bonus_amount": _amount(bonus_amount),
        }
        data = _client(ctx).create_campaign(payload)
        if _emit_json(ctx, data):
            return
        console.print(
            Panel(
                _campaign_table(data["campaign"]),
                title=f"[bold green]Campaign {data['campaign_id']} Created",
                border_style="green",
            )
        )
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("fund")
@click.argument("campaign_id", type=int)
@click.argument("amount")
@click.pass_context
def fund_campaign(ctx: click.Context, campaign_id: int, amount: str):
    """Top up a campaign's escrow with AMOUNT token units."""
    try:
        data = _client(ctx).fund(campaign_id, _amount(amount))
        if _emit_json(ctx, data):
            return
        console.print(
            f"[bold green]Funded campaign {campaign_id}:[/] +{_tokens(data['funded'])} "
            f"(escrow {_tokens(data['available_funds'])})"
        )
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("end")
@click.argument("campaign_id", type=int)
@click.pass_context
def end_campaign(ctx: click.Context, campaign_id: int):
    """End a campaign early (owner only). Sponsored recipients may still claim."""
    try:
        data = _client(ctx).end_early(campaign_id)
        if _emit_json(ctx, data):
            return
        console.print(f"[bold yellow]Campaign {campaign_id} ended early[/]")
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("withdraw")
@click.argument("campaign_id", type=int)
@click.pass_context
def withdraw_funds(ctx: click.Context, campaign_id: int):
    """Withdraw unclaimed funds of an expired campaign (owner only)."""
    try:
        data = _client(ctx).withdraw(campaign_id)
        if _emit_json(ctx, data):
            return
        console.print(
            f"[bold green]Withdrew {_tokens(data['withdrawn'])} from campaign {campaign_id}[/]"
        )
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("sponsor")
@click.argument("campaign_id", type=int)
@click.argument("recipient")
@click.pass_context
def sponsor_recipient(ctx: click.Context, campaign_id: int, recipient: str):
    """Sponsor RECIPIENT into a campaign as the caller."""
    try:
        data = _client(ctx).sponsor(campaign_id, recipient)
        if _emit_json(ctx, data):
            return
        console.print(
            f"[bold green]Sponsored[/] {data['recipient']} in campaign {campaign_id}"
        )
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("can-sponsor")
@click.argument("campaign_id", type=int)
@click.argument("sponsor")
@click.argument("recipient")
@click.pass_context
def can_sponsor(ctx: click.Context, campaign_id: int, sponsor: str, recipient: str):
    """Check whether SPONSOR could sponsor RECIPIENT right now."""
    try:
        data = _client(ctx).can_sponsor(campaign_id, sponsor, recipient)
        if _emit_json(ctx, data):
            return
        if data["can_sponsor"]:
            console.print("[bold green]Sponsorship allowed[/]")
        else:
            console.print("[bold red]Sponsorship not allowed[/]")
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("claim")
@click.argument("campaign_id", type=int)
@click.pass_context
def claim_reward(ctx: click.Context, campaign_id: int):
    """Claim the caller's reward from a campaign."""
    try:
        data = _client(ctx).claim(campaign_id)
        if _emit_json(ctx, data):
            return
        console.print(
            Panel(
                f"[bold green]{_tokens(data['reward'])}[/] tokens paid to {data['recipient']}",
                title=f"[bold green]Campaign {campaign_id} Reward",
                border_style="green",
            )
        )
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("show")
@click.argument("campaign_id", type=int)
@click.pass_context
def show_campaign(ctx: click.Context, campaign_id: int):
    """Show campaign details and participation counts."""
    try:
        with console.status("[bold cyan]Fetching campaign..."):
            data = _client(ctx).get_campaign(campaign_id)
        if _emit_json(ctx, data):
            return
        table = _campaign_table(data["campaign"])
        stats = data.get("stats", {})
        table.add_row("[bold cyan]Sponsorships", str(stats.get("sponsorships", 0)))
        table.add_row("[bold cyan]Claimed", str(stats.get("claimed", 0)))
        console.print(Panel(table, title="[bold green]Campaign", border_style="green"))
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("list")
@click.pass_context
def list_campaigns(ctx: click.Context):
    """List all campaigns."""
    try:
        data = _client(ctx).list_campaigns()
        if _emit_json(ctx, data):
            return
        campaigns = data.get("campaigns", [])
        if not campaigns:
            console.print("[yellow]No campaigns found[/]")
            return
        table = Table(title="Campaigns", box=box.ROUNDED)
        table.add_column("ID", style="cyan")
        table.add_column("Token", style="magenta")
        table.add_column("Escrow", style="green", justify="right")
        table.add_column("Range", justify="right")
        table.add_column("Ends At", style="yellow")
        table.add_column("Status")
        for campaign in campaigns:
            table.add_row(
                str(campaign["campaign_id"]),
                campaign["reward_token"][:12] + "...",
                _tokens(campaign["available_funds"]),
                f"{_tokens(campaign['lower_bound'])}-{_tokens(campaign['upper_bound'])}",
                _timestamp(campaign["ends_at"]),
                "ended early" if campaign.get("ended_early") else "open",
            )
        console.print(table)
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("status")
@click.argument("campaign_id", type=int)
@click.argument("address")
@click.pass_context
def participant_status(ctx: click.Context, campaign_id: int, address: str):
    """Show ADDRESS's claim status, sponsor and sponsored recipient."""
    try:
        data = _client(ctx).participant(campaign_id, address)
        if _emit_json(ctx, data):
            return
        table = Table(show_header=False, box=box.ROUNDED)
        table.add_row("[bold cyan]Address", data["address"])
        table.add_row("[bold cyan]Claim Status", data["claim_status"])
        table.add_row("[bold cyan]Sponsored By", data.get("sponsored_by") or "-")
        table.add_row("[bold cyan]Sponsored", data.get("sponsored_recipient") or "-")
        if data.get("pending_reward") is not None:
            table.add_row("[bold green]Pending Reward", _tokens(data["pending_reward"]))
        console.print(
            Panel(table, title=f"[bold green]Campaign {campaign_id} Participant", border_style="green")
        )
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


@click.command("events")
@click.argument("campaign_id", type=int)
@click.option(
    "--type",
    "event_type",
    type=click.Choice(
        [
            "CampaignCreated",
            "CampaignFunded",
            "CampaignEndedEarly",
            "FundsWithdrawn",
            "Sponsored",
            "RewardClaimed",
        ]
    ),
    help="Only show one event type",
)
@click.option("--limit", default=50, type=int, help="Number of newest events to show")
@click.pass_context
def campaign_events(ctx: click.Context, campaign_id: int, event_type: str | None, limit: int):
    """Show a campaign's event log."""
    try:
        data = _client(ctx).events(campaign_id, event_type=event_type, limit=limit)
        if _emit_json(ctx, data):
            return
        events = data.get("events", [])
        if not events:
            console.print("[yellow]No events found[/]")
            return
        table = Table(title=f"Campaign {campaign_id} Events", box=box.ROUNDED)
        table.add_column("#", style="dim")
        table.add_column("Event", style="cyan")
        table.add_column("Details")
        for event in events:
            details = ", ".join(f"{k}={v}" for k, v in event.get("payload", {}).items() if v is not None)
            table.add_row(str(event["sequence"]), event["event"], details)
        console.print(table)
    except (click.ClickException, requests.RequestException, ValueError, KeyError) as exc:
        _handle_cli_error(exc)


CAMPAIGN_COMMANDS = [
    create_campaign,
    fund_campaign,
    end_campaign,
    withdraw_funds,
    sponsor_recipient,
    can_sponsor,
    claim_reward,
    show_campaign,
    list_campaigns,
    participant_status,
    campaign_events,
]
