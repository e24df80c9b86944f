"""
Campaign API Blueprint

Exposes campaign configuration, sponsorship and claiming over HTTP. The
acting address is the one bound to the request's API key; amounts are
integer base units, sent either as JSON integers or decimal strings.

Endpoints:
- POST /campaigns - Create and fund a campaign (owner only)
- GET /campaigns - List campaigns
- GET /campaigns/<id> - Campaign details and participation counts
- POST /campaigns/<id>/fund - Top up a campaign's escrow
- POST /campaigns/<id>/end - End a campaign early (owner only)
- POST /campaigns/<id>/withdraw - Withdraw unclaimed funds (owner only)
- POST /campaigns/<id>/sponsor - Sponsor a recipient
- GET /campaigns/<id>/can-sponsor - Dry-run a sponsorship
- POST /campaigns/<id>/claim - Claim the caller's reward
- GET /campaigns/<id>/participants/<address> - Participation of one address
- GET /campaigns/<id>/events - Campaign event log
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, request

from sponsorpool.core.api_blueprints.base import (
    CallerAuthError,
    auth_error_response,
    campaign_error_response,
    error_response,
    get_caller,
    get_campaign_manager,
    get_json_body,
    success_response,
)
from sponsorpool.core.campaign_exceptions import CampaignError
from sponsorpool.core.campaigns.models import CampaignEventType
from sponsorpool.core.validation import normalize_address, validate_address, validate_uint256

logger = logging.getLogger(__name__)

campaign_bp = Blueprint("campaigns", __name__, url_prefix="/campaigns")

MAX_EVENT_LIMIT = 1000


@campaign_bp.errorhandler(CallerAuthError)
def handle_caller_auth_error(error: CallerAuthError) -> Tuple[Any, int]:
    return auth_error_response(error)


def _optional_uint(payload: Dict[str, Any], field: str) -> Optional[int]:
    value = payload.get(field)
    if value is None:
        return None
    return validate_uint256(value, field)


def _required_uint(payload: Dict[str, Any], field: str) -> int:
    if field not in payload or payload[field] is None:
        raise ValueError(f"Missing required field: {field}")
    return validate_uint256(payload[field], field)


def _invalid_request(error: ValueError) -> Tuple[Any, int]:
    return error_response(str(error), status=400, code="invalid_request")


@campaign_bp.route("", methods=["POST"])
def create_campaign() -> Tuple[Any, int]:
    """Create and fund a new campaign.

    Request Body:
        token (str): Reward token address
        initial_deposit (int|str): Deposit pulled from the caller
        ends_at (int): Expiry timestamp (exclusive)
        lower_bound, upper_bound (int|str): Reward range
        bonus_threshold, bonus_amount (int|str, optional): Bonus tier

    Returns:
        201 with the new campaign
    """
    manager = get_campaign_manager()
    try:
        caller = get_caller()
        payload = get_json_body()
        campaign_id = manager.create_campaign(
            caller,
            token=normalize_address(payload.get("token")),
            initial_deposit=_required_uint(payload, "initial_deposit"),
            ends_at=_required_uint(payload, "ends_at"),
            lower_bound=_required_uint(payload, "lower_bound"),
            upper_bound=_required_uint(payload, "upper_bound"),
            bonus_threshold=_optional_uint(payload, "bonus_threshold"),
            bonus_amount=_optional_uint(payload, "bonus_amount"),
        )
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)

    campaign = manager.get_campaign(campaign_id)
    return success_response(
        {"campaign_id": campaign_id, "campaign": campaign.to_public_dict()}, status=201
    )


@campaign_bp.route("", methods=["GET"])
def list_campaigns() -> Tuple[Any, int]:
    manager = get_campaign_manager()
    campaigns = [campaign.to_public_dict() for campaign in manager.list_campaigns()]
    return success_response({"campaigns": campaigns, "count": len(campaigns)})


@campaign_bp.route("/<int:campaign_id>", methods=["GET"])
def get_campaign(campaign_id: int) -> Tuple[Any, int]:
    manager = get_campaign_manager()
    try:
        campaign = manager.get_campaign(campaign_id)
        stats = manager.participation_stats(campaign_id)
    except CampaignError as exc:
        return campaign_error_response(exc)
    return success_response({"campaign": campaign.to_public_dict(), "stats": stats})


@campaign_bp.route("/<int:campaign_id>/fund", methods=["POST"])
def fund_campaign(campaign_id: int) -> Tuple[Any, int]:
    """Top up escrow. Request Body: amount (int|str)."""
    manager = get_campaign_manager()
    try:
        caller = get_caller()
        amount = _required_uint(get_json_body(), "amount")
        balance = manager.fund_campaign(caller, campaign_id, amount)
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)
    return success_response(
        {"campaign_id": campaign_id, "funded": str(amount), "available_funds": str(balance)}
    )


@campaign_bp.route("/<int:campaign_id>/end", methods=["POST"])
def end_campaign(campaign_id: int) -> Tuple[Any, int]:
    manager = get_campaign_manager()
    try:
        manager.end_campaign_early(get_caller(), campaign_id)
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)
    return success_response({"campaign_id": campaign_id, "ended_early": True})


@campaign_bp.route("/<int:campaign_id>/withdraw", methods=["POST"])
def withdraw_unclaimed(campaign_id: int) -> Tuple[Any, int]:
    manager = get_campaign_manager()
    try:
        amount = manager.withdraw_unclaimed_funds(get_caller(), campaign_id)
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)
    return success_response({"campaign_id": campaign_id, "withdrawn": str(amount)})


@campaign_bp.route("/<int:campaign_id>/sponsor", methods=["POST"])
def sponsor_recipient(campaign_id: int) -> Tuple[Any, int]:
    """Sponsor a recipient. Request Body: recipient (str)."""
    manager = get_campaign_manager()
    try:
        caller = get_caller()
        payload = get_json_body()
        recipient = payload.get("recipient")
        if not recipient:
            raise ValueError("Missing required field: recipient")
        recipient = validate_address(recipient)
        manager.sponsor(caller, campaign_id, recipient)
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)
    return success_response(
        {"campaign_id": campaign_id, "sponsor": caller, "recipient": recipient}
    )


@campaign_bp.route("/<int:campaign_id>/can-sponsor", methods=["GET"])
def can_sponsor(campaign_id: int) -> Tuple[Any, int]:
    """Dry-run a sponsorship. Query Parameters: sponsor, recipient."""
    manager = get_campaign_manager()
    sponsor = normalize_address(request.args.get("sponsor", ""))
    recipient = normalize_address(request.args.get("recipient", ""))
    if not sponsor or not recipient:
        return error_response(
            "sponsor and recipient query parameters are required",
            status=400,
            code="invalid_request",
        )
    allowed = manager.can_sponsor(campaign_id, sponsor, recipient)
    return success_response(
        {
            "campaign_id": campaign_id,
            "sponsor": sponsor,
            "recipient": recipient,
            "can_sponsor": allowed,
        }
    )


@campaign_bp.route("/<int:campaign_id>/claim", methods=["POST"])
def claim_reward(campaign_id: int) -> Tuple[Any, int]:
    manager = get_campaign_manager()
    try:
        caller = get_caller()
        reward = manager.claim(caller, campaign_id)
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)
    return success_response({"campaign_id": campaign_id, "recipient": caller, "reward": str(reward)})


@campaign_bp.route("/<int:campaign_id>/participants/<address>", methods=["GET"])
def get_participant(campaign_id: int, address: str) -> Tuple[Any, int]:
    """Claim status, sponsor and sponsored recipient of one address."""
    manager = get_campaign_manager()
    try:
        address = validate_address(address)
        manager.get_campaign(campaign_id)
        preview = manager.preview_reward(campaign_id, address)
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)
    return success_response(
        {
            "campaign_id": campaign_id,
            "address": address,
            "claim_status": manager.claim_status(campaign_id, address).value,
            "sponsored_by": manager.sponsor_of(campaign_id, address),
            "sponsored_recipient": manager.recipient_of(campaign_id, address),
            "pending_reward": None if preview is None else str(preview),
        }
    )


@campaign_bp.route("/<int:campaign_id>/events", methods=["GET"])
def get_campaign_events(campaign_id: int) -> Tuple[Any, int]:
    """Campaign events, oldest first.

    Query Parameters:
        type (str, optional): Event name, e.g. ``Sponsored``
        limit (int, optional): Newest N events (max 1000)
    """
    manager = get_campaign_manager()
    try:
        manager.get_campaign(campaign_id)
        event_type = None
        if request.args.get("type"):
            event_type = CampaignEventType(request.args["type"])
        limit = min(int(request.args.get("limit", MAX_EVENT_LIMIT)), MAX_EVENT_LIMIT)
    except ValueError as exc:
        return _invalid_request(exc)
    except CampaignError as exc:
        return campaign_error_response(exc)

    events = manager.events(campaign_id=campaign_id, event_type=event_type, limit=limit)
    return success_response(
        {
            "campaign_id": campaign_id,
            "events": [event.to_dict() for event in events],
            "count": len(events),
        }
    )
