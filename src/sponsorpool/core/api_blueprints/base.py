"""
Base utilities for API Blueprints

Provides common dependencies and helper functions shared across blueprints.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from flask import g, jsonify, request

from sponsorpool.core.campaign_exceptions import CampaignError
from sponsorpool.core.validation import normalize_address

logger = logging.getLogger(__name__)

CALLER_HEADER = "X-Caller-Address"


def get_api_context() -> Dict[str, Any]:
    """Get the API context containing the campaign manager and collaborators.

    The context is stored in Flask's g object during request setup.
    """
    return g.get("api_context", {})


def get_campaign_manager() -> Any:
    """Get the campaign manager instance from context."""
    ctx = get_api_context()
    return ctx.get("campaign_manager")


def success_response(payload: Dict[str, Any], status: int = 200) -> Tuple[Any, int]:
    """Return a success payload with consistent structure."""
    body = {"success": True, **payload}
    return jsonify(body), status


def error_response(
    message: str,
    status: int = 400,
    code: str = "bad_request",
    context: Optional[Dict[str, Any]] = None,
) -> Tuple[Any, int]:
    """Return an error response and log it at a severity matching the status."""
    level = logging.ERROR if status >= 500 else logging.WARNING
    logger.log(
        level,
        "Campaign API error: %s",
        message,
        extra={"event": "api.error", "code": code, "status": status, **(context or {})},
    )
    return jsonify({"success": False, "error": message, "code": code}), status


def campaign_error_response(error: CampaignError) -> Tuple[Any, int]:
    """Map a domain error onto its HTTP status and stable error code."""
    return error_response(
        error.message,
        status=error.http_status,
        code=error.code,
        context={"recoverable": error.recoverable},
    )


class CallerAuthError(Exception):
    """Request could not be tied to an authenticated caller."""

    def __init__(self, message: str, status: int = 401, code: str = "unauthenticated") -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


def get_caller() -> str:
    """Address bound to the request's API key.

    An ``X-Caller-Address`` header is optional; when present it must name the
    same address as the key.

    Raises:
        CallerAuthError: If the key is missing, unknown or does not match the header
    """
    api_auth = get_api_context().get("api_auth")
    if api_auth is None:
        raise CallerAuthError(
            "API authentication is not configured", status=503, code="auth_unavailable"
        )
    authenticated, address, error = api_auth.authenticate(request)
    if not authenticated:
        raise CallerAuthError(error or "API key invalid")
    claimed = request.headers.get(CALLER_HEADER)
    if claimed and normalize_address(claimed) != address:
        raise CallerAuthError(
            "Caller address does not match the API key", status=403, code="caller_mismatch"
        )
    return address


def auth_error_response(error: CallerAuthError) -> Tuple[Any, int]:
    return error_response(error.message, status=error.status, code=error.code)


def get_json_body() -> Dict[str, Any]:
    """Request JSON object, or an empty dict for an empty body.

    Raises:
        ValueError: If the body is not a JSON object
    """
    payload = request.get_json(silent=True)
    if payload is None:
        if request.get_data(cache=True):
            raise ValueError("Request body must be valid JSON")
        return {}
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    return payload
