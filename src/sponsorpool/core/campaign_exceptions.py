"""
Campaign-specific exception hierarchy for SponsorPool.

Every failure of a campaign operation is scoped to that single operation and
carries a stable ``code`` and ``http_status`` so that API and CLI layers can
report it without string matching.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class CampaignError(Exception):
    """Base exception for all campaign ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller may retry the operation later
    """

    code = "campaign_error"
    http_status = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# ==================== Configuration Errors ====================


class InvalidConfigurationError(CampaignError):
    """Raised for malformed creation or funding parameters.

    Examples: zero amounts, inverted bounds, past timestamps, null tokens or
    null addresses.
    """

    code = "invalid_configuration"
    http_status = 400


class UnauthorizedError(CampaignError):
    """Raised when a non-owner calls an owner-only operation."""

    code = "unauthorized"
    http_status = 403


# ==================== Lifecycle Errors ====================


class CampaignNotFoundError(CampaignError):
    """Raised when an operation references an unknown campaign id."""

    code = "campaign_not_found"
    http_status = 404

    def __init__(self, campaign_id: Any, **kwargs: Any) -> None:
        super().__init__(f"Campaign {campaign_id} not found", **kwargs)
        self.campaign_id = campaign_id


class CampaignEndedError(CampaignError):
    """Raised after natural expiry, or after early termination for sponsorship."""

    code = "campaign_ended"
    http_status = 409


class CampaignActiveError(CampaignError):
    """Raised when unclaimed funds are withdrawn before natural expiry."""

    code = "campaign_active"
    http_status = 409


# ==================== Participation Errors ====================


class AlreadyParticipatedError(CampaignError):
    """Raised when a sponsor already has an outbound edge, or a recipient an inbound one."""

    code = "already_participated"
    http_status = 409


class CannotSponsorSelfError(CampaignError):
    """Raised when sponsor and recipient are the same address."""

    code = "cannot_sponsor_self"
    http_status = 400


class NotVerifiedError(CampaignError):
    """Raised when either party fails the identity check."""

    code = "not_verified"
    http_status = 403


class NotSponsoredError(CampaignError):
    """Raised when a claim is attempted without claim eligibility."""

    code = "not_sponsored"
    http_status = 409


class AlreadyClaimedError(NotSponsoredError):
    """Raised when the recipient has already claimed.

    Subclasses NotSponsoredError so callers that treat both cases alike can
    keep catching the parent.
    """

    code = "already_claimed"
    http_status = 409


class InsufficientFundsError(CampaignError):
    """Raised when the campaign escrow cannot cover the computed reward."""

    code = "insufficient_funds"
    http_status = 409

    def __init__(
        self,
        message: str,
        available: Optional[int] = None,
        required: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.available = available
        self.required = required


# ==================== Collaborator Errors ====================


class TransferFailedError(CampaignError):
    """Raised when the value ledger rejects a pull or push."""

    code = "transfer_failed"
    http_status = 502

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason


class VerifierUnavailableError(CampaignError):
    """Raised when the identity verifier itself fails."""

    code = "verifier_unavailable"
    http_status = 503


class InvariantViolationError(CampaignError):
    """Raised when checked arithmetic overflows or underflows.

    Preconditions make this unreachable; hitting it means an internal bug.
    """

    code = "invariant_violation"
    http_status = 500


__all__ = [
    "CampaignError",
    "InvalidConfigurationError",
    "UnauthorizedError",
    "CampaignNotFoundError",
    "CampaignEndedError",
    "CampaignActiveError",
    "AlreadyParticipatedError",
    "CannotSponsorSelfError",
    "NotVerifiedError",
    "NotSponsoredError",
    "AlreadyClaimedError",
    "InsufficientFundsError",
    "TransferFailedError",
    "VerifierUnavailableError",
    "InvariantViolationError",
]
