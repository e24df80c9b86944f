"""
SponsorPool Core Module

Core functionality for referral campaigns including:
- Campaign ledger and sponsorship state machine
- Collaborator protocols and reference adapters
- Configuration, logging and metrics
- API interfaces
"""

__all__ = []
