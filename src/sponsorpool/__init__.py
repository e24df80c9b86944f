"""
SponsorPool - Incentivized Referral Campaigns

A campaign ledger where a sponsor vouches for a recipient, and the recipient
then draws a bounded pseudo-random reward from an owner-funded escrow pool.

Main Components:
- Campaigns: registry, sponsorship tracker, reward engine and orchestrator
- Adapters: reference ledger, identity verifier, randomness and access control
- API: Flask blueprint exposing campaign operations
- CLI: click/rich command line client
"""

__version__ = "0.1.0"
__author__ = "SponsorPool Development Team"

__all__ = []
