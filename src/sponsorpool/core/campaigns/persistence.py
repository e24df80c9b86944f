"""
JSON snapshot persistence for campaign state.

The store keeps the last committed state of every campaign. A commit on one
campaign refreshes only that campaign's entry, so transactions still in
flight on other campaigns never reach disk.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Dict, Optional, Tuple

from sponsorpool.core.constants import FIRST_CAMPAIGN_ID

from .registry import CampaignRegistry
from .sponsorship import SponsorshipTracker

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class CampaignStateStore:
    """
    Persists registry and tracker state to a single JSON file.

    Writes go to a temporary file first and are moved into place with
    ``os.replace`` so a crash never leaves a half-written snapshot.
    """

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)
        self._lock = threading.Lock()
        # campaign_id -> {"campaign": ..., "sponsors": ..., "statuses": ...}
        self._committed: Dict[int, Dict[str, Any]] = {}
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def record(
        self, campaign_id: int, registry: CampaignRegistry, tracker: SponsorshipTracker
    ) -> None:
        """
        Capture one campaign's committed state and rewrite the snapshot.

        Must be called while holding that campaign's lock, after its unit of
        work committed.
        """
        campaign = registry.find(campaign_id)
        entry = None
        if campaign is not None:
            entry = {"campaign": campaign.to_dict(), **tracker.campaign_state(campaign_id)}
        with self._lock:
            if entry is None:
                self._committed.pop(campaign_id, None)
            else:
                self._committed[campaign_id] = entry
            self._write(self._payload())

    def save(self, registry: CampaignRegistry, tracker: SponsorshipTracker) -> None:
        """Replace the snapshot with the full current state of ``registry``."""
        entries = {
            campaign.campaign_id: {
                "campaign": campaign.to_dict(),
                **tracker.campaign_state(campaign.campaign_id),
            }
            for campaign in registry.list()
        }
        with self._lock:
            self._committed = entries
            self._write(self._payload())
        logger.debug(
            "Campaign state persisted",
            extra={"event": "campaign.state_saved", "campaigns": len(entries)},
        )

    def _payload(self) -> Dict[str, Any]:
        ids = sorted(self._committed)
        return {
            "version": STATE_VERSION,
            "registry": {
                "next_id": (ids[-1] + 1) if ids else FIRST_CAMPAIGN_ID,
                "campaigns": [self._committed[cid]["campaign"] for cid in ids],
            },
            "sponsorships": {
                "sponsors": {str(cid): self._committed[cid]["sponsors"] for cid in ids},
                "statuses": {str(cid): self._committed[cid]["statuses"] for cid in ids},
            },
        }

    def _write(self, payload: Dict[str, Any]) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle)
        os.replace(tmp_path, self.path)

    def load(self) -> Optional[Tuple[CampaignRegistry, SponsorshipTracker]]:
        """Return restored state, or None when no snapshot exists.

        Raises:
            ValueError: If the snapshot is unreadable or from an unknown version
        """
        if not self.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Corrupt campaign state file {self.path}") from exc

        version = data.get("version")
        if version != STATE_VERSION:
            raise ValueError(f"Unsupported campaign state version: {version}")

        registry = CampaignRegistry.from_dict(data.get("registry", {}))
        tracker = SponsorshipTracker.from_dict(data.get("sponsorships", {}))
        with self._lock:
            self._committed = {
                campaign.campaign_id: {
                    "campaign": campaign.to_dict(),
                    **tracker.campaign_state(campaign.campaign_id),
                }
                for campaign in registry.list()
            }
        logger.info(
            "Campaign state restored",
            extra={"event": "campaign.state_loaded", "campaigns": len(registry)},
        )
        return registry, tracker
