"""
Campaign event log.

Committed units of work publish their events here. Observers and indexers
either query the log or subscribe a callable that is invoked for each event.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional

from .models import CampaignEvent, CampaignEventType

logger = logging.getLogger(__name__)

EventSubscriber = Callable[[CampaignEvent], None]


class EventLog:
    """Append-only, bounded, thread-safe event log."""

    def __init__(self, max_events: int = 100_000) -> None:
        self._events: Deque[CampaignEvent] = deque(maxlen=max_events)
        self._subscribers: List[EventSubscriber] = []
        self._sequence = 0
        self._lock = threading.RLock()

    def subscribe(self, subscriber: EventSubscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: EventSubscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def publish(self, events: Iterable[CampaignEvent]) -> None:
        """Append events in order and notify subscribers.

        The state behind these events is already committed, so a failing
        subscriber is logged and skipped rather than propagated.
        """
        with self._lock:
            published = []
            for event in events:
                self._sequence += 1
                event.sequence = self._sequence
                self._events.append(event)
                published.append(event)
            subscribers = list(self._subscribers)

        for event in published:
            for subscriber in subscribers:
                try:
                    subscriber(event)
                except Exception as exc:
                    logger.error(
                        "Event subscriber failed",
                        exc_info=exc,
                        extra={
                            "event": "campaign.subscriber_failed",
                            "campaign_event": event.event_type.value,
                            "campaign_id": event.campaign_id,
                        },
                    )

    def query(
        self,
        campaign_id: Optional[int] = None,
        event_type: Optional[CampaignEventType] = None,
        limit: Optional[int] = None,
    ) -> List[CampaignEvent]:
        """Return matching events, oldest first (the newest ``limit`` when given)."""
        with self._lock:
            matches = [
                event for event in self._events
                if (campaign_id is None or event.campaign_id == campaign_id)
                and (event_type is None or event.event_type == event_type)
            ]
        if limit is not None:
            matches = matches[-limit:] if limit > 0 else []
        return matches

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
