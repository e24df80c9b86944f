"""
Unit of work for campaign operations.

State is mutated first and external effects (ledger transfers) happen
afterwards. Each mutation journals an undo step; if anything raises before
commit, the journal is replayed in reverse so the operation leaves no trace.
Events are buffered and only reach the event log on commit.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from .events import EventLog
from .models import CampaignEvent, CampaignEventType

logger = logging.getLogger(__name__)


class UnitOfWorkState:
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class UnitOfWork:
    """
    Journal of undo steps and pending events for a single operation.

    Usage:
        with UnitOfWork(event_log) as uow:
            registry.credit(uow, campaign_id, amount)
            uow.emit(CampaignEventType.FUNDED, campaign_id, amount=amount)
            ledger_pull(...)           # raising here undoes the credit
    """

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        on_commit: Optional[Callable[["UnitOfWork"], None]] = None,
    ) -> None:
        self.event_log = event_log
        self.on_commit = on_commit
        self.state = UnitOfWorkState.ACTIVE
        self._undo: List[Callable[[], None]] = []
        self._events: List[CampaignEvent] = []

    @property
    def pending_events(self) -> List[CampaignEvent]:
        return list(self._events)

    def record_undo(self, undo: Callable[[], None]) -> None:
        self._require_active()
        self._undo.append(undo)

    def emit(self, event_type: CampaignEventType, campaign_id: int, **payload: Any) -> None:
        self._require_active()
        self._events.append(
            CampaignEvent(event_type=event_type, campaign_id=campaign_id, payload=payload)
        )

    def commit(self) -> None:
        self._require_active()
        self.state = UnitOfWorkState.COMMITTED
        self._undo.clear()
        if self.event_log is not None and self._events:
            self.event_log.publish(self._events)
        if self.on_commit is not None:
            self.on_commit(self)

    def rollback(self) -> None:
        self._require_active()
        self.state = UnitOfWorkState.ROLLED_BACK
        while self._undo:
            undo = self._undo.pop()
            undo()
        self._events.clear()

    def _require_active(self) -> None:
        if self.state != UnitOfWorkState.ACTIVE:
            raise RuntimeError(f"Unit of work already {self.state}")

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.state != UnitOfWorkState.ACTIVE:
            return False
        if exc_type is None:
            self.commit()
        else:
            logger.debug(
                "Rolling back unit of work",
                extra={"event": "campaign.rollback", "error": exc_type.__name__},
            )
            self.rollback()
        return False
