"""Slot history recorders."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from uuid import UUID

from slot_engine.core.models import HistoryAction, SlotHistoryEntry
from slot_engine.core.repository import SlotRepository

logger = logging.getLogger(__name__)


class HistoryRecorder(ABC):
    """Abstract, best-effort history sink."""

    @abstractmethod
    def append(
        self,
        slot_id: UUID,
        action: HistoryAction,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record one slot mutation. Must never raise."""
        pass

    def record(self, entry: SlotHistoryEntry) -> None:
        self.append(entry.slot_id, entry.action, entry.metadata)


class RepositoryHistoryRecorder(HistoryRecorder):
    """Writes history through the slot repository, logging failures."""

    def __init__(self, repository: SlotRepository):
        self._repo = repository

    def append(
        self,
        slot_id: UUID,
        action: HistoryAction,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry = SlotHistoryEntry(slot_id=slot_id, action=action, metadata=metadata or {})
        try:
            self._repo.append_history(entry)
        except Exception as e:
            logger.warning(
                f"[history] failed to record {action.value} for slot {slot_id}: {e}",
                exc_info=True,
            )


class NullHistoryRecorder(HistoryRecorder):
    """No-op recorder (used when history is not needed)."""

    def append(
        self,
        slot_id: UUID,
        action: HistoryAction,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass
