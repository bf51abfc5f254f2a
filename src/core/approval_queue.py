"""Approval queue for manual publication mode."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Optional

from core.models import QueueItem, QueueStatus
from core.ports import QueueStorePort

LOGGER = logging.getLogger(__name__)

_DECISIONS = {QueueStatus.APPROVED, QueueStatus.REJECTED}


class ApprovalQueue:
    """Pending/approved/rejected items keyed by a monotonic id.

    Items are never deleted. Status only moves from pending to a decision,
    never back and never between decisions.
    """

    def __init__(self, store: QueueStorePort) -> None:
        self._store = store

    def add(
        self,
        source: str,
        raw_text: str,
        formatted_text: str,
        dedup_hash: str,
        created_at: datetime,
        permalink: Optional[str] = None,
    ) -> int:
        item_id = self._store.queue_add(source, raw_text, formatted_text, dedup_hash, created_at, permalink)
        LOGGER.info("Queued item #%s from %s", item_id, source)
        return item_id

    def get(self, item_id: int) -> Optional[QueueItem]:
        return self._store.queue_get(item_id)

    def set_status(self, item_id: int, status: QueueStatus) -> bool:
        """Record a decision. Returns False for unknown or already-decided ids."""

        status = QueueStatus(status)
        if status not in _DECISIONS:
            raise ValueError(f"Unsupported queue decision: {status.value}")
        item = self._store.queue_get(item_id)
        if item is None or item.status is not QueueStatus.PENDING:
            return False
        return self._store.queue_set_status(item_id, status)

    def list_pending(self, limit: int = 10) -> list[QueueItem]:
        """Newest pending items first."""

        return self._store.queue_list(QueueStatus.PENDING, limit)

    def count_pending(self) -> int:
        return self._store.queue_count(QueueStatus.PENDING)
