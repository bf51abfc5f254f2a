"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, publishing, operator
interaction and the zone status feed, so that the core can be reused with
different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from core.models import BotSettings, QueueItem, QueueStatus, ZoneState


class SettingsStorePort(Protocol):
    """Runtime settings plus the operator-managed source and place lists."""

    def get_settings(self) -> BotSettings:
        ...

    def update_settings(self, **patch) -> BotSettings:
        ...

    def list_sources(self) -> list[str]:
        ...

    def add_source(self, source_key: str) -> bool:
        ...

    def remove_source(self, source_key: str) -> bool:
        ...

    def get_places(self) -> dict[str, list[str]]:
        ...

    def add_place(self, region: str, place: str) -> bool:
        ...

    def remove_place(self, region: str, place: str) -> bool:
        ...


class DedupStorePort(Protocol):
    """Time-windowed table of structural dedup digests."""

    def is_seen(self, digest: str, window_minutes: int, now: datetime) -> bool:
        ...

    def mark_seen(self, digest: str, now: datetime) -> None:
        ...

    def cleanup_seen(self, window_minutes: int, now: datetime) -> int:
        ...


class QueueStorePort(Protocol):
    """Append-only store of approval-queue items."""

    def queue_add(
        self,
        source: str,
        raw_text: str,
        formatted_text: str,
        dedup_hash: str,
        created_at: datetime,
        permalink: Optional[str] = None,
    ) -> int:
        ...

    def queue_get(self, item_id: int) -> Optional[QueueItem]:
        ...

    def queue_set_status(self, item_id: int, status: QueueStatus) -> bool:
        ...

    def queue_list(self, status: QueueStatus, limit: int) -> list[QueueItem]:
        ...

    def queue_count(self, status: QueueStatus) -> int:
        ...


class ZoneStateStorePort(Protocol):
    """Per-zone hysteresis state persisted between polling cycles."""

    def load_zone_states(self) -> dict[str, ZoneState]:
        ...

    def save_zone_states(self, states: Iterable[ZoneState]) -> None:
        ...


class PublisherPort(Protocol):
    """Outbound delivery. Returns False on failure instead of raising."""

    async def send(self, destination: str, text: str) -> bool:
        ...


class OperatorPort(Protocol):
    """Operator surface that presents pending items for a decision."""

    async def notify_pending(self, item: QueueItem) -> None:
        ...


class StatusFeedPort(Protocol):
    """Zone status feed. Raises StatusFeedError when the fetch fails."""

    async def fetch(self) -> str:
        ...


class StatusFeedError(Exception):
    """Raised by feed adapters for transport or format failures."""


class StoragePort(SettingsStorePort, DedupStorePort, QueueStorePort, ZoneStateStorePort, Protocol):
    """Everything the core persists, as provided by a single storage adapter."""
