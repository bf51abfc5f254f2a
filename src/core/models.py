"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

MODE_MANUAL = "manual"
MODE_AUTO = "auto"
MODES = (MODE_MANUAL, MODE_AUTO)


class Category(str, Enum):
    """Threat category, listed in classification priority order."""

    UAV = "uav"
    MISSILE = "missile"
    AVIATION = "aviation"
    ARTILLERY = "artillery"
    AIR_DEFENSE = "air_defense"
    UNKNOWN = "update"


class QueueStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class InboundMessage:
    """Minimal inbound message used by the core processing pipeline."""

    source_key: str
    text: str
    permalink: Optional[str] = None


@dataclass(frozen=True)
class Report:
    """A classified inbound report. Ephemeral unless it ends up queued."""

    raw_text: str
    source_key: str
    normalized_text: str
    category: Category
    emoji: str
    label: str
    origin: str
    destination: str
    regions: frozenset[str]
    formatted_text: str
    permalink: Optional[str] = None

    @property
    def has_route(self) -> bool:
        return bool(self.origin or self.destination)


@dataclass(frozen=True)
class QueueItem:
    """Persisted approval-queue entry. Items are never deleted."""

    id: int
    source: str
    raw_text: str
    formatted_text: str
    dedup_hash: str
    status: QueueStatus
    created_at: datetime
    permalink: Optional[str] = None


@dataclass(frozen=True)
class Zone:
    """A tracked zone: `uid` is its character index into the status snapshot."""

    uid: int
    name: str

    @property
    def key(self) -> str:
        return str(self.uid)


@dataclass
class ZoneState:
    """Hysteresis state for one zone, persisted across polling cycles."""

    zone_key: str
    confirmed_active: Optional[bool] = None
    pending_value: Optional[bool] = None
    pending_count: int = 0
    last_sent_at: Optional[datetime] = None


@dataclass(frozen=True)
class BotSettings:
    """Runtime settings editable by the operator."""

    mode: str = MODE_MANUAL
    target_channel: str = ""
    allowed_regions: frozenset[str] = field(default_factory=frozenset)
    dedup_window_minutes: int = 60
    alerts_enabled: bool = True
    alerts_channel: str = ""
    alerts_include_time: bool = False

    @property
    def target_configured(self) -> bool:
        return bool(self.target_channel)

    @property
    def alerts_destination(self) -> str:
        return self.alerts_channel or self.target_channel


class Outcome(str, Enum):
    """What happened to an inbound report or an operator decision."""

    IGNORED = "ignored"
    STATUS_ONLY = "status_only"
    REGION_FILTERED = "region_filtered"
    DUPLICATE = "duplicate"
    PUBLISHED = "published"
    QUEUED = "queued"
    NO_TARGET = "no_target"
    SEND_FAILED = "send_failed"
    APPROVED = "approved"
    REJECTED = "rejected"
    MISSING = "missing"
