"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication policy for inbound reports."""

    similarity_threshold: float = 0.85
    min_token_length: int = 3


@dataclass(frozen=True)
class PollerConfig:
    """Zone status poller policy.

    `confirm_count` consecutive differing observations are needed before a
    zone flips; `cooldown_seconds` rate-limits announcements per zone.
    """

    poll_seconds: int = 30
    confirm_count: int = 2
    cooldown_seconds: int = 60
    index_offset: int = 0
    active_symbols: frozenset[str] = field(default_factory=lambda: frozenset({"A"}))
