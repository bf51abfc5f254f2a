"""Runtime context shared by the core components.

Mutable process-wide state (stores, clock, the inbound serialization lock)
is injected through this object instead of module globals.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from core.ports import OperatorPort, PublisherPort, StoragePort


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RuntimeContext:
    """Collaborators of the inbound-report and polling paths.

    The `inbound_lock` serializes check-then-mark dedup sequences and queue
    id assignment across concurrent message handlers and operator actions.
    """

    storage: StoragePort
    publisher: PublisherPort
    operator: OperatorPort
    clock: Callable[[], datetime] = utcnow
    inbound_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
