"""Zone status polling with debounce and cooldown hysteresis.

Every tick reads one flat snapshot string shared by all zones. A zone's raw
state is the character at its index; the confirmed state only flips after
`confirm_count` consecutive differing observations, and announcements for a
zone are rate-limited by `cooldown_seconds` independently of state commits.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
import logging
from typing import AbstractSet, Iterable, Optional

from core.config import PollerConfig
from core.context import RuntimeContext
from core.models import Zone, ZoneState
from core.ports import StatusFeedError, StatusFeedPort

LOGGER = logging.getLogger(__name__)

TURNED_ON = "on"
TURNED_OFF = "off"


def read_zone_flag(
    snapshot: str,
    uid: int,
    offset: int,
    active_symbols: AbstractSet[str],
) -> Optional[bool]:
    """Return whether the zone is active, or None if its index is out of range."""

    index = uid + offset
    if index < 0 or index >= len(snapshot):
        return None
    return snapshot[index] in active_symbols


def advance_zone(
    state: ZoneState,
    current: bool,
    now: datetime,
    confirm_count: int,
    cooldown: timedelta,
) -> Optional[str]:
    """Feed one observation into a zone's state machine.

    Mutates `state` and returns TURNED_ON / TURNED_OFF when a committed
    transition should be announced, otherwise None.
    """

    if state.confirmed_active is None:
        state.confirmed_active = current
        state.pending_value = None
        state.pending_count = 0
        return None

    if current == state.confirmed_active:
        state.pending_value = None
        state.pending_count = 0
        return None

    if state.pending_value is None or state.pending_value != current:
        state.pending_value = current
        state.pending_count = 1
    else:
        state.pending_count += 1

    if state.pending_count < confirm_count:
        return None

    state.confirmed_active = current
    state.pending_value = None
    state.pending_count = 0

    # The state commits even when the announcement is suppressed.
    if state.last_sent_at is not None and now - state.last_sent_at < cooldown:
        LOGGER.info("Zone %s changed within cooldown, announcement suppressed", state.zone_key)
        return None

    state.last_sent_at = now
    return TURNED_ON if current else TURNED_OFF


def format_zone_batch(names: Iterable[str], turned_on: bool, time_label: Optional[str] = None) -> str:
    """Render one batched announcement for all zones that flipped the same way."""

    prefix = "🛑 Повітряна тривога" if turned_on else "✅ Відбій повітряної тривоги"
    message = f"{prefix}: {', '.join(names)}"
    if time_label:
        message = f"{message} | {time_label}"
    return message


@dataclass
class TickResult:
    turned_on: list[str] = field(default_factory=list)
    turned_off: list[str] = field(default_factory=list)


class ZoneStatusPoller:
    """Polls the status feed and announces confirmed zone transitions."""

    def __init__(
        self,
        context: RuntimeContext,
        feed: StatusFeedPort,
        zones: Iterable[Zone],
        config: Optional[PollerConfig] = None,
    ) -> None:
        self._context = context
        self._feed = feed
        self._zones = list(zones)
        self._config = config or PollerConfig()
        self._states: Optional[dict[str, ZoneState]] = None
        self._tick_lock = asyncio.Lock()

    def _load_states(self) -> dict[str, ZoneState]:
        if self._states is None:
            self._states = dict(self._context.storage.load_zone_states())
        return self._states

    async def tick(self) -> Optional[TickResult]:
        """Run one polling pass. Returns None when the pass did nothing."""

        if self._tick_lock.locked():
            LOGGER.warning("Previous zone poll still running, skipping tick")
            return None

        async with self._tick_lock:
            return await self._tick()

    async def _tick(self) -> Optional[TickResult]:
        if not self._zones:
            return None

        settings = self._context.storage.get_settings()
        destination = settings.alerts_destination
        if not settings.alerts_enabled or not destination:
            return None

        try:
            snapshot = await self._feed.fetch()
        except StatusFeedError as exc:
            LOGGER.warning("Zone status fetch failed: %s", exc)
            return None
        if not snapshot:
            LOGGER.warning("Zone status snapshot is empty, skipping tick")
            return None

        now = self._context.clock()
        cooldown = timedelta(seconds=self._config.cooldown_seconds)
        # Work on copies so an aborted pass leaves the stored states untouched.
        states = {key: replace(state) for key, state in self._load_states().items()}
        result = TickResult()

        for zone in self._zones:
            current = read_zone_flag(
                snapshot, zone.uid, self._config.index_offset, self._config.active_symbols
            )
            if current is None:
                LOGGER.warning("Zone %s (%s) is outside the snapshot", zone.name, zone.uid)
                continue
            state = states.setdefault(zone.key, ZoneState(zone_key=zone.key))
            event = advance_zone(state, current, now, self._config.confirm_count, cooldown)
            if event == TURNED_ON:
                result.turned_on.append(zone.name)
            elif event == TURNED_OFF:
                result.turned_off.append(zone.name)

        self._states = states
        self._context.storage.save_zone_states(states.values())

        time_label = now.astimezone().strftime("%H:%M") if settings.alerts_include_time else None
        for names, turned_on in ((result.turned_on, True), (result.turned_off, False)):
            if not names:
                continue
            text = format_zone_batch(names, turned_on, time_label)
            try:
                delivered = await self._context.publisher.send(destination, text)
            except Exception:
                LOGGER.exception("Zone announcement failed: %s", text)
                continue
            if not delivered:
                LOGGER.warning("Zone announcement was not delivered: %s", text)
        return result

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll on a fixed period until `stop_event` is set."""

        LOGGER.info(
            "Zone poller started: every %ss, zones=%s", self._config.poll_seconds, len(self._zones)
        )
        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                LOGGER.exception("Zone poll tick failed")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._config.poll_seconds)
            except asyncio.TimeoutError:
                pass
