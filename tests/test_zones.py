from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.config import PollerConfig
from core.context import RuntimeContext
from core.models import BotSettings, Zone, ZoneState
from core.ports import StatusFeedError
from core.zones import (
    TURNED_OFF,
    TURNED_ON,
    ZoneStatusPoller,
    advance_zone,
    format_zone_batch,
    read_zone_flag,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
COOLDOWN = timedelta(seconds=60)


class FakeStorage:
    def __init__(self, settings: BotSettings) -> None:
        self.settings = settings
        self.states: dict[str, ZoneState] = {}
        self.saves = 0

    def get_settings(self) -> BotSettings:
        return self.settings

    def load_zone_states(self) -> dict[str, ZoneState]:
        return dict(self.states)

    def save_zone_states(self, states) -> None:
        self.saves += 1
        self.states = {state.zone_key: state for state in states}


class FakePublisher:
    def __init__(self, failing: Optional[set[str]] = None, raising: Optional[set[str]] = None) -> None:
        self.failing = failing or set()
        self.raising = raising or set()
        self.sent: list[tuple[str, str]] = []

    async def send(self, destination: str, text: str) -> bool:
        if any(marker in text for marker in self.raising):
            raise ConnectionError("bot is offline")
        if any(marker in text for marker in self.failing):
            return False
        self.sent.append((destination, text))
        return True


class FakeFeed:
    def __init__(self, snapshots: list) -> None:
        self._snapshots = list(snapshots)

    async def fetch(self) -> str:
        snapshot = self._snapshots.pop(0)
        if isinstance(snapshot, Exception):
            raise snapshot
        return snapshot


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _poller(snapshots: list, zones: list[Zone], publisher: Optional[FakePublisher] = None, **settings):
    storage = FakeStorage(BotSettings(target_channel="@siverradar", **settings))
    publisher = publisher or FakePublisher()
    clock = FakeClock(NOW)
    context = RuntimeContext(storage=storage, publisher=publisher, operator=None, clock=clock)
    poller = ZoneStatusPoller(context, FakeFeed(snapshots), zones, PollerConfig(confirm_count=2, cooldown_seconds=60))
    return poller, storage, publisher, clock


def _ticks(poller: ZoneStatusPoller, clock: FakeClock, count: int) -> list:
    async def run() -> list:
        results = []
        for _ in range(count):
            results.append(await poller.tick())
            clock.now += timedelta(seconds=30)
        return results

    return asyncio.run(run())


def test_read_zone_flag() -> None:
    assert read_zone_flag("NAP", 1, 0, frozenset({"A"})) is True
    assert read_zone_flag("NAP", 0, 0, frozenset({"A"})) is False
    assert read_zone_flag("NAP", 1, 1, frozenset({"A", "P"})) is True
    assert read_zone_flag("NAP", 3, 0, frozenset({"A"})) is None
    assert read_zone_flag("NAP", 0, -1, frozenset({"A"})) is None


def test_third_poll_commits_with_threshold_two() -> None:
    state = ZoneState(zone_key="25")
    assert advance_zone(state, False, NOW, 2, COOLDOWN) is None
    assert state.confirmed_active is False

    assert advance_zone(state, True, NOW + timedelta(seconds=30), 2, COOLDOWN) is None
    assert state.confirmed_active is False
    assert (state.pending_value, state.pending_count) == (True, 1)

    assert advance_zone(state, True, NOW + timedelta(seconds=60), 2, COOLDOWN) == TURNED_ON
    assert state.confirmed_active is True
    assert state.pending_value is None
    assert state.last_sent_at == NOW + timedelta(seconds=60)


def test_flip_back_within_cooldown_is_suppressed() -> None:
    sent_at = NOW
    state = ZoneState(zone_key="25", confirmed_active=True, last_sent_at=sent_at)

    assert advance_zone(state, False, sent_at + timedelta(seconds=10), 2, COOLDOWN) is None
    assert advance_zone(state, False, sent_at + timedelta(seconds=20), 2, COOLDOWN) is None
    assert state.confirmed_active is False
    assert state.last_sent_at == sent_at

    # Outside the cooldown the next committed change is announced again.
    advance_zone(state, True, sent_at + timedelta(seconds=90), 2, COOLDOWN)
    assert advance_zone(state, True, sent_at + timedelta(seconds=120), 2, COOLDOWN) == TURNED_ON


def test_interrupted_run_restarts_count() -> None:
    state = ZoneState(zone_key="25", confirmed_active=False)
    advance_zone(state, True, NOW, 3, COOLDOWN)
    advance_zone(state, True, NOW, 3, COOLDOWN)
    advance_zone(state, False, NOW, 3, COOLDOWN)
    assert (state.pending_value, state.pending_count) == (None, 0)
    assert advance_zone(state, True, NOW, 3, COOLDOWN) is None
    assert state.pending_count == 1


def test_threshold_one_commits_immediately() -> None:
    state = ZoneState(zone_key="25", confirmed_active=True)
    assert advance_zone(state, False, NOW, 1, COOLDOWN) == TURNED_OFF


def test_format_zone_batch() -> None:
    assert format_zone_batch(["Суми", "Чернігів"], True) == "🛑 Повітряна тривога: Суми, Чернігів"
    assert format_zone_batch(["Суми"], False, "14:05") == "✅ Відбій повітряної тривоги: Суми | 14:05"


def test_poller_emits_one_batched_announcement() -> None:
    zones = [Zone(uid=1, name="Чернігівська"), Zone(uid=2, name="Сумська")]
    poller, storage, publisher, clock = _poller(["NNN", "NAA", "NAA"], zones)

    results = _ticks(poller, clock, 3)

    assert results[0].turned_on == [] and results[1].turned_on == []
    assert results[2].turned_on == ["Чернігівська", "Сумська"]
    assert publisher.sent == [("@siverradar", "🛑 Повітряна тривога: Чернігівська, Сумська")]
    assert storage.states["1"].confirmed_active is True


def test_on_and_off_are_sent_separately() -> None:
    zones = [Zone(uid=0, name="A-зона"), Zone(uid=1, name="B-зона")]
    poller, _, publisher, clock = _poller(["AN", "NA", "NA"], zones, alerts_channel="@alerts")

    _ticks(poller, clock, 3)

    assert publisher.sent == [
        ("@alerts", "🛑 Повітряна тривога: B-зона"),
        ("@alerts", "✅ Відбій повітряної тривоги: A-зона"),
    ]


def test_failed_announcement_does_not_block_the_other_batch() -> None:
    zones = [Zone(uid=0, name="A-зона"), Zone(uid=1, name="B-зона")]
    publisher = FakePublisher(failing={"🛑"})
    poller, storage, _, clock = _poller(["AN", "NA", "NA"], zones, publisher)

    _ticks(poller, clock, 3)

    assert publisher.sent == [("@siverradar", "✅ Відбій повітряної тривоги: A-зона")]
    assert storage.states["1"].confirmed_active is True


def test_fetch_failure_leaves_state_untouched() -> None:
    zones = [Zone(uid=0, name="A-зона")]
    poller, storage, publisher, clock = _poller(["N", "A", StatusFeedError("timeout"), "", "A"], zones)

    results = _ticks(poller, clock, 5)

    assert results[2] is None and results[3] is None
    assert storage.saves == 3
    assert results[4].turned_on == ["A-зона"]
    assert publisher.sent == [("@siverradar", "🛑 Повітряна тривога: A-зона")]


def test_out_of_range_zone_is_skipped() -> None:
    zones = [Zone(uid=0, name="A-зона"), Zone(uid=7, name="Далека")]
    poller, storage, _, clock = _poller(["N"], zones)

    _ticks(poller, clock, 1)

    assert set(storage.states) == {"0"}


def test_poller_idle_without_destination_or_zones() -> None:
    poller, storage, publisher, clock = _poller(["A"], [Zone(uid=0, name="A-зона")], alerts_enabled=False)
    assert _ticks(poller, clock, 1) == [None]

    empty, _, _, clock = _poller(["A"], [])
    assert _ticks(empty, clock, 1) == [None]
    assert storage.saves == 0
    assert publisher.sent == []


def test_time_label_appended_when_enabled() -> None:
    poller, _, publisher, clock = _poller(["N", "A", "A"], [Zone(uid=0, name="A-зона")], alerts_include_time=True)
    _ticks(poller, clock, 3)
    text = publisher.sent[0][1]
    assert text.startswith("🛑 Повітряна тривога: A-зона | ")
    assert len(text.rsplit(" | ", 1)[1]) == 5


def test_raising_announcement_does_not_block_the_other_batch() -> None:
    zones = [Zone(uid=0, name="A-зона"), Zone(uid=1, name="B-зона")]
    publisher = FakePublisher(raising={"🛑"})
    poller, storage, _, clock = _poller(["AN", "NA", "NA"], zones, publisher)

    results = _ticks(poller, clock, 3)

    assert results[2].turned_on == ["B-зона"]
    assert publisher.sent == [("@siverradar", "✅ Відбій повітряної тривоги: A-зона")]
    assert storage.states["1"].confirmed_active is True


class BlockingFeed:
    def __init__(self, snapshot: str) -> None:
        self.snapshot = snapshot
        self.release = asyncio.Event()
        self.calls = 0

    async def fetch(self) -> str:
        self.calls += 1
        await self.release.wait()
        return self.snapshot


def test_overlapping_tick_is_skipped() -> None:
    async def run() -> None:
        storage = FakeStorage(BotSettings(target_channel="@siverradar"))
        context = RuntimeContext(storage=storage, publisher=FakePublisher(), operator=None, clock=FakeClock(NOW))
        feed = BlockingFeed("N")
        poller = ZoneStatusPoller(context, feed, [Zone(uid=0, name="A-зона")], PollerConfig())

        first = asyncio.create_task(poller.tick())
        await asyncio.sleep(0)
        assert await poller.tick() is None
        assert feed.calls == 1

        feed.release.set()
        result = await first
        assert result is not None
        assert storage.saves == 1

    asyncio.run(run())
