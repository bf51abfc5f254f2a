from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from adapters.sqlite_storage import SQLiteStorage
from core.approval_queue import ApprovalQueue
from core.models import QueueStatus

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _queue(tmp_path) -> ApprovalQueue:
    storage = SQLiteStorage(str(tmp_path / "queue.db"))
    storage.init_db()
    return ApprovalQueue(storage)


def _add(queue: ApprovalQueue, text: str, minutes: int = 0) -> int:
    return queue.add(
        source="@source",
        raw_text=text,
        formatted_text=f"🛸 БПЛА: {text}.",
        dedup_hash=f"hash-{text}",
        created_at=NOW + timedelta(minutes=minutes),
    )


def test_ids_are_strictly_increasing(tmp_path) -> None:
    queue = _queue(tmp_path)
    ids = [_add(queue, f"item {index}", index) for index in range(4)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)
    assert queue.get(ids[0]).status is QueueStatus.PENDING


def test_unknown_id_returns_false_and_changes_nothing(tmp_path) -> None:
    queue = _queue(tmp_path)
    _add(queue, "one")
    assert queue.set_status(999, QueueStatus.APPROVED) is False
    assert queue.count_pending() == 1


def test_decisions_are_terminal(tmp_path) -> None:
    queue = _queue(tmp_path)
    item_id = _add(queue, "one")
    assert queue.set_status(item_id, QueueStatus.REJECTED) is True
    assert queue.set_status(item_id, QueueStatus.APPROVED) is False
    assert queue.get(item_id).status is QueueStatus.REJECTED
    assert queue.count_pending() == 0


def test_pending_is_not_a_decision(tmp_path) -> None:
    queue = _queue(tmp_path)
    item_id = _add(queue, "one")
    with pytest.raises(ValueError):
        queue.set_status(item_id, QueueStatus.PENDING)


def test_list_pending_newest_first(tmp_path) -> None:
    queue = _queue(tmp_path)
    first = _add(queue, "old", 0)
    second = _add(queue, "mid", 5)
    third = _add(queue, "new", 10)
    queue.set_status(second, QueueStatus.APPROVED)

    pending = queue.list_pending(limit=10)
    assert [item.id for item in pending] == [third, first]
    assert [item.id for item in queue.list_pending(limit=1)] == [third]
