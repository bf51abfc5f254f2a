"""SQLite storage adapter.

Implements the core storage ports using a single SQLite database file.
"""

from __future__ import annotations

from dataclasses import asdict, fields
from datetime import datetime, timedelta
import json
import sqlite3
from typing import Any, Iterable, Optional

from core.models import MODES, BotSettings, QueueItem, QueueStatus, ZoneState
from core.regions import normalize_place, normalize_region
from core.source_keys import normalize_source_key

_SETTING_FIELDS = {item.name for item in fields(BotSettings)}


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the core storage ports."""

    def __init__(self, db_path: str, defaults: Optional[BotSettings] = None) -> None:
        self._db_path = db_path
        self._defaults = defaults or BotSettings()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - settings: runtime settings as JSON values keyed by field name
        - sources: tracked source keys
        - places: extra place names per region
        - dedup: structural digests with the time they were last published
        - queue: append-only approval queue
        - zone_state: per-zone hysteresis state
        """

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE TABLE IF NOT EXISTS sources (source_key TEXT PRIMARY KEY)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS places (
                    region TEXT NOT NULL,
                    place TEXT NOT NULL,
                    PRIMARY KEY (region, place)
                )
                """
            )
            # marked_at is refreshed on every publication of the same digest.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS dedup (
                    digest TEXT PRIMARY KEY,
                    marked_at TIMESTAMP NOT NULL
                )
                """
            )
            # AUTOINCREMENT guarantees ids are never reused, keeping them monotonic.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS queue (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT,
                    raw_text TEXT,
                    formatted_text TEXT,
                    dedup_hash TEXT,
                    status TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    permalink TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS zone_state (
                    zone_key TEXT PRIMARY KEY,
                    confirmed_active INTEGER,
                    pending_value INTEGER,
                    pending_count INTEGER NOT NULL,
                    last_sent_at TIMESTAMP
                )
                """
            )

    def seed(self, sources: Iterable[str], places: dict[str, list[str]]) -> None:
        """Insert configured sources and places on first start only."""

        with self._connect() as conn:
            has_sources = conn.execute("SELECT 1 FROM sources LIMIT 1").fetchone()
            has_places = conn.execute("SELECT 1 FROM places LIMIT 1").fetchone()
        if not has_sources:
            for source in sources:
                self.add_source(source)
        if not has_places:
            for region, names in places.items():
                for name in names:
                    self.add_place(region, name)

    # --- Settings ---

    def get_settings(self) -> BotSettings:
        with self._connect() as conn:
            rows = conn.execute("SELECT name, value FROM settings").fetchall()
        stored = {row["name"]: json.loads(row["value"]) for row in rows if row["name"] in _SETTING_FIELDS}
        values = {**asdict(self._defaults), **stored}
        values["allowed_regions"] = frozenset(values.get("allowed_regions") or ())
        return BotSettings(**values)

    def update_settings(self, **patch: Any) -> BotSettings:
        unknown = set(patch) - _SETTING_FIELDS
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "mode" in patch and patch["mode"] not in MODES:
            raise ValueError(f"Unsupported mode: {patch['mode']}")
        if "allowed_regions" in patch:
            patch["allowed_regions"] = sorted(patch["allowed_regions"])

        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO settings (name, value) VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET value = excluded.value
                """,
                [(name, json.dumps(value, ensure_ascii=False)) for name, value in patch.items()],
            )
        return self.get_settings()

    # --- Sources ---

    def list_sources(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT source_key FROM sources ORDER BY source_key").fetchall()
        return [row["source_key"] for row in rows]

    def add_source(self, source_key: str) -> bool:
        normalized = normalize_source_key(source_key)
        if not normalized:
            return False
        with self._connect() as conn:
            conn.execute("INSERT OR IGNORE INTO sources (source_key) VALUES (?)", (normalized,))
        return True

    def remove_source(self, source_key: str) -> bool:
        normalized = normalize_source_key(source_key)
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM sources WHERE source_key = ?", (normalized,))
            return cur.rowcount > 0

    # --- Places ---

    def get_places(self) -> dict[str, list[str]]:
        with self._connect() as conn:
            rows = conn.execute("SELECT region, place FROM places ORDER BY region, place").fetchall()
        places: dict[str, list[str]] = {}
        for row in rows:
            places.setdefault(row["region"], []).append(row["place"])
        return places

    def add_place(self, region: str, place: str) -> bool:
        region_id = normalize_region(region)
        name = normalize_place(place)
        if not region_id or not name:
            return False
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO places (region, place) VALUES (?, ?)",
                (region_id, name),
            )
        return True

    def remove_place(self, region: str, place: str) -> bool:
        region_id = normalize_region(region)
        name = normalize_place(place)
        if not region_id or not name:
            return False
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM places WHERE region = ? AND place = ?",
                (region_id, name),
            )
            return cur.rowcount > 0

    # --- Dedup ---

    def is_seen(self, digest: str, window_minutes: int, now: datetime) -> bool:
        """Check if a digest was marked within the window."""

        cutoff = now - timedelta(minutes=window_minutes)
        with self._connect() as conn:
            row = conn.execute("SELECT marked_at FROM dedup WHERE digest = ?", (digest,)).fetchone()
        return row is not None and datetime.fromisoformat(row["marked_at"]) > cutoff

    def mark_seen(self, digest: str, now: datetime) -> None:
        """Insert a digest or refresh its timestamp."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO dedup (digest, marked_at) VALUES (?, ?)
                ON CONFLICT(digest) DO UPDATE SET marked_at = excluded.marked_at
                """,
                (digest, now.isoformat()),
            )

    def cleanup_seen(self, window_minutes: int, now: datetime) -> int:
        """Delete digests older than the window and return the number removed."""

        cutoff = now - timedelta(minutes=window_minutes)
        with self._connect() as conn:
            rows = conn.execute("SELECT digest, marked_at FROM dedup").fetchall()
            expired = [
                (row["digest"],) for row in rows if datetime.fromisoformat(row["marked_at"]) <= cutoff
            ]
            conn.executemany("DELETE FROM dedup WHERE digest = ?", expired)
        return len(expired)

    # --- Queue ---

    def queue_add(
        self,
        source: str,
        raw_text: str,
        formatted_text: str,
        dedup_hash: str,
        created_at: datetime,
        permalink: Optional[str] = None,
    ) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO queue (source, raw_text, formatted_text, dedup_hash, status, created_at, permalink)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    source,
                    raw_text,
                    formatted_text,
                    dedup_hash,
                    QueueStatus.PENDING.value,
                    created_at.isoformat(),
                    permalink,
                ),
            )
            return int(cur.lastrowid)

    def queue_get(self, item_id: int) -> Optional[QueueItem]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM queue WHERE id = ?", (item_id,)).fetchone()
        return _queue_item(row) if row else None

    def queue_set_status(self, item_id: int, status: QueueStatus) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE queue SET status = ? WHERE id = ?",
                (QueueStatus(status).value, item_id),
            )
            return cur.rowcount > 0

    def queue_list(self, status: QueueStatus, limit: int) -> list[QueueItem]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM queue WHERE status = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (QueueStatus(status).value, limit),
            ).fetchall()
        return [_queue_item(row) for row in rows]

    def queue_count(self, status: QueueStatus) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM queue WHERE status = ?",
                (QueueStatus(status).value,),
            ).fetchone()
        return int(row["total"])

    # --- Zones ---

    def load_zone_states(self) -> dict[str, ZoneState]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM zone_state").fetchall()
        return {
            row["zone_key"]: ZoneState(
                zone_key=row["zone_key"],
                confirmed_active=_optional_bool(row["confirmed_active"]),
                pending_value=_optional_bool(row["pending_value"]),
                pending_count=int(row["pending_count"]),
                last_sent_at=_optional_datetime(row["last_sent_at"]),
            )
            for row in rows
        }

    def save_zone_states(self, states: Iterable[ZoneState]) -> None:
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO zone_state (zone_key, confirmed_active, pending_value, pending_count, last_sent_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(zone_key) DO UPDATE SET
                    confirmed_active = excluded.confirmed_active,
                    pending_value = excluded.pending_value,
                    pending_count = excluded.pending_count,
                    last_sent_at = excluded.last_sent_at
                """,
                [
                    (
                        state.zone_key,
                        state.confirmed_active,
                        state.pending_value,
                        state.pending_count,
                        state.last_sent_at.isoformat() if state.last_sent_at else None,
                    )
                    for state in states
                ],
            )


def _queue_item(row: sqlite3.Row) -> QueueItem:
    return QueueItem(
        id=int(row["id"]),
        source=row["source"],
        raw_text=row["raw_text"],
        formatted_text=row["formatted_text"],
        dedup_hash=row["dedup_hash"],
        status=QueueStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        permalink=row["permalink"],
    )


def _optional_bool(value: Optional[int]) -> Optional[bool]:
    return None if value is None else bool(value)


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
