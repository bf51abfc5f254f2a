"""Static configuration for siverradar.

Policy constants, seed lists and zone definitions live in a single JSON
file; secrets stay in the environment (.env). Runtime settings that the
operator edits from the bot are persisted by the storage adapter and only
seeded from here.
"""

import json
import os

from core.config import DedupConfig, PollerConfig
from core.models import BotSettings, Zone
from core.regions import normalize_region

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite database.
DB_PATH = os.getenv("STORE_PATH") or os.path.join(PROJECT_ROOT, "siverradar.db")

CONFIG_PATH = os.getenv("CONFIG_PATH") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _load_zones(raw_zones: list[dict]) -> list[Zone]:
    """Keep zones with a non-negative integer uid and a non-empty name."""

    zones: list[Zone] = []
    for entry in raw_zones:
        try:
            uid = int(entry.get("uid"))
        except (TypeError, ValueError):
            continue
        name = str(entry.get("name") or "").strip()
        if uid >= 0 and name:
            zones.append(Zone(uid=uid, name=name))
    return zones


_CONFIG = _load_json_config()

# Seed lists, only applied to an empty database.
SEED_SOURCES = list(_CONFIG.get("sources", []))
SEED_PLACES = {
    region: list(names)
    for region, names in (_CONFIG.get("places") or {}).items()
    if normalize_region(region)
}

ZONES = _load_zones(_CONFIG.get("zones", []))

_dedup = _CONFIG.get("dedup", {})
DEDUP_CONFIG = DedupConfig(
    similarity_threshold=float(_dedup.get("similarity_threshold", 0.85)),
    min_token_length=int(_dedup.get("min_token_length", 3)),
)

# Zone feed polling. The token is a secret and comes from the environment.
_alerts = _CONFIG.get("alerts", {})
ALERTS_URL = os.getenv("ALERTS_URL") or _alerts.get("url", "")
ALERTS_AUTH_HEADER = _alerts.get("auth_header", "Authorization")
ALERTS_AUTH_PREFIX = _alerts.get("auth_prefix", "Bearer")
POLLER_CONFIG = PollerConfig(
    poll_seconds=int(_alerts.get("poll_seconds", 30)),
    confirm_count=int(_alerts.get("confirm_count", 2)),
    cooldown_seconds=int(_alerts.get("cooldown_seconds", 60)),
    index_offset=int(_alerts.get("index_offset", 0)),
    active_symbols=frozenset(_alerts.get("active_symbols", ["A"])),
)

# Initial runtime settings for a fresh database.
_defaults = _CONFIG.get("defaults", {})
DEFAULT_SETTINGS = BotSettings(
    mode=_defaults.get("mode", "manual"),
    target_channel=_defaults.get("target_channel", ""),
    allowed_regions=frozenset(_defaults.get("allowed_regions", ["chernihiv", "sumy"])),
    dedup_window_minutes=int(_dedup.get("window_minutes", 60)),
    alerts_enabled=bool(_defaults.get("alerts_enabled", True)),
    alerts_channel=_defaults.get("alerts_channel", ""),
    alerts_include_time=bool(_defaults.get("alerts_include_time", False)),
)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
