"""Shared operator-facing formatting helpers.

Keeping formatting here prevents drift between the queue card, listings and
panel texts. Everything is plain text; adapters send it without parse mode.
"""

from __future__ import annotations

from typing import Iterable

from core.models import BotSettings, QueueItem
from core.regions import REGION_KEYWORDS, REGION_TITLES

ORIGINAL_MAX_CHARS = 3800


def format_pending_card(item: QueueItem) -> str:
    """Card sent to the operator for a freshly queued item."""

    card = f"📝 Pending #{item.id}\nFrom: {item.source}\n\n{item.formatted_text}"
    if item.permalink:
        card = f"{card}\n\n🔗 {item.permalink}"
    return card


def format_original(item: QueueItem) -> str:
    raw = (item.raw_text or "")[:ORIGINAL_MAX_CHARS]
    return f"📄 Original (#{item.id}):\n\n{raw or '(empty)'}"


def format_queue_listing(items: Iterable[QueueItem], snippet_chars: int = 120) -> str:
    blocks = [
        f"#{item.id} • {item.source}\n{(item.formatted_text or '')[:snippet_chars]}"
        for item in items
    ]
    return "\n\n".join(blocks) if blocks else "Черга порожня."


def format_regions(settings: BotSettings) -> str:
    return ", ".join(sorted(settings.allowed_regions)) or "none"


def format_status(settings: BotSettings, sources_count: int, pending_count: int) -> str:
    """Panel summary shown by /panel and /status."""

    lines = [
        "🧩 Панель керування",
        "",
        f"• Mode: {settings.mode}",
        f"• Target: {settings.target_channel or 'не задан'}",
        f"• Sources: {sources_count}",
        f"• Regions: {format_regions(settings)}",
        f"• Dedup window: {settings.dedup_window_minutes} min",
        f"• Alerts: {'on' if settings.alerts_enabled else 'off'} → {settings.alerts_destination or 'не задан'}",
        f"• Pending approvals: {pending_count}",
    ]
    return "\n".join(lines)


def region_toggle_label(region: str, settings: BotSettings) -> str:
    mark = "✅" if region in settings.allowed_regions else "❌"
    return f"{REGION_TITLES.get(region, region)}: {mark}"


def known_regions() -> list[str]:
    return list(REGION_KEYWORDS)
