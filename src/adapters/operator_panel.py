"""Operator surface over the Telegram bot.

Queue cards carry approve / reject / original buttons; admin commands edit
runtime settings, sources and places. Every action maps onto a core call.
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Optional

from telethon import Button, errors, events

from adapters.notification_formatting import (
    format_original,
    format_pending_card,
    format_queue_listing,
    format_status,
    known_regions,
    region_toggle_label,
)
from core.models import MODE_AUTO, MODE_MANUAL, MODES, Outcome, QueueItem
from core.regions import normalize_region
from core.router import PublicationRouter
from core.source_keys import normalize_source_key

LOGGER = logging.getLogger(__name__)

_COMMAND_RE = re.compile(r"^/(\w+)(?:@\w+)?(?:\s+(.*))?$", re.DOTALL)

_APPROVE_ANSWERS = {
    Outcome.APPROVED: "Опубліковано",
    Outcome.MISSING: "Немає в черзі",
    Outcome.NO_TARGET: "Target не задан",
    Outcome.SEND_FAILED: "Не вдалося опублікувати",
}


def queue_buttons(item_id: int) -> list[list[Button]]:
    return [
        [
            Button.inline("✅ Approve", f"q:approve:{item_id}".encode()),
            Button.inline("❌ Reject", f"q:reject:{item_id}".encode()),
        ],
        [Button.inline("👁 Original", f"q:orig:{item_id}".encode())],
    ]


class OperatorPanel:
    """Satisfies the core OperatorPort and serves the admin commands."""

    def __init__(self, client, admin_id: int, router: PublicationRouter, storage) -> None:
        self._client = client
        self._admin_id = admin_id
        self._router = router
        self._storage = storage
        self._commands: dict[str, Callable[[str], Awaitable[str]]] = {
            "status": self._cmd_status,
            "mode": self._cmd_mode,
            "target": self._cmd_target,
            "sources": self._cmd_sources,
            "source_add": self._cmd_source_add,
            "source_del": self._cmd_source_del,
            "places": self._cmd_places,
            "place_add": self._cmd_place_add,
            "place_del": self._cmd_place_del,
            "queue": self._cmd_queue,
            "window": self._cmd_window,
            "alerts": self._cmd_alerts,
        }

    def register(self) -> None:
        self._client.add_event_handler(self._on_command, events.NewMessage(pattern=r"^/\w+"))
        self._client.add_event_handler(self._on_callback, events.CallbackQuery())

    async def notify_pending(self, item: QueueItem) -> None:
        await self._client.send_message(
            self._admin_id,
            format_pending_card(item),
            buttons=queue_buttons(item.id),
            parse_mode=None,
            link_preview=False,
        )

    def _panel_buttons(self) -> list[list[Button]]:
        settings = self._storage.get_settings()
        mode_label = "MANUAL" if settings.mode == MODE_MANUAL else "AUTO"
        return [
            [Button.inline(f"Mode: {mode_label}", b"panel:mode")],
            [
                Button.inline(region_toggle_label(region, settings), f"panel:region:{region}".encode())
                for region in known_regions()
            ],
            [
                Button.inline(f"Pending: {self._router.queue.count_pending()}", b"panel:queue"),
                Button.inline("Status", b"panel:status"),
            ],
        ]

    def _status_text(self) -> str:
        return format_status(
            self._storage.get_settings(),
            len(self._storage.list_sources()),
            self._router.queue.count_pending(),
        )

    # --- Commands ---

    async def _on_command(self, event) -> None:
        try:
            match = _COMMAND_RE.match(event.raw_text or "")
            if not match:
                return
            name, args = match.group(1).lower(), (match.group(2) or "").strip()

            if event.sender_id != self._admin_id:
                if name == "start":
                    await event.respond("Бот працює. (доступ до панелі — тільки адміну)")
                return

            if name == "start":
                await event.respond("Готовий. Відкрий панель: /panel")
            elif name == "panel":
                await event.respond(self._status_text(), buttons=self._panel_buttons(), parse_mode=None)
            elif name in self._commands:
                await event.respond(await self._commands[name](args), parse_mode=None)
        except Exception:
            LOGGER.exception("Error while handling operator command")

    async def _cmd_status(self, args: str) -> str:
        return self._status_text()

    async def _cmd_mode(self, args: str) -> str:
        mode = args.lower()
        if mode not in MODES:
            return "Використання: /mode manual або /mode auto"
        self._storage.update_settings(mode=mode)
        return f"Mode set to: {mode}"

    async def _cmd_target(self, args: str) -> str:
        target = normalize_source_key(args)
        if not target:
            return "Невірний формат. Приклад: /target @siverradar"
        self._storage.update_settings(target_channel=target)
        return f"Target встановлено: {target}"

    async def _cmd_sources(self, args: str) -> str:
        sources = self._storage.list_sources()
        return "\n".join(sources) if sources else "Sources порожні. Додай: /source_add @channel"

    async def _cmd_source_add(self, args: str) -> str:
        source = normalize_source_key(args)
        if not source or not self._storage.add_source(source):
            return "Невірний канал. Приклад: /source_add @channel"
        return f"Додано: {source}"

    async def _cmd_source_del(self, args: str) -> str:
        source = normalize_source_key(args)
        if not source:
            return "Невірний канал. Приклад: /source_del @channel"
        removed = self._storage.remove_source(source)
        return f"Видалено: {source}" if removed else f"Не знайдено: {source}"

    async def _cmd_places(self, args: str) -> str:
        region = normalize_region(args)
        if not region:
            return "Використання: /places chernihiv|sumy"
        places = self._storage.get_places().get(region, [])
        return "\n".join(places) if places else f"Місць для {region} немає."

    def _region_and_place(self, args: str) -> tuple[Optional[str], str]:
        region_arg, _, place = args.partition(" ")
        return normalize_region(region_arg), place.strip()

    async def _cmd_place_add(self, args: str) -> str:
        region, place = self._region_and_place(args)
        if not region or not self._storage.add_place(region, place):
            return "Використання: /place_add chernihiv <назва>"
        return f"Додано до {region}: {place}"

    async def _cmd_place_del(self, args: str) -> str:
        region, place = self._region_and_place(args)
        if not region or not place:
            return "Використання: /place_del chernihiv <назва>"
        removed = self._storage.remove_place(region, place)
        return f"Видалено з {region}: {place}" if removed else f"Не знайдено: {place}"

    async def _cmd_queue(self, args: str) -> str:
        return format_queue_listing(self._router.queue.list_pending(10))

    async def _cmd_window(self, args: str) -> str:
        try:
            minutes = int(args)
        except ValueError:
            minutes = 0
        if minutes <= 0:
            return "Використання: /window 60"
        self._storage.update_settings(dedup_window_minutes=minutes)
        return f"Dedup window: {minutes} min"

    async def _cmd_alerts(self, args: str) -> str:
        option = args.lower()
        if option in {"on", "off"}:
            self._storage.update_settings(alerts_enabled=option == "on")
        elif option in {"time", "notime"}:
            self._storage.update_settings(alerts_include_time=option == "time")
        elif option.startswith("channel"):
            channel = normalize_source_key(option[len("channel"):])
            if not channel:
                return "Використання: /alerts channel @channel"
            self._storage.update_settings(alerts_channel=channel)
        else:
            return "Використання: /alerts on|off|time|notime|channel @channel"
        return self._status_text()

    # --- Callbacks ---

    async def _on_callback(self, event) -> None:
        try:
            if event.sender_id != self._admin_id:
                return
            data = (event.data or b"").decode("utf-8", errors="replace")
            kind, _, rest = data.partition(":")
            if kind == "q":
                action, _, raw_id = rest.partition(":")
                await self._on_queue_action(event, action, int(raw_id))
            elif kind == "panel":
                await self._on_panel_action(event, rest)
            else:
                await event.answer()
        except Exception:
            LOGGER.exception("Error while handling operator callback")

    async def _on_queue_action(self, event, action: str, item_id: int) -> None:
        if action == "approve":
            outcome = await self._router.approve(item_id)
            await event.answer(_APPROVE_ANSWERS[outcome])
            if outcome is Outcome.NO_TARGET:
                await event.respond("Спочатку задай target: /target @channel")
            elif outcome is Outcome.APPROVED:
                await self._mark_card(event, "✅ Approved")
        elif action == "reject":
            outcome = await self._router.reject(item_id)
            if outcome is Outcome.MISSING:
                await event.answer("Немає в черзі")
                return
            await event.answer("Відхилено")
            await self._mark_card(event, "❌ Rejected")
        elif action == "orig":
            item = self._router.queue.get(item_id)
            if item is None:
                await event.answer("Немає")
                return
            await event.answer()
            await event.respond(format_original(item), parse_mode=None, link_preview=False)
        else:
            await event.answer()

    async def _mark_card(self, event, label: str) -> None:
        try:
            await event.edit(buttons=[[Button.inline(label, b"nop")]])
        except errors.RPCError:
            LOGGER.debug("Could not update queue card buttons", exc_info=True)

    async def _on_panel_action(self, event, action: str) -> None:
        settings = self._storage.get_settings()
        if action == "mode":
            next_mode = MODE_AUTO if settings.mode == MODE_MANUAL else MODE_MANUAL
            self._storage.update_settings(mode=next_mode)
            await event.answer(f"Mode: {next_mode}")
            await event.edit(self._status_text(), buttons=self._panel_buttons(), parse_mode=None)
        elif action.startswith("region:"):
            region = normalize_region(action.split(":", 1)[1])
            if region:
                self._storage.update_settings(allowed_regions=settings.allowed_regions ^ {region})
            await event.answer()
            await event.edit(self._status_text(), buttons=self._panel_buttons(), parse_mode=None)
        elif action == "queue":
            await event.answer()
            await event.respond(format_queue_listing(self._router.queue.list_pending(5), 160), parse_mode=None)
        else:
            await event.answer()
            await event.respond(self._status_text(), buttons=self._panel_buttons(), parse_mode=None)
