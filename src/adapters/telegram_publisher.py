"""Telegram publisher adapter.

Sends plain-text posts through a Telethon client authorized as the bot.
"""

from __future__ import annotations

import logging

from telethon import errors

LOGGER = logging.getLogger(__name__)


class TelegramPublisher:
    """Publisher adapter that satisfies the core PublisherPort contract."""

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, destination: str, text: str) -> bool:
        """Send `text` to a channel or chat; failures are logged, not raised."""

        try:
            await self._client.send_message(destination, text, parse_mode=None, link_preview=False)
        except (errors.RPCError, ValueError, ConnectionError):
            # ValueError covers entities Telethon cannot resolve (bad @username).
            LOGGER.exception("Failed to publish to %s", destination)
            return False
        return True
