"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

from typing import Optional

from telethon.tl.custom import Message
from telethon.tl.types import PeerChannel, PeerChat

from core.models import InboundMessage


def source_key_from_message(message: Message) -> str:
    """Normalize a source key using a single rule enforced across the app."""

    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)

    if isinstance(username, str) and username:
        return f"@{username.lower()}"

    # Fallback: always stable and universal
    return f"chat_id:{message.chat_id}"


def _permalink(message: Message) -> Optional[str]:
    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)
    if isinstance(username, str) and username:
        return f"https://t.me/{username}/{message.id}"

    # Private groups/supergroups/channels can use the /c/ links.
    peer_id = getattr(message, "peer_id", None)
    if isinstance(peer_id, PeerChannel):
        return f"https://t.me/c/{peer_id.channel_id}/{message.id}"
    if isinstance(peer_id, PeerChat):
        return f"https://t.me/c/{peer_id.chat_id}/{message.id}"
    return None


def build_inbound(message: Message) -> InboundMessage:
    """Build a core InboundMessage from a Telethon Message."""

    return InboundMessage(
        source_key=source_key_from_message(message),
        text=message.raw_text or "",
        permalink=_permalink(message),
    )
