"""Telegram client factories for siverradar.

Two clients run side by side: a user session that reads the monitored
channels, and a bot session that publishes posts and serves the operator.
We explicitly manage both lifecycles so it is obvious when sessions are
created and when they end.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def _api_credentials() -> tuple[int, str]:
    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    return int(api_id), api_hash


def build_client() -> TelegramClient:
    """Create the user client that reads source channels.

    The session name defaults to "siverradar" to create a local .session file.
    """

    api_id, api_hash = _api_credentials()
    session_name = os.getenv("SESSION_NAME", "siverradar")

    logging.getLogger(__name__).info("Initializing Telegram user client")

    return TelegramClient(session_name, api_id, api_hash)


def build_bot_client() -> TelegramClient:
    """Create the (not yet started) bot client used for publishing."""

    api_id, api_hash = _api_credentials()
    session_name = os.getenv("BOT_SESSION_NAME", "siverradar-bot")

    logging.getLogger(__name__).info("Initializing Telegram bot client")

    return TelegramClient(session_name, api_id, api_hash)
