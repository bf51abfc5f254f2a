"""Application entry point for the siverradar relay."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.operator_panel import OperatorPanel
from adapters.sqlite_storage import SQLiteStorage
from adapters.status_feed import HttpStatusFeed
from adapters.telegram_mapper import build_inbound
from adapters.telegram_publisher import TelegramPublisher
from client import build_bot_client, build_client
from core.context import RuntimeContext
from core.processor import ReportProcessor
from core.zones import ZoneStatusPoller
from get_session import authorize, main as login_main

NAME = "SIVERRADAR"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/siverradar.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Per-logger overrides, e.g. quieting Telethon reconnect chatter.
    for name, override in (config.get("levels") or {}).items():
        logging.getLogger(name).setLevel(str(override).upper())


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"{name} is required in environment")
    return value


async def _serve() -> None:
    logger = logging.getLogger(__name__)
    load_dotenv()

    bot_token = _required_env("BOT_TOKEN")
    admin_id = int(_required_env("ADMIN_ID"))

    storage = SQLiteStorage(settings.DB_PATH, settings.DEFAULT_SETTINGS)
    storage.init_db()
    storage.seed(settings.SEED_SOURCES, settings.SEED_PLACES)
    logger.info("%s sources are tracked", len(storage.list_sources()))

    client = build_client()
    await client.connect()
    await authorize(client)

    bot = build_bot_client()
    await bot.start(bot_token=bot_token)

    # The operator panel needs the router, which needs the context, so the
    # operator is attached once the panel exists.
    context = RuntimeContext(storage=storage, publisher=TelegramPublisher(bot), operator=None)
    processor = ReportProcessor(context, settings.DEDUP_CONFIG)
    panel = OperatorPanel(bot, admin_id, processor.router, storage)
    context.operator = panel
    panel.register()

    # Single handler keeps Telethon integration minimal and defers all filtering
    # to the core processor.
    @client.on(events.NewMessage(incoming=True))
    async def handler(event) -> None:
        try:
            outcome = await processor.handle(build_inbound(event.message))
            logger.debug("Message %s from %s: %s", event.message.id, event.chat_id, outcome.value)
        except Exception:
            logger.exception("Error while processing message")

    feed = HttpStatusFeed(
        settings.ALERTS_URL,
        os.getenv("ALERTS_TOKEN", ""),
        auth_header=settings.ALERTS_AUTH_HEADER,
        auth_prefix=settings.ALERTS_AUTH_PREFIX,
    )
    poller = ZoneStatusPoller(context, feed, settings.ZONES, settings.POLLER_CONFIG)
    stop_event = asyncio.Event()
    poller_task = None
    if settings.ZONES and settings.ALERTS_URL:
        poller_task = asyncio.create_task(poller.run(stop_event))
        logger.info("Zone poller started for %s zones", len(settings.ZONES))
    else:
        logger.info("Zone poller disabled: no zones or feed url configured")

    logger.info("Clients connected. Listening for incoming messages...")
    try:
        await client.run_until_disconnected()
    finally:
        stop_event.set()
        if poller_task is not None:
            poller_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller_task
        await feed.close()
        await bot.disconnect()
        await client.disconnect()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logging.getLogger(__name__).info("Starting siverradar")
    asyncio.run(_serve())


def _login() -> None:
    _print_banner()
    _configure_logging()
    asyncio.run(login_main())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="siverradar")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the relay and the zone poller")
    subparsers.add_parser("login", help="Authorize the user session that reads sources")

    args = parser.parse_args(argv)
    if args.command == "login":
        _login()
        return
    _run()


if __name__ == "__main__":
    main()
