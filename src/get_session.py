"""Interactive login for the user session that reads source channels.

The bot session needs no login (it starts from BOT_TOKEN), so only the
reading account is authorized here. QR codes are refreshed when they expire
and a mistyped phone code can be retried.
"""

from __future__ import annotations

import asyncio
import logging
import os
from getpass import getpass

import qrcode
from dotenv import load_dotenv
from telethon import TelegramClient, errors

from client import build_client

LOGGER = logging.getLogger(__name__)

QR_ATTEMPTS = 3
QR_WAIT_SECONDS = 60
CODE_ATTEMPTS = 3

_MENU = {"1": "qr", "2": "phone"}


def _show_qr(url: str) -> None:
    code = qrcode.QRCode(border=1)
    code.add_data(url)
    code.make(fit=True)
    code.print_ascii(invert=True)
    print("Scan with Telegram: Settings > Devices > Link Desktop Device")


def _two_factor_password() -> str:
    return os.getenv("2FA") or getpass("2FA password: ")


def _choose_method() -> str:
    configured = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if configured in _MENU.values():
        return configured

    print("\nLogin method for the reading account:")
    print("[1] QR code\n[2] Phone code\n[3] Exit")
    while True:
        choice = input("siverradar > ").strip()
        if choice == "3":
            raise SystemExit(0)
        if choice in _MENU:
            return _MENU[choice]
        print("Please choose 1, 2 or 3.")


async def _login_qr(client: TelegramClient) -> None:
    qr_login = await client.qr_login()
    for attempt in range(1, QR_ATTEMPTS + 1):
        _show_qr(qr_login.url)
        try:
            await qr_login.wait(timeout=QR_WAIT_SECONDS)
            return
        except asyncio.TimeoutError:
            LOGGER.info("QR code expired (attempt %s/%s)", attempt, QR_ATTEMPTS)
            await qr_login.recreate()
    raise RuntimeError("QR login was not confirmed in time")


async def _login_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    for _ in range(CODE_ATTEMPTS):
        code = input("Login code: ").strip()
        try:
            await client.sign_in(phone=phone, code=code)
            return
        except errors.PhoneCodeInvalidError:
            print("Invalid code, try again.")
    raise RuntimeError("Too many invalid login codes")


async def authorize(client: TelegramClient) -> None:
    """Make sure `client` holds an authorized user (not bot) session."""

    load_dotenv()
    if not await client.is_user_authorized():
        login = _login_phone if _choose_method() == "phone" else _login_qr
        try:
            await login(client)
        except errors.SessionPasswordNeededError:
            await client.sign_in(password=_two_factor_password())

    me = await client.get_me()
    if getattr(me, "bot", False):
        raise RuntimeError("SESSION_NAME points to a bot session; bots cannot read channels")
    LOGGER.info("Reading account: %s", me.first_name)


async def main() -> None:
    client = build_client()
    await client.connect()
    try:
        await authorize(client)
    finally:
        await client.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
