"""Helpers for working with source keys.

A source key is either `@username` (lower-cased) or `chat_id:<int>` for
chats without a public username.
"""

from __future__ import annotations

import re

CHAT_ID_PREFIX = "chat_id:"

_LINK_PREFIXES = ("https://t.me/", "http://t.me/", "t.me/")
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{4,}$")


def normalize_source_key(raw_value: str) -> str:
    """Return the canonical key for an operator-typed source, or "" if invalid.

    Accepts `@name`, `name`, `t.me/name`, `https://t.me/name` and
    `chat_id:<int>`.
    """

    value = (raw_value or "").strip()
    if not value:
        return ""

    if value.startswith(CHAT_ID_PREFIX):
        try:
            return f"{CHAT_ID_PREFIX}{int(value[len(CHAT_ID_PREFIX):])}"
        except ValueError:
            return ""

    for prefix in _LINK_PREFIXES:
        if value.lower().startswith(prefix):
            value = value[len(prefix):].split("/", 1)[0]
            break

    username = value[1:] if value.startswith("@") else value
    if not _USERNAME_RE.match(username):
        return ""
    return f"@{username.lower()}"
