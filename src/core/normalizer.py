"""Text normalization for inbound reports."""

from __future__ import annotations

import re

_SOURCE_LINK_RE = re.compile(r"https?://t\.me/[\w/]+", re.IGNORECASE)
_MENTION_RE = re.compile(r"\B@[a-zA-Z0-9_]{4,}")
_CLOCK_RE = re.compile(r"\b\d{1,2}:\d{2}\b")
_UPDATE_MARKER_RE = re.compile(
    r"\b(?:UPD|UPDATE|ОНОВЛЕНО|ОБНОВЛЕНО|АПД)\b\s*[:\-–—]?",
    re.IGNORECASE,
)
_EXCLAMATION_RUN_RE = re.compile(r"[‼!]{2,}")
_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(raw: str) -> str:
    """Strip links, mentions, clock times and update markers from a report.

    The function is total: empty or missing input yields an empty string.
    """

    if not raw:
        return ""

    # Removing one token can expose another (a handle glued to a clock time),
    # so passes repeat until the text is stable.
    text = collapse_whitespace(str(raw))
    while True:
        stripped = _strip_noise(text)
        if stripped == text:
            return text
        text = stripped


def _strip_noise(text: str) -> str:
    text = _SOURCE_LINK_RE.sub("", text)
    text = _CLOCK_RE.sub("", text)
    text = _UPDATE_MARKER_RE.sub("", text)
    text = _MENTION_RE.sub("", text)
    text = _EXCLAMATION_RUN_RE.sub("!", text)
    return collapse_whitespace(text)
