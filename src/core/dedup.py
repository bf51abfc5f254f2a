"""Deduplication helpers (core domain).

Two mechanisms are composed:
- a structural key (category, regions, destination, origin) hashed to a
  digest and checked against a time-windowed store;
- a token-set fingerprint compared by Jaccard similarity, used only for
  reports without any extractable route.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
import hashlib
import logging
import re
import unicodedata
from typing import Deque, Iterable, Optional

from core.config import DedupConfig
from core.models import Report
from core.ports import DedupStorePort

LOGGER = logging.getLogger(__name__)

STOPWORDS = frozenset(
    {
        "курс", "напрямок", "напрям", "летить", "рухається", "рух", "повідомляють", "увага",
        "upd", "апд", "оновлення", "інфо", "info", "район", "область", "обл", "місто",
    }
)

_KEY_JUNK_RE = re.compile(r"[^a-zа-яіїєґ0-9\s-]", re.IGNORECASE)
_URL_RE = re.compile(r"https?://\S+")
_CLOCK_RE = re.compile(r"\b\d{1,2}[:.]\d{2}\b")
_NUMBER_RE = re.compile(r"\b\d+\b")
_NON_LETTER_RE = re.compile(r"[^a-zа-яіїєґ\s]", re.IGNORECASE)


def _strip_marks(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _key_part(value: str) -> str:
    text = _strip_marks((value or "").lower().replace("ё", "е"))
    text = _KEY_JUNK_RE.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def _digest(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def structural_key(report: Report) -> str:
    """Readable structural key: `category|regions|to:<dest>|from:<origin>`."""

    regions = ",".join(sorted(report.regions)) or "unknown"
    return "|".join(
        [
            report.category.value,
            regions,
            f"to:{_key_part(report.destination) or '-'}",
            f"from:{_key_part(report.origin) or '-'}",
        ]
    )


def tokenize(text: str, min_length: int = 3) -> frozenset[str]:
    """Token set used for similarity: lower-cased words without noise."""

    lowered = (text or "").lower()
    lowered = _URL_RE.sub(" ", lowered)
    lowered = _CLOCK_RE.sub(" ", lowered)
    lowered = _NUMBER_RE.sub(" ", lowered)
    lowered = _NON_LETTER_RE.sub(" ", lowered)
    return frozenset(
        word for word in lowered.split() if len(word) >= min_length and word not in STOPWORDS
    )


def jaccard(left: Iterable[str], right: Iterable[str]) -> float:
    """|A ∩ B| / |A ∪ B|, or 0 when either set is empty."""

    left_set = set(left)
    right_set = set(right)
    if not left_set or not right_set:
        return 0.0
    union = left_set | right_set
    return len(left_set & right_set) / len(union)


def dedup_key(report: Report, min_token_length: int = 3) -> str:
    """Return the digest recorded when a report is published.

    Route-less reports have no structural signal, so their key falls back to
    the token set to still block verbatim repeats.
    """

    if report.has_route:
        return _digest(structural_key(report))
    tokens = " ".join(sorted(tokenize(report.normalized_text, min_token_length)))
    regions = ",".join(sorted(report.regions)) or "unknown"
    return _digest(f"{report.category.value}|{regions}|text:{tokens}")


@dataclass(frozen=True)
class SimilarityFingerprint:
    tokens: frozenset[str]
    timestamp: datetime


class SimilarityWindow:
    """In-memory list of recent fingerprints, pruned by age."""

    def __init__(self) -> None:
        self._items: Deque[SimilarityFingerprint] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def prune(self, window_minutes: int, now: datetime) -> None:
        cutoff = now - timedelta(minutes=window_minutes)
        # Items are appended in time order, so the oldest sit on the left.
        while self._items and self._items[0].timestamp < cutoff:
            self._items.popleft()

    def best_match(self, tokens: frozenset[str]) -> float:
        return max((jaccard(tokens, item.tokens) for item in self._items), default=0.0)

    def add(self, tokens: frozenset[str], now: datetime) -> None:
        self._items.append(SimilarityFingerprint(tokens=tokens, timestamp=now))


@dataclass(frozen=True)
class DedupVerdict:
    duplicate: bool
    digest: str
    reason: Optional[str] = None
    similarity: float = 0.0
    tokens: frozenset[str] = frozenset()


class DedupEngine:
    """Checks reports against the dedup store and the similarity window.

    `check` records nothing. `mark` records the digest and, for route-less
    reports, the similarity fingerprint; callers only invoke it once a report
    is actually published.
    """

    def __init__(self, store: DedupStorePort, config: Optional[DedupConfig] = None) -> None:
        self._store = store
        self._config = config or DedupConfig()
        self._window = SimilarityWindow()

    def check(self, report: Report, window_minutes: int, now: datetime) -> DedupVerdict:
        self._store.cleanup_seen(window_minutes, now)
        digest = dedup_key(report, self._config.min_token_length)

        if self._store.is_seen(digest, window_minutes, now):
            return DedupVerdict(duplicate=True, digest=digest, reason="exact")

        if report.has_route:
            return DedupVerdict(duplicate=False, digest=digest)

        tokens = tokenize(report.normalized_text, self._config.min_token_length)
        self._window.prune(window_minutes, now)
        score = self._window.best_match(tokens)
        if score >= self._config.similarity_threshold:
            LOGGER.debug("Similarity %.2f against recent report", score)
            return DedupVerdict(duplicate=True, digest=digest, reason="similar", similarity=score)

        return DedupVerdict(duplicate=False, digest=digest, similarity=score, tokens=tokens)

    def fingerprint(self, report: Report) -> frozenset[str]:
        """Token set recorded on publication; empty when the report has a route."""

        if report.has_route:
            return frozenset()
        return tokenize(report.normalized_text, self._config.min_token_length)

    def mark(self, digest: str, now: datetime, tokens: frozenset[str] = frozenset()) -> None:
        self._store.mark_seen(digest, now)
        if tokens:
            self._window.add(tokens, now)
