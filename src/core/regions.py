"""Region lookup tables and helpers (core domain).

Regions are matched by plain substring search over lower-cased text, so the
keyword lists intentionally hold word stems rather than full names.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping, Optional

CHERNIHIV = "chernihiv"
SUMY = "sumy"

REGION_KEYWORDS: dict[str, tuple[str, ...]] = {
    CHERNIHIV: (
        "черніг", "черниг", "чернігівщина", "черниговщина", "ніжин", "ніж", "нежин",
        "прилук", "бахмач", "новгород-сівер", "новгород север", "сновськ", "корюків",
        "чернігівськ", "черниговск",
    ),
    SUMY: (
        "сум", "сумщина", "конотоп", "шостк", "охтир", "глух", "кролевец", "кролевець",
        "ромн", "лебедин", "білопіл", "белополь",
    ),
}

REGION_TITLES = {
    CHERNIHIV: "Чернігівська",
    SUMY: "Сумська",
}

_REGION_ALIASES = {
    CHERNIHIV: {"chernihiv", "чернігів", "чернигов", "cn"},
    SUMY: {"sumy", "суми", "сумы", "sm"},
}

_PLACE_JUNK_RE = re.compile(r"[^a-zа-яіїєґ0-9\s-]", re.IGNORECASE)


def normalize_region(value: str) -> Optional[str]:
    """Map an operator-typed region name or alias to a RegionId."""

    lowered = (value or "").strip().lower()
    for region, aliases in _REGION_ALIASES.items():
        if lowered in aliases:
            return region
    return None


def normalize_place(value: str) -> str:
    """Canonical form of an operator-entered place name."""

    if not value:
        return ""
    text = str(value).lower().replace("ё", "е")
    text = re.sub(r"[’'`]", "", text)
    text = _PLACE_JUNK_RE.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def detect_regions(
    text: str,
    extra_places: Optional[Mapping[str, Iterable[str]]] = None,
) -> frozenset[str]:
    """Return every region whose keywords (or extra places) occur in `text`."""

    lowered = (text or "").lower()
    found: set[str] = set()
    for region, keywords in REGION_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            found.add(region)

    # Operator places are stored normalized, so compare against the same form.
    place_text = normalize_place(text)
    for region, places in (extra_places or {}).items():
        if region in found:
            continue
        if any(place and place in place_text for place in places):
            found.add(region)
    return frozenset(found)
