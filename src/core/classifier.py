"""Report classification and rendering (core domain).

Classification is an ordered table lookup: the first category whose pattern
matches wins, so the table order is the priority order.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterable, Mapping, Optional

from core.models import Category, Report
from core.normalizer import collapse_whitespace, normalize_text
from core.regions import detect_regions

MAX_POST_CORE_CHARS = 220
DEFAULT_SUMMARY = "Рух виявлено"


@dataclass(frozen=True)
class CategoryRule:
    category: Category
    emoji: str
    label: str
    pattern: re.Pattern


def _rule(category: Category, emoji: str, label: str, pattern: str) -> CategoryRule:
    return CategoryRule(category, emoji, label, re.compile(pattern, re.IGNORECASE))


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    _rule(Category.UAV, "🛸", "БПЛА", r"шахед|shahed|бпла|бплa|бпл|дрон|drone|герань"),
    _rule(
        Category.MISSILE,
        "🚀",
        "Ракетна загроза",
        r"ракет|крылат|крилат|баллист|баліст|іскандер|искандер|калібр|калибр|кинджал|кинжал",
    ),
    _rule(Category.AVIATION, "✈️", "Авіаційна загроза", r"авіац|авиац|\bкаб|\bkab|бомб"),
    _rule(Category.ARTILLERY, "💥", "Обстріл", r"обстріл|обстрел|артил|міномет|миномет"),
    _rule(Category.AIR_DEFENSE, "🛡️", "ППО", r"ппо|збито|сбили|перехоп"),
)
FALLBACK_RULE = _rule(Category.UNKNOWN, "ℹ️", "Оновлення", r"(?!)")

_DESTINATION_RE = re.compile(
    r"(?:курс(?:ом)?\s+на|напрям(?:ок|ком)?\s+на|у\s+напрямку|в\s+напрямку|в\s+бік"
    r"|в\s+сторону|рух(?:ається|аються)?\s+(?:до|на)|летить\s+на|летять\s+на)"
    r"\s+(?P<place>[^,.!;\n]+?)(?=\s+(?:з|зі|із|від)\s|[,.!;\n]|$)",
    re.IGNORECASE,
)
_ORIGIN_RE = re.compile(
    r"(?:(?<!\w)(?:з|зі|із)|со\s+стороны|с\s+направления|с\s+района)"
    r"\s+(?:(?:сторони|боку|напрямку)\s+)?(?:району\s+)?"
    r"(?P<place>[^,.!;\n]+?)"
    r"(?=\s+(?:курс\w*|напрям\w*|у\s+напрямку|в\s+напрямку|в\s+бік|в\s+сторону|рух\w*|летить|летять|на)(?!\w)"
    r"|[,.!;\n]|$)",
    re.IGNORECASE,
)
_ADMIN_UNIT_RE = re.compile(
    r"(?<!\w)(?:(?:область|обл|району|район|р-н|місто)(?!\w)\.?|(?:м|г)\.)",
    re.IGNORECASE,
)
_SUMMARY_NOISE_RE = re.compile(
    r"\b(?:дрон(?:и|ів)?|бпла|шахед(?:и|ів)?|ракет[аи]?|курс|напрямок|напрям|летить|рух(?:ається)?)\b",
    re.IGNORECASE,
)


def classify(text: str) -> CategoryRule:
    """Return the highest-priority category rule matching `text`."""

    for rule in CATEGORY_RULES:
        if rule.pattern.search(text or ""):
            return rule
    return FALLBACK_RULE


def clean_place(value: str) -> str:
    """Drop administrative-unit words such as "область" or "р-н"."""

    if not value:
        return ""
    cleaned = _ADMIN_UNIT_RE.sub("", value)
    return collapse_whitespace(cleaned).strip(" -–—:")


def extract_route(text: str) -> tuple[str, str]:
    """Return `(origin, destination)`; an empty string means unknown."""

    text = text or ""
    destination_match = _DESTINATION_RE.search(text)
    destination = clean_place(destination_match.group("place")) if destination_match else ""

    origin_match = _ORIGIN_RE.search(text)
    origin = clean_place(origin_match.group("place")) if origin_match else ""
    return origin, destination


def _short_summary(text: str) -> str:
    # Category words are removed so the post does not read as a verbatim copy.
    stripped = collapse_whitespace(_SUMMARY_NOISE_RE.sub("", text or ""))
    return stripped or DEFAULT_SUMMARY


def _capitalize_first(value: str) -> str:
    return value[:1].upper() + value[1:]


def render_post(rule: CategoryRule, normalized_text: str, origin: str, destination: str) -> str:
    """Render the outbound post: `<emoji> <label>: <core>.`"""

    if destination:
        core = f"з {origin} → курс на {destination}" if origin else f"курс на {destination}"
    else:
        core = _short_summary(normalized_text)

    core = re.sub(r"[.\s]+$", "", core).strip()
    if len(core) > MAX_POST_CORE_CHARS:
        core = core[: MAX_POST_CORE_CHARS - 3] + "…"
    return f"{rule.emoji} {rule.label}: {_capitalize_first(core)}."


def build_report(
    raw_text: str,
    source_key: str,
    extra_places: Optional[Mapping[str, Iterable[str]]] = None,
    permalink: Optional[str] = None,
) -> Report:
    """Normalize, classify and render one inbound report."""

    normalized = normalize_text(raw_text)
    rule = classify(normalized)
    origin, destination = extract_route(normalized)
    return Report(
        raw_text=raw_text,
        source_key=source_key,
        normalized_text=normalized,
        category=rule.category,
        emoji=rule.emoji,
        label=rule.label,
        origin=origin,
        destination=destination,
        regions=detect_regions(normalized, extra_places),
        formatted_text=render_post(rule, normalized, origin, destination),
        permalink=permalink,
    )
