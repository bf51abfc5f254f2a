"""Status-only detection: separates actionable threats from alarm/all-clear noise."""

from __future__ import annotations

THREAT_KEYWORDS = (
    "бпла", "бпл", "дрон", "шахед", "shahed",
    "ракет", "калібр", "іскандер", "крилат", "балліст", "баліст",
    "авіа", "каб", "kab", "керован", "пуск", "зліт",
    "курс", "повз", "у напрямку", "пролітає",
)

ALARM_PHRASES = (
    "повітряна тривога", "повітряної тривоги", "повітряну тривогу",
    "відбій тривоги", "відбій повітряної тривоги",
    "воздушная тревога", "отбой тревоги",
    "air raid alert", "air raid alarm",
)
ALERT_WORDS = ("тривога", "тривоги", "тривогу")

STATUS_KEYWORDS = (
    "відбій", "отбой", "відміна", "скасовано",
    "спокійно", "чисто", "без загроз", "загроз немає", "не фіксується",
    "оновлення", "обновление",
)
STATUS_EMOJI = ("🟢", "✅", "🔵")


def is_status_only(text: str) -> bool:
    """Return True when `text` carries no actionable threat.

    Evaluation order:
    - any threat keyword means the report is actionable, whatever else it says;
    - otherwise alarm phrases or a bare "тривога" mark it status-only;
    - otherwise all-clear/status words or status emoji mark it status-only.
    """

    lowered = (text or "").lower()

    if any(keyword in lowered for keyword in THREAT_KEYWORDS):
        return False
    if any(phrase in lowered for phrase in ALARM_PHRASES):
        return True
    if any(word in lowered for word in ALERT_WORDS):
        return True
    if any(keyword in lowered for keyword in STATUS_KEYWORDS):
        return True
    return any(symbol in lowered for symbol in STATUS_EMOJI)
