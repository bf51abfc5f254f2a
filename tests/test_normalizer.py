from __future__ import annotations

from core.normalizer import normalize_text


def test_strips_links_mentions_times_and_markers() -> None:
    raw = "UPD: Шахед курс на Чернігів!!! 12:30 @monitor_ch https://t.me/chan/123"
    assert normalize_text(raw) == "Шахед курс на Чернігів!"


def test_empty_input_yields_empty_output() -> None:
    assert normalize_text("") == ""
    assert normalize_text(None) == ""


def test_normalize_is_idempotent() -> None:
    samples = [
        "ОНОВЛЕНО — 2 шахеди   з півночі ‼️‼ 07:45",
        "Ракета на Суми @sumy_radar\n\nhttps://t.me/sumy_radar/77",
        "апд   чисто",
        "",
    ]
    for raw in samples:
        once = normalize_text(raw)
        assert normalize_text(once) == once


def test_handle_glued_to_removed_token_is_stripped_in_one_call() -> None:
    assert normalize_text("- 12:30@abcdef") == "-"
    assert normalize_text("UPD@monitor_ch Шахед") == "Шахед"
    for raw in ["- 12:30@abcdef", "UPD@monitor_ch Шахед", "!!12:30!!"]:
        once = normalize_text(raw)
        assert normalize_text(once) == once
