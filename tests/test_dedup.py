from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.classifier import build_report
from core.config import DedupConfig
from core.dedup import DedupEngine, jaccard, structural_key, tokenize

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeDedupStore:
    def __init__(self) -> None:
        self.records: dict[str, datetime] = {}

    def is_seen(self, digest: str, window_minutes: int, now: datetime) -> bool:
        marked_at = self.records.get(digest)
        return marked_at is not None and marked_at > now - timedelta(minutes=window_minutes)

    def mark_seen(self, digest: str, now: datetime) -> None:
        self.records[digest] = now

    def cleanup_seen(self, window_minutes: int, now: datetime) -> int:
        cutoff = now - timedelta(minutes=window_minutes)
        expired = [digest for digest, marked_at in self.records.items() if marked_at <= cutoff]
        for digest in expired:
            del self.records[digest]
        return len(expired)


def _publish(engine: DedupEngine, report, now: datetime):
    verdict = engine.check(report, 60, now)
    if not verdict.duplicate:
        engine.mark(verdict.digest, now, verdict.tokens)
    return verdict


def test_structural_key_is_normalized() -> None:
    report = build_report("БпЛА з Брянщини курсом на Шостку!", "@a")
    assert structural_key(report) == "uav|sumy|to:шостку|from:брянщини"


def test_exact_key_blocks_repeat_within_window() -> None:
    store = FakeDedupStore()
    engine = DedupEngine(store)
    first = build_report("Шахед курс на Чернігів", "@a")
    again = build_report("UPD: шахед — курс на ЧЕРНІГІВ!! 14:05", "@b")

    verdict = engine.check(first, 60, NOW)
    assert not verdict.duplicate
    engine.mark(verdict.digest, NOW)

    repeat = engine.check(again, 60, NOW + timedelta(minutes=5))
    assert repeat.duplicate
    assert repeat.reason == "exact"


def test_cleanup_past_expiry_unblocks_key() -> None:
    store = FakeDedupStore()
    engine = DedupEngine(store)
    report = build_report("Шахед курс на Чернігів", "@a")
    engine.mark(engine.check(report, 60, NOW).digest, NOW)

    later = NOW + timedelta(minutes=61)
    assert store.cleanup_seen(60, later) == 1
    assert not engine.check(report, 60, later).duplicate


def test_check_does_not_mark() -> None:
    store = FakeDedupStore()
    engine = DedupEngine(store)
    report = build_report("Шахед курс на Чернігів", "@a")
    engine.check(report, 60, NOW)
    assert store.records == {}
    assert not engine.check(report, 60, NOW).duplicate


def test_tokenize_drops_noise() -> None:
    tokens = tokenize("Увага! 3 шахеди о 12:30 курс на https://t.me/x район Ніжина")
    assert tokens == frozenset({"шахеди", "ніжина"})


def test_jaccard_edges() -> None:
    assert jaccard(set(), {"a"}) == 0.0
    assert jaccard({"a", "b"}, {"a", "b"}) == 1.0


def test_similarity_at_0_857_is_duplicate() -> None:
    engine = DedupEngine(FakeDedupStore(), DedupConfig(similarity_threshold=0.85))
    first = build_report("шахеди кружляють над ніжином біля лісу", "@a")
    second = build_report("шахеди кружляють над ніжином біля лісу вечором", "@b")

    assert not _publish(engine, first, NOW).duplicate
    verdict = engine.check(second, 60, NOW + timedelta(minutes=1))
    assert verdict.duplicate
    assert verdict.reason == "similar"
    assert round(verdict.similarity, 3) == 0.857


def test_similarity_at_0_80_is_not_duplicate() -> None:
    engine = DedupEngine(FakeDedupStore(), DedupConfig(similarity_threshold=0.85))
    first = build_report("шахеди кружляють над ніжином", "@a")
    second = build_report("шахеди кружляють над ніжином вечором", "@b")

    assert not _publish(engine, first, NOW).duplicate
    verdict = engine.check(second, 60, NOW + timedelta(minutes=1))
    assert not verdict.duplicate
    assert round(verdict.similarity, 2) == 0.8


def test_similarity_window_expires() -> None:
    engine = DedupEngine(FakeDedupStore())
    text = "шахеди кружляють над ніжином біля лісу"
    _publish(engine, build_report(text, "@a"), NOW)
    assert not engine.check(build_report(text, "@b"), 60, NOW + timedelta(minutes=90)).duplicate


def test_similarity_not_used_when_route_known() -> None:
    engine = DedupEngine(FakeDedupStore())
    first = engine.check(build_report("шахед курс на Ніжин", "@a"), 60, NOW)
    assert first.tokens == frozenset()
    assert engine.fingerprint(build_report("шахед курс на Ніжин", "@a")) == frozenset()
    verdict = engine.check(build_report("шахед курс на Ніжин", "@b"), 60, NOW)
    assert not verdict.duplicate


def test_unpublished_report_leaves_no_fingerprint() -> None:
    engine = DedupEngine(FakeDedupStore())
    text = "шахеди кружляють над ніжином біля лісу"
    first = engine.check(build_report(text, "@a"), 60, NOW)
    assert first.tokens == tokenize(text)

    assert not engine.check(build_report(text, "@b"), 60, NOW + timedelta(minutes=1)).duplicate
