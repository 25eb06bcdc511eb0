"""
Tests for hit normalisation, title-match re-ranking and de-duplication.
"""

import pytest

from voosh.src.core.ranking import (
    NormalizedHit,
    RescoredHit,
    dedup_key,
    dedupe_hits,
    extract_text,
    normalize_hit,
    normalize_hits,
    rescore_hits,
    sort_hits,
    title_match_fraction,
)


def _rescored(hit_id, score, **payload):
    return RescoredHit(id=hit_id, score=score, payload=payload, base_score=score)


class TestNormalizeHit:
    def test_nested_payload(self):
        hit = normalize_hit({"id": 7, "score": 0.9, "payload": {"title": "T"}})
        assert hit == NormalizedHit(id=7, score=0.9, payload={"title": "T"})

    def test_underscore_id_and_flat_payload(self):
        raw = {"_id": "abc", "score": 0.4, "title": "Flat"}
        hit = normalize_hit(raw)
        assert hit.id == "abc"
        assert hit.payload["title"] == "Flat"

    def test_score_falls_back_to_payload(self):
        hit = normalize_hit({"id": 1, "payload": {"score": 0.33}})
        assert hit.score == pytest.approx(0.33)

    def test_missing_everything(self):
        hit = normalize_hit({})
        assert hit.id is None
        assert hit.score is None
        assert hit.payload == {}

    def test_non_numeric_score_ignored(self):
        assert normalize_hit({"id": 1, "score": "high"}).score is None

    def test_normalize_hits_drops_non_objects_and_keeps_order(self):
        hits = normalize_hits([{"id": "a", "score": 0.1}, "junk", None, {"id": "b", "score": 0.2}])
        assert [h.id for h in hits] == ["a", "b"]

    def test_extract_text_prefers_text_aliases(self):
        assert extract_text({"content": "  body  ", "title": "T"}) == "body"
        assert extract_text({"title": "Only title"}) == "Only title"
        assert extract_text({"text": 5}) == ""


class TestRescore:
    def test_full_title_match_adds_alpha(self):
        hit = normalize_hit({"id": 1, "score": 0.5, "payload": {"title": "Who is the President of France", "text": "Emmanuel Macron is the President of France.", "url": "http://a"}})
        [rescored] = rescore_hits([hit], "france president", alpha=0.12)
        assert rescored.title_match == pytest.approx(1.0)
        assert rescored.base_score == pytest.approx(0.5)
        assert rescored.score == pytest.approx(0.62)

    def test_partial_match_fraction(self):
        assert title_match_fraction(["france", "economy"], "France votes") == pytest.approx(0.5)

    def test_no_title_or_no_tokens(self):
        assert title_match_fraction([], "anything") == 0.0
        assert title_match_fraction(["x"], "") == 0.0

    def test_missing_score_treated_as_zero(self):
        hit = NormalizedHit(id=1, score=None, payload={"title": "france"})
        [rescored] = rescore_hits([hit], "france", alpha=0.12)
        assert rescored.score == pytest.approx(0.12)
        assert rescored.base_score is None


class TestDedupe:
    def test_tie_keeps_first_seen(self):
        hits = [
            _rescored("1", 0.9, url="http://y"),
            _rescored("2", 0.85, url="http://x"),
            _rescored("3", 0.85, url="http://x"),
        ]
        deduped = dedupe_hits(hits, consider_limit=20)
        assert len(deduped) == 2
        survivor = [h for h in deduped if h.payload["url"] == "http://x"][0]
        assert survivor.id == "2"
        assert survivor.score == pytest.approx(0.85)

    def test_strictly_greater_score_replaces(self):
        hits = [_rescored("1", 0.4, source="Reuters"), _rescored("2", 0.7, source="Reuters")]
        [kept] = dedupe_hits(hits, consider_limit=20)
        assert kept.id == "2"

    def test_only_first_n_in_provider_order_considered(self):
        hits = [_rescored(str(i), 0.1 * i, url=f"http://{i}") for i in range(5)]
        deduped = dedupe_hits(hits, consider_limit=3)
        assert [h.id for h in deduped] == ["0", "1", "2"]

    def test_key_precedence_and_id_fallback(self):
        assert dedup_key(_rescored("1", 0.1, url="u", source="s", title="t"), 0) == "u"
        assert dedup_key(_rescored("1", 0.1, link="l", title="t"), 0) == "l"
        assert dedup_key(_rescored(" 42 ", 0.1), 0) == "42"

    def test_anonymous_hits_never_merge(self):
        hits = [_rescored(None, 0.3), _rescored(None, 0.2)]
        assert len(dedupe_hits(hits, consider_limit=20)) == 2


class TestSort:
    def test_descending_and_stable(self):
        hits = [_rescored("a", 0.5), _rescored("b", 0.9), _rescored("c", 0.5), _rescored("d", 0.7)]
        assert [h.id for h in sort_hits(hits)] == ["b", "d", "a", "c"]
