"""Tests for TF-IDF relevance ranking."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from contexthub.models import ContextItem, SourceKind
from contexthub.ranking import (
    RelevanceRanker,
    inverse_document_frequencies,
    parse_timestamp,
    term_frequencies,
    tokenize,
)

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


def doc(title: str, content: str) -> ContextItem:
    return ContextItem(source=SourceKind.DOCUMENT, type="doc", title=title, content=content)


def log(title: str, content: str, ts: str | None) -> ContextItem:
    return ContextItem(
        source=SourceKind.LOG, type="entry", title=title, content=content, timestamp=ts
    )


@pytest.fixture
def ranker() -> RelevanceRanker:
    return RelevanceRanker(clock=lambda: NOW)


class TestTokenize:
    def test_lowercases_and_strips_punctuation(self):
        assert tokenize("Hello, World! Deploy-pipeline") == ["hello", "world", "deploy", "pipeline"]

    def test_drops_short_tokens(self):
        assert tokenize("a an the fix") == ["the", "fix"]

    def test_keeps_underscores(self):
        assert tokenize("read_config()") == ["read_config"]

    def test_empty(self):
        assert tokenize("") == []


class TestFrequencies:
    def test_tf_normalized_by_length(self):
        tf = term_frequencies(["deploy", "deploy", "pipeline", "staging"])
        assert tf == {"deploy": 0.5, "pipeline": 0.25, "staging": 0.25}

    def test_tf_empty(self):
        assert term_frequencies([]) == {}

    def test_idf_counts_documents_not_occurrences(self):
        idf = inverse_document_frequencies([["deploy", "deploy"], ["pipeline"], ["deploy"]])
        assert idf["deploy"] == pytest.approx(math.log(4 / 3) + 1)
        assert idf["pipeline"] == pytest.approx(math.log(4 / 2) + 1)

    def test_idf_single_document(self):
        assert inverse_document_frequencies([["deploy"]]) == {"deploy": pytest.approx(1.0)}


class TestBrowseMode:
    def test_empty_query_returns_corpus_unscored(self, ranker):
        items = [doc("Zeta", "nothing"), doc("Alpha", "other")]
        result = ranker.rank(items, "")
        assert [i.title for i in result] == ["Zeta", "Alpha"]
        assert all(i.relevance is None for i in result)

    def test_none_query(self, ranker):
        items = [doc("Zeta", "nothing")]
        assert ranker.rank(items, None) == items

    def test_query_without_usable_tokens(self, ranker):
        items = [doc("Zeta", "nothing"), doc("Alpha", "other")]
        result = ranker.rank(items, "a of")
        assert len(result) == 2
        assert all(i.relevance is None for i in result)


class TestSearchMode:
    def test_title_boost_outranks_content_match(self, ranker):
        items = [
            doc("Deploy pipeline", "x"),
            doc("Other", "deploy pipeline mentioned here"),
        ]
        result = ranker.rank(items, "deploy")
        assert [i.title for i in result] == ["Deploy pipeline", "Other"]
        assert result[0].relevance == pytest.approx(0.5 * 1.5)
        assert result[1].relevance == pytest.approx(0.2)

    def test_title_boost_compounds(self, ranker):
        result = ranker.rank([doc("Deploy pipeline", "")], "deploy pipeline")
        assert result[0].relevance == pytest.approx(1.0 * 1.5 * 1.5)

    def test_filters_zero_scores(self, ranker):
        items = [doc("Deploy", "release"), doc("Unrelated", "nothing here")]
        result = ranker.rank(items, "deploy")
        assert [i.title for i in result] == ["Deploy"]

    def test_unknown_term_matches_nothing(self, ranker):
        assert ranker.rank([doc("Deploy", "release")], "zebra") == []

    def test_ties_keep_corpus_order(self, ranker):
        a = doc("alpha", "deploy")
        b = doc("bravo", "deploy")
        assert [i.title for i in ranker.rank([a, b], "deploy")] == ["alpha", "bravo"]
        assert [i.title for i in ranker.rank([b, a], "deploy")] == ["bravo", "alpha"]

    def test_deterministic(self, ranker):
        items = [doc(f"note {n}", "deploy " * (n % 3 + 1) + "misc words") for n in range(12)]
        first = [i.title for i in ranker.rank(items, "deploy words")]
        for _ in range(3):
            assert [i.title for i in ranker.rank(items, "deploy words")] == first

    def test_does_not_mutate_input(self, ranker):
        items = [doc("Deploy", "release")]
        ranker.rank(items, "deploy")
        assert items[0].relevance is None


class TestRecencyBoost:
    def test_only_log_items_are_boosted(self, ranker):
        recent = (NOW - timedelta(hours=20)).isoformat()
        document = doc("Deploy notes", "release train")
        document.timestamp = recent
        entry = log("Deploy notes", "release train", recent)

        result = ranker.rank([document, entry], "release")
        scores = {i.source: i.relevance for i in result}
        assert scores[SourceKind.LOG] == pytest.approx(scores[SourceKind.DOCUMENT] * 1.3)
        assert result[0].source == SourceKind.LOG

    def test_old_log_not_boosted(self, ranker):
        old = log("Deploy", "release", (NOW - timedelta(days=8)).isoformat())
        fresh = log("Deploy", "release", (NOW - timedelta(days=1)).isoformat())
        result = ranker.rank([old, fresh], "release")
        assert result[0].timestamp == fresh.timestamp
        assert result[0].relevance == pytest.approx(result[1].relevance * 1.3)

    def test_unparsable_timestamp_not_boosted(self, ranker):
        plain = log("Deploy", "release", None)
        broken = log("Deploy", "release", "yesterday-ish")
        result = ranker.rank([plain, broken], "release")
        assert result[0].relevance == pytest.approx(result[1].relevance)

    def test_zulu_suffix(self):
        parsed = parse_timestamp("2026-01-09T08:00:00Z")
        assert parsed == datetime(2026, 1, 9, 8, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_is_aware_after_parse(self):
        assert parse_timestamp("2026-01-09T08:00:00").tzinfo is not None

    def test_non_string_timestamp(self):
        assert parse_timestamp(1760000000000) is None
