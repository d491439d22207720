"""TF-IDF relevance ranking with title and recency boosts.

The scoring formula is the ordering contract clients rely on:

    score(item) = sum(tf(term, item) * idf(term) for term in query_tokens)
                  * 1.5 ** (query tokens found in the item's title)
                  * 1.3   (log items younger than 7 days only)

    idf(term)   = ln((N + 1) / (df(term) + 1)) + 1      (1 for unseen terms)

Items scoring <= 0 are dropped; the rest are stable-sorted by score.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from contexthub.models import ContextItem, SourceKind

TITLE_BOOST = 1.5
RECENCY_BOOST = 1.3
RECENCY_WINDOW = timedelta(days=7)
MIN_TOKEN_LENGTH = 3

_NON_WORD_RE = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case, strip punctuation, drop tokens shorter than three characters."""
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [t for t in cleaned.split() if len(t) >= MIN_TOKEN_LENGTH]


def term_frequencies(tokens: list[str]) -> dict[str, float]:
    if not tokens:
        return {}
    total = len(tokens)
    return {term: count / total for term, count in Counter(tokens).items()}


def inverse_document_frequencies(documents: Iterable[list[str]]) -> dict[str, float]:
    """Smoothed IDF; ``df`` counts documents containing a term, not occurrences."""
    doc_count: Counter[str] = Counter()
    n = 0
    for tokens in documents:
        n += 1
        doc_count.update(set(tokens))
    return {term: math.log((n + 1) / (df + 1)) + 1 for term, df in doc_count.items()}


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime (naive means local time)."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    return parsed.astimezone() if parsed.tzinfo is None else parsed


class RelevanceRanker:
    """Scores a corpus against a query. Stateless: the IDF table is rebuilt per call."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def score(
        self,
        item: ContextItem,
        query_tokens: list[str],
        idf: dict[str, float],
        now: datetime | None = None,
    ) -> float:
        tf = term_frequencies(tokenize(item.text))

        score = 0.0
        for term in query_tokens:
            score += tf.get(term, 0.0) * idf.get(term, 1.0)

        title_tokens = set(tokenize(item.title))
        for term in query_tokens:
            if term in title_tokens:
                score *= TITLE_BOOST

        if item.source == SourceKind.LOG and self._is_recent(item.timestamp, now):
            score *= RECENCY_BOOST

        return score

    def _is_recent(self, timestamp: str | None, now: datetime | None) -> bool:
        ts = parse_timestamp(timestamp)
        if ts is None:
            return False
        return (now or self._clock()) - ts < RECENCY_WINDOW

    def rank(self, items: list[ContextItem], query: str | None) -> list[ContextItem]:
        """Return items scoring above zero, best first; ties keep corpus order.

        An empty query (or one with no usable tokens) returns the corpus
        untouched and unscored.
        """
        query_tokens = tokenize(query or "")
        if not query_tokens:
            return list(items)

        idf = inverse_document_frequencies(tokenize(item.text) for item in items)
        now = self._clock()

        scored = [
            replace(item, relevance=self.score(item, query_tokens, idf, now)) for item in items
        ]
        ranked = [item for item in scored if item.relevance > 0]
        ranked.sort(key=lambda item: item.relevance, reverse=True)
        return ranked
