"""
Frequency-based topic detection for meeting transcripts.

Single words and short repeated phrases are counted across the transcript;
phrases get a higher weight so "quarterly budget" outranks "budget" once it
comes up more than once.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from meetingbaas_mcp.config import get_topic_count

MIN_WORD_LENGTH = 4
MIN_PHRASE_OCCURRENCES = 2
DEFAULT_PHRASE_WEIGHT = 2.0

STOP_WORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "or", "but", "is", "are", "was", "were", "be", "been", "being",
    "in", "on", "at", "to", "for", "with", "by", "about", "like", "through", "over", "before",
    "after", "between", "under", "above", "of", "during", "this", "that", "these", "those",
    "it", "its", "it's", "we", "our", "us", "they", "their", "them", "i", "my", "me", "he",
    "his", "him", "she", "her", "you", "your", "have", "has", "had", "do", "does", "did",
    "will", "would", "shall", "should", "can", "could", "may", "might", "must", "just",
    "very", "so", "too", "also", "as", "then", "than", "there", "here", "what", "when",
    "where", "which", "who", "whom", "why", "how", "from", "into", "onto", "upon", "some",
    "such", "only", "own", "same", "each", "every", "both", "more", "most", "other", "any",
    "all", "not", "yeah", "okay", "right", "really", "think", "know", "going", "gonna",
    "want", "actually", "basically", "thing", "things", "well", "that's", "there's",
    "we're", "they're", "you're", "i'm", "don't", "let's", "i've", "we've", "kind", "sort",
})

_PUNCTUATION = re.compile(r"[^\w\s']|_")


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation (apostrophes kept) and split on whitespace."""
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return [token.strip("'") for token in cleaned.split() if token.strip("'")]


def _is_content_word(token: str) -> bool:
    return len(token) >= MIN_WORD_LENGTH and token not in STOP_WORDS


def _count_phrases(tokens: list[str], min_n: int, max_n: int) -> Counter[str]:
    phrases: Counter[str] = Counter()
    for n in range(min_n, max_n + 1):
        for i in range(len(tokens) - n + 1):
            window = tokens[i : i + n]
            if all(_is_content_word(t) for t in window):
                phrases[" ".join(window)] += 1
    return phrases


def extract_topics(
    texts: Iterable[str],
    count: int,
    *,
    min_ngram: int = 2,
    max_ngram: int = 3,
    phrase_weight: float = DEFAULT_PHRASE_WEIGHT,
) -> list[str]:
    """
    Rank candidate topics by frequency.

    Args:
        texts: Segment texts. Phrases never span two texts.
        count: Maximum number of topics to return
        min_ngram: Shortest phrase length in words (at least 2)
        max_ngram: Longest phrase length in words (at most 4)
        phrase_weight: Multiplier applied to phrase counts

    Returns:
        Lowercase topics, highest score first
    """
    if count <= 0:
        return []

    min_n = max(2, min_ngram)
    max_n = min(4, max(min_n, max_ngram))

    words: Counter[str] = Counter()
    phrases: Counter[str] = Counter()
    for text in texts:
        tokens = tokenize(text)
        words.update(t for t in tokens if _is_content_word(t))
        phrases.update(_count_phrases(tokens, min_n, max_n))

    scores: dict[str, float] = {word: float(n) for word, n in words.items()}
    for phrase, n in phrases.items():
        if n >= MIN_PHRASE_OCCURRENCES:
            scores[phrase] = n * phrase_weight

    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(scores.items(), key=lambda item: -item[1])
    return [topic for topic, _ in ranked[:count]]


def detect_topics(texts: Iterable[str], granularity: str = "medium") -> list[str]:
    """Extract topics with the count implied by a granularity level."""
    return extract_topics(texts, get_topic_count(granularity))


def merge_topics(*groups: Iterable[str]) -> list[str]:
    """Concatenate topic lists, dropping case-insensitive duplicates and blanks."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for topic in group:
            label = topic.strip()
            if label and label.lower() not in seen:
                seen.add(label.lower())
                merged.append(label)
    return merged
