"""
Importance scoring for transcript segments.

Topic matches are scored on a 0-10 scale. Structural moments (meeting start,
meeting end, multi-speaker exchanges) use fixed scores above that scale so a
short meeting never loses them to topic matches.
"""

from __future__ import annotations

from collections.abc import Iterable

# Topic match components
OCCURRENCE_WEIGHT = 2.0
POSITION_WEIGHT = 2.0
LENGTH_WEIGHT = 2.0
LENGTH_BONUS_WORDS = 20  # words for the full length bonus
MAX_TOPIC_SCORE = 10.0

# Structural scores
START_SCORE = 12.0
END_SCORE = 11.0
CONVERSATION_BASE_SCORE = 10.0
CONVERSATION_SPEAKER_WEIGHT = 0.5

# Extended discussion fallback
EXTENDED_BASE_SCORE = 1.0
EXTENDED_WORDS_PER_POINT = 50
EXTENDED_MAX_BONUS = 3.0


def score_segment(text: str, topic: str) -> float | None:
    """
    Score how strongly a segment discusses a topic.

    Returns None when the topic does not occur in the text at all.
    """
    needle = topic.strip().lower()
    if not needle:
        return None

    haystack = text.lower()
    first = haystack.find(needle)
    if first < 0:
        return None

    occurrences = haystack.count(needle)
    position_bonus = POSITION_WEIGHT * (1.0 - first / len(haystack))
    length_bonus = LENGTH_WEIGHT * min(len(text.split()) / LENGTH_BONUS_WORDS, 1.0)

    score = occurrences * OCCURRENCE_WEIGHT + position_bonus + length_bonus
    return min(score, MAX_TOPIC_SCORE)


def conversation_score(speaker_count: int) -> float:
    """Score for a window where several people talk."""
    return CONVERSATION_BASE_SCORE + CONVERSATION_SPEAKER_WEIGHT * speaker_count


def extended_score(word_count: int) -> float:
    """Score for a long stretch of speech with no other signal."""
    return EXTENDED_BASE_SCORE + min(word_count / EXTENDED_WORDS_PER_POINT, EXTENDED_MAX_BONUS)


def relevance(text: str, terms: str | Iterable[str]) -> float:
    """
    Rank a search match.

    A full-phrase match wins outright; otherwise each term that appears
    contributes its own score.
    """
    if isinstance(terms, str):
        phrase_score = score_segment(text, terms)
        if phrase_score is not None:
            return phrase_score + MAX_TOPIC_SCORE
        terms = terms.split()

    total = 0.0
    for term in terms:
        total += score_segment(text, term) or 0.0
    return total
