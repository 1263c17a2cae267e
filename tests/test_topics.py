"""Unit tests for topic extraction.

Run with: uv run pytest tests/test_topics.py -v
"""

import pytest

from meetingbaas_mcp.topics import detect_topics, extract_topics, merge_topics, tokenize


class TestTokenize:
    """Test transcript tokenization."""

    def test_lowercases_and_strips_punctuation(self):
        """Punctuation becomes whitespace, apostrophes survive inside words."""
        assert tokenize("Hello, World! It's fine.") == ["hello", "world", "it's", "fine"]

    def test_strips_quote_apostrophes(self):
        """Apostrophes used as quotes are removed from token edges."""
        assert tokenize("'quoted' words") == ["quoted", "words"]

    def test_empty(self):
        assert tokenize("") == []
        assert tokenize("?!") == []


class TestExtractTopics:
    """Test frequency-based topic ranking."""

    TEXTS = [
        "The budget review is due",
        "budget review again",
        "pricing pricing",
    ]

    def test_repeated_phrase_ranks_first(self):
        """A phrase seen twice outweighs its individual words."""
        assert extract_topics(self.TEXTS, 3) == ["budget review", "budget", "review"]

    def test_ties_keep_first_seen_order(self):
        """Words with equal counts keep transcript order."""
        topics = extract_topics(self.TEXTS, 10)
        assert topics.index("budget") < topics.index("review") < topics.index("pricing")

    def test_single_occurrence_phrase_ignored(self):
        """Phrases must occur at least twice."""
        assert "review again" not in extract_topics(self.TEXTS, 10)

    def test_short_and_stop_words_excluded(self):
        """Stop words and words of three letters or fewer never become topics."""
        topics = extract_topics(["the cat and the dog were really there"], 10)
        assert topics == []

    def test_phrases_do_not_cross_texts(self):
        """An n-gram never spans two segments."""
        topics = extract_topics(["launch", "timeline", "launch", "timeline"], 10)
        assert "launch timeline" not in topics

    @pytest.mark.parametrize("count", [0, -1])
    def test_non_positive_count(self, count: int):
        assert extract_topics(self.TEXTS, count) == []

    def test_empty_input(self):
        assert extract_topics([], 5) == []

    def test_truncates_to_count(self):
        assert len(extract_topics(self.TEXTS, 2)) == 2


class TestDetectTopics:
    """Test granularity-driven topic counts."""

    TEXTS = [" ".join(f"topic{i}word" for i in range(20))]

    @pytest.mark.parametrize("granularity,expected", [("low", 3), ("medium", 5), ("high", 10)])
    def test_count_per_granularity(self, granularity: str, expected: int):
        assert len(detect_topics(self.TEXTS, granularity)) == expected

    def test_unknown_granularity_uses_medium(self):
        assert len(detect_topics(self.TEXTS, "extreme")) == 5


class TestMergeTopics:
    """Test topic list merging."""

    def test_deduplicates_case_insensitively(self):
        assert merge_topics(["Budget"], ["budget", "pricing"]) == ["Budget", "pricing"]

    def test_drops_blanks(self):
        assert merge_topics(["  ", ""], ["roadmap"]) == ["roadmap"]
