"""Unit tests for key moment selection.

Run with: uv run pytest tests/test_moments.py -v
"""

import pytest

from helpers import seg
from meetingbaas_mcp.moments import (
    adjust_max_moments,
    deduplicate,
    group_windows,
    select_key_moments,
    window_size,
)
from meetingbaas_mcp.types import KeyMoment, MomentKind


def _assert_spaced(moments: list[KeyMoment], proximity: float = 30.0) -> None:
    starts = [m.start_time for m in moments]
    assert starts == sorted(starts)
    for a, b in zip(starts, starts[1:]):
        assert b - a >= proximity


class TestSelectKeyMoments:
    """Test the consolidated key moment algorithm."""

    def test_start_topic_and_conclusion(self):
        """Three far-apart segments with one topic give start, topic and end."""
        segments = [
            seg("Alice", 0, "Welcome everyone to the meeting"),
            seg("Bob", 300, "Let us talk about the budget for next year"),
            seg("Alice", 590, "Thanks, see you next week"),
        ]

        moments = select_key_moments(segments, ["budget"], 5)

        assert [m.start_time for m in moments] == [0, 300, 590]
        assert [m.description for m in moments] == [
            "Meeting start",
            'Discussion about "budget"',
            "Meeting conclusion",
        ]
        assert moments[1].kind is MomentKind.TOPIC_MATCH
        assert moments[1].speaker == "Bob"

    def test_empty_transcript(self):
        assert select_key_moments([], ["budget"], 5) == []

    def test_zero_max(self):
        assert select_key_moments([seg("A", 0, "hello")], max_moments=0) == []

    def test_single_segment(self):
        """Start and conclusion collapse into one moment."""
        moments = select_key_moments([seg("Alice", 12, "short meeting")])
        assert len(moments) == 1
        assert moments[0].description == "Meeting start"

    def test_order_of_input_does_not_matter(self):
        segments = [seg("A", 300, "budget talk"), seg("B", 0, "hello"), seg("A", 600, "bye")]
        assert select_key_moments(segments, ["budget"]) == select_key_moments(
            sorted(segments, key=lambda s: s.start_time), ["budget"]
        )

    def test_nearby_candidates_deduplicated(self):
        """A conversation at the very start loses to the start moment."""
        segments = [
            seg("Alice", 0, "hi"),
            seg("Bob", 10, "hello"),
            seg("Alice", 20, "let's start"),
            seg("Alice", 400, "wrapping up"),
        ]

        moments = select_key_moments(segments, max_moments=5)

        assert [m.description for m in moments] == ["Meeting start", "Meeting conclusion"]
        _assert_spaced(moments)

    def test_conversation_moment(self):
        segments = [
            seg("Alice", 0, "welcome"),
            seg("Alice", 200, "now for the demo"),
            seg("Bob", 210, "looks great"),
            seg("Carol", 220, "agreed"),
            seg("Alice", 600, "bye"),
        ]

        moments = select_key_moments(segments, max_moments=5)

        conversation = [m for m in moments if m.kind is MomentKind.CONVERSATION]
        assert len(conversation) == 1
        assert conversation[0].start_time == 200
        assert conversation[0].description == "Discussion with 3 participants"

    def test_extended_discussion_fills_remaining_slots(self):
        """With no other signal, the wordiest windows fill up to the max."""
        segments = [seg("Alice", t, "word " * (10 + t // 100)) for t in (0, 100, 200, 300, 400)]

        moments = select_key_moments(segments, max_moments=5)

        assert len(moments) == 5
        extended = [m for m in moments if m.kind is MomentKind.EXTENDED_DISCUSSION]
        assert [m.start_time for m in extended] == [100, 200, 300]
        assert all(m.description == "Extended discussion" for m in extended)

    def test_truncated_to_max(self):
        segments = [seg("A", t, f"topic{t} here") for t in range(0, 1000, 100)]
        topics = [f"topic{t}" for t in range(0, 1000, 100)]

        moments = select_key_moments(segments, topics, max_moments=3)

        assert len(moments) == 3
        _assert_spaced(moments)

    def test_never_returns_close_moments(self):
        segments = [seg("A" if i % 2 else "B", i * 7, f"budget item {i}") for i in range(40)]

        moments = select_key_moments(segments, ["budget", "item"], max_moments=10, granularity="high")

        _assert_spaced(moments)

    def test_idempotent(self):
        segments = [seg("A", 0, "x"), seg("B", 100, "budget"), seg("A", 500, "y")]
        first = select_key_moments(segments, ["budget"])
        assert select_key_moments(segments, ["budget"]) == first


class TestDeduplicate:
    """Test greedy proximity deduplication."""

    def test_keeps_most_important(self):
        low = KeyMoment(10, "A", "low", 1.0, MomentKind.TOPIC_MATCH)
        high = KeyMoment(20, "B", "high", 5.0, MomentKind.TOPIC_MATCH)
        assert deduplicate([low, high]) == [high]

    def test_tie_prefers_earlier(self):
        late = KeyMoment(20, "A", "late", 5.0, MomentKind.TOPIC_MATCH)
        early = KeyMoment(10, "B", "early", 5.0, MomentKind.TOPIC_MATCH)
        assert deduplicate([late, early]) == [early]

    def test_exactly_proximity_apart_both_kept(self):
        a = KeyMoment(0, "A", "a", 5.0, MomentKind.TOPIC_MATCH)
        b = KeyMoment(30, "B", "b", 4.0, MomentKind.TOPIC_MATCH)
        assert len(deduplicate([a, b], proximity=30.0)) == 2


class TestWindows:
    """Test conversation window sizing and grouping."""

    @pytest.mark.parametrize("granularity,expected", [("low", 120), ("medium", 60), ("high", 30)])
    def test_window_size(self, granularity: str, expected: float):
        segments = [seg("A", 0, "a"), seg("A", 600, "b")]
        assert window_size(segments, granularity) == expected

    def test_window_size_minimum(self):
        assert window_size([seg("A", 0, "a"), seg("A", 50, "b")]) == 30

    def test_group_windows(self):
        segments = [seg("A", t, "x") for t in (0, 10, 45, 50, 200)]
        windows = group_windows(segments, 30)
        assert [[s.start_time for s in w] for w in windows] == [[0, 10], [45, 50], [200]]


class TestAdjustMaxMoments:
    """Test granularity adjustments to the moment count."""

    @pytest.mark.parametrize("requested,granularity,expected", [
        (5, "high", 10),
        (12, "high", 12),
        (5, "low", 3),
        (2, "low", 2),
        (5, "medium", 5),
    ])
    def test_adjust(self, requested: int, granularity: str, expected: int):
        assert adjust_max_moments(requested, granularity) == expected
