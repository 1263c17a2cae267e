"""
Key moment selection.

Candidates come from four places: the meeting's first and last segments,
the best segment for each topic, time windows where several people speak,
and (only when there is still room) the wordiest windows. Candidates are
deduplicated greedily by importance so that no two kept moments fall within
the proximity window of each other.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from meetingbaas_mcp import scoring
from meetingbaas_mcp.config import (
    DEFAULT_GRANULARITY,
    DEFAULT_MAX_MOMENTS,
    LOGGER_NAME,
    MIN_WINDOW_SIZE,
    PROXIMITY_WINDOW,
    get_window_divisor,
)
from meetingbaas_mcp.types import KeyMoment, MomentKind, TranscriptSegment

logger = logging.getLogger(LOGGER_NAME)


def adjust_max_moments(max_moments: int, granularity: str) -> int:
    """High granularity asks for at least 10 moments, low for at most 3."""
    if granularity == "high":
        return max(10, max_moments)
    if granularity == "low":
        return min(3, max_moments)
    return max_moments


def window_size(segments: Sequence[TranscriptSegment], granularity: str = DEFAULT_GRANULARITY) -> float:
    """Conversation window length: meeting duration / divisor, at least 30s."""
    if not segments:
        return MIN_WINDOW_SIZE
    duration = segments[-1].start_time - segments[0].start_time
    return max(duration // get_window_divisor(granularity), MIN_WINDOW_SIZE)


def group_windows(segments: Sequence[TranscriptSegment], size: float) -> list[list[TranscriptSegment]]:
    """Split time-ordered segments into consecutive windows of ``size`` seconds."""
    windows: list[list[TranscriptSegment]] = []
    current: list[TranscriptSegment] = []
    window_start = segments[0].start_time if segments else 0.0

    for segment in segments:
        if current and segment.start_time - window_start > size:
            windows.append(current)
            current = []
        if not current:
            window_start = segment.start_time
        current.append(segment)

    if current:
        windows.append(current)
    return windows


def _is_near(start_time: float, kept: Iterable[KeyMoment], proximity: float) -> bool:
    return any(abs(start_time - m.start_time) < proximity for m in kept)


def _topic_candidates(segments: Sequence[TranscriptSegment], topics: Iterable[str]) -> list[KeyMoment]:
    candidates = []
    for topic in topics:
        best: tuple[float, TranscriptSegment] | None = None
        for segment in segments:
            score = scoring.score_segment(segment.text, topic)
            if score is not None and (best is None or score > best[0]):
                best = (score, segment)
        if best is not None:
            score, segment = best
            candidates.append(
                KeyMoment(
                    start_time=segment.start_time,
                    speaker=segment.speaker,
                    description=f'Discussion about "{topic}"',
                    importance=score,
                    kind=MomentKind.TOPIC_MATCH,
                )
            )
    return candidates


def _conversation_candidates(windows: list[list[TranscriptSegment]]) -> list[KeyMoment]:
    candidates = []
    for window in windows:
        speakers = {segment.speaker for segment in window}
        if len(speakers) >= 2:
            first = window[0]
            candidates.append(
                KeyMoment(
                    start_time=first.start_time,
                    speaker=first.speaker,
                    description=f"Discussion with {len(speakers)} participants",
                    importance=scoring.conversation_score(len(speakers)),
                    kind=MomentKind.CONVERSATION,
                )
            )
    return candidates


def deduplicate(candidates: Iterable[KeyMoment], proximity: float = PROXIMITY_WINDOW) -> list[KeyMoment]:
    """Keep the most important candidate in every proximity neighbourhood."""
    kept: list[KeyMoment] = []
    for moment in sorted(candidates, key=lambda m: (-m.importance, m.start_time)):
        if not _is_near(moment.start_time, kept, proximity):
            kept.append(moment)
    return kept


def select_key_moments(
    segments: Sequence[TranscriptSegment],
    topics: Iterable[str] = (),
    max_moments: int = DEFAULT_MAX_MOMENTS,
    *,
    granularity: str = DEFAULT_GRANULARITY,
    proximity: float = PROXIMITY_WINDOW,
) -> list[KeyMoment]:
    """
    Pick up to ``max_moments`` noteworthy moments from a transcript.

    Args:
        segments: Transcript segments in any order
        topics: Topics to look for; each contributes at most one moment
        max_moments: Upper bound on the result length
        granularity: 'low', 'medium' or 'high'; controls window size
        proximity: Minimum spacing in seconds between returned moments

    Returns:
        Key moments sorted by start time. Empty for an empty transcript.
    """
    if not segments or max_moments <= 0:
        return []

    ordered = sorted(segments, key=lambda s: s.start_time)
    windows = group_windows(ordered, window_size(ordered, granularity))

    first, last = ordered[0], ordered[-1]
    candidates = [
        KeyMoment(first.start_time, first.speaker, "Meeting start", scoring.START_SCORE, MomentKind.STRUCTURAL),
        KeyMoment(last.start_time, last.speaker, "Meeting conclusion", scoring.END_SCORE, MomentKind.STRUCTURAL),
    ]
    candidates.extend(_topic_candidates(ordered, topics))
    candidates.extend(_conversation_candidates(windows))

    kept = deduplicate(candidates, proximity)[:max_moments]

    if len(kept) < max_moments:
        by_words = sorted(windows, key=lambda w: -sum(s.word_count for s in w))
        for window in by_words:
            if len(kept) >= max_moments:
                break
            head = window[0]
            if _is_near(head.start_time, kept, proximity):
                continue
            kept.append(
                KeyMoment(
                    start_time=head.start_time,
                    speaker=head.speaker,
                    description="Extended discussion",
                    importance=scoring.extended_score(sum(s.word_count for s in window)),
                    kind=MomentKind.EXTENDED_DISCUSSION,
                )
            )

    logger.debug("Selected %d key moments from %d candidates", len(kept), len(candidates))
    return sorted(kept, key=lambda m: m.start_time)
