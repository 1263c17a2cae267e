"""
Transcript search operations.

Every operation takes a ``Gateway`` (anything with the MeetingBaasClient
read methods) and returns a SearchOutcome. Gateway calls are awaited one at
a time. Each meeting fetched successfully is recorded in the session's
RecentMeetingCache when one is passed in.

Multi-meeting scans skip meetings that fail to load, except for
authentication failures, which abort the whole call. If every meeting in a
scan fails, the scan raises TransientGatewayError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from meetingbaas_mcp import scoring
from meetingbaas_mcp.config import (
    CALENDAR_SCAN_LIMIT,
    CONTEXT_WINDOW,
    DEFAULT_MAX_RESULTS,
    DEFAULT_TYPE_LIMIT,
    FALLBACK_SCAN_LIMIT,
    LOGGER_NAME,
)
from meetingbaas_mcp.formatting import format_time
from meetingbaas_mcp.planner import SearchPlan, SearchStrategy, plan_search
from meetingbaas_mcp.session import RecentMeeting, RecentMeetingCache
from meetingbaas_mcp.types import (
    AuthenticationError,
    Calendar,
    CalendarEvent,
    DateRange,
    Meeting,
    MeetingBaasError,
    MeetingSummary,
    SearchHit,
    TimeRange,
    TransientGatewayError,
)

logger = logging.getLogger(LOGGER_NAME)

SORT_OPTIONS = ("relevance", "date", "speaker")


class Gateway(Protocol):
    """Read-only view of the MeetingBaaS API used by search."""

    async def fetch_meeting(self, bot_id: str) -> Meeting: ...

    async def list_meetings(self) -> list[MeetingSummary]: ...

    async def list_calendar_events(
        self, calendar_id: str, date_range: DateRange | None = None
    ) -> list[CalendarEvent]: ...

    async def list_calendars(self) -> list[Calendar]: ...


@dataclass(slots=True)
class SearchOutcome:
    """Hits plus enough bookkeeping to explain them."""

    hits: list[SearchHit] = field(default_factory=list)
    meetings: dict[str, Meeting] = field(default_factory=dict)
    failures: list[str] = field(default_factory=list)
    message: str = ""
    plan: SearchPlan | None = None

    @property
    def meetings_searched(self) -> int:
        return len(self.meetings)

    @property
    def matches(self) -> list[SearchHit]:
        """Hits that are not context padding."""
        return [hit for hit in self.hits if not hit.is_context]


# =============================================================================
# Segment Matching
# =============================================================================


def _hit(meeting: Meeting, index: int, relevance: float = 0.0, *, is_context: bool = False) -> SearchHit:
    return SearchHit(
        bot_id=meeting.bot_id,
        meeting_title=meeting.title,
        segment=meeting.segments[index],
        index=index,
        relevance=relevance,
        is_context=is_context,
        recording_url=meeting.recording_url,
        meeting_type=meeting.meeting_type,
        created_at=meeting.created_at,
    )


def match_segments(meeting: Meeting, terms: str) -> list[SearchHit]:
    """Segments containing ``terms`` (case-insensitive). Blank terms match all."""
    needle = terms.strip().lower()
    hits = []
    for index, segment in enumerate(meeting.segments):
        text = segment.text
        if needle and needle not in text.lower():
            continue
        hits.append(_hit(meeting, index, scoring.relevance(text, needle) if needle else 0.0))
    return hits


def segment_filter(time_range: TimeRange | None = None, speaker: str | None = None) -> Callable[[SearchHit], bool]:
    """Predicate for hits inside a time range and spoken by a matching speaker."""
    needle = speaker.strip().lower() if speaker else ""

    def accept(hit: SearchHit) -> bool:
        if time_range is not None and not time_range.contains(hit.segment):
            return False
        if needle and needle not in hit.segment.speaker.lower():
            return False
        return True

    return accept


def expand_context(
    hits: Sequence[SearchHit],
    meetings: Mapping[str, Meeting],
    window: int = CONTEXT_WINDOW,
) -> list[SearchHit]:
    """
    Surround each hit with up to ``window`` neighbouring segments.

    Hit order is kept. A segment appears once; segments that are hits
    themselves are never repeated as context.
    """
    if window <= 0:
        return list(hits)

    primary = {hit.key for hit in hits}
    emitted: set[tuple[str, int]] = set()
    expanded: list[SearchHit] = []
    for hit in hits:
        meeting = meetings.get(hit.bot_id)
        if meeting is None:
            if hit.key not in emitted:
                expanded.append(hit)
                emitted.add(hit.key)
            continue

        low = max(0, hit.index - window)
        high = min(len(meeting.segments), hit.index + window + 1)
        for index in range(low, high):
            key = (hit.bot_id, index)
            if key in emitted:
                continue
            if index == hit.index:
                expanded.append(hit)
            elif key in primary:
                continue
            else:
                expanded.append(_hit(meeting, index, is_context=True))
            emitted.add(key)
    return expanded


def sort_hits(hits: Iterable[SearchHit], sort_by: str = "relevance") -> list[SearchHit]:
    """Order hits by relevance (best first), date (newest meeting first) or speaker."""
    if sort_by == "relevance":
        return sorted(hits, key=lambda h: -h.relevance)
    if sort_by == "date":
        by_time = sorted(hits, key=lambda h: h.segment.start_time)
        return sorted(by_time, key=lambda h: h.created_at or "", reverse=True)
    if sort_by == "speaker":
        return sorted(hits, key=lambda h: (h.segment.speaker.lower(), h.segment.start_time))
    raise ValueError(f"Unknown sort order '{sort_by}'. Expected one of: {', '.join(SORT_OPTIONS)}")


# =============================================================================
# Fetching
# =============================================================================


async def load_meeting(gateway: Gateway, bot_id: str, cache: RecentMeetingCache | None) -> Meeting:
    """Fetch one meeting and remember it as recently used."""
    meeting = await gateway.fetch_meeting(bot_id)
    if cache is not None:
        cache.record(RecentMeeting.from_meeting(meeting))
    return meeting


async def _scan(
    gateway: Gateway,
    bot_ids: Sequence[str],
    terms: str,
    cache: RecentMeetingCache | None,
    *,
    stop_after: int | None = None,
    accept_meeting: Callable[[Meeting], bool] | None = None,
    accept_hit: Callable[[SearchHit], bool] | None = None,
) -> SearchOutcome:
    """Search meetings one after another, skipping those that fail to load."""
    outcome = SearchOutcome()
    for bot_id in bot_ids:
        try:
            meeting = await load_meeting(gateway, bot_id, cache)
        except AuthenticationError:
            raise
        except MeetingBaasError as e:
            logger.warning("   ⚠️ Skipping meeting %s: %s", bot_id, e)
            outcome.failures.append(bot_id)
            continue

        outcome.meetings[bot_id] = meeting
        if accept_meeting is not None and not accept_meeting(meeting):
            continue

        hits = match_segments(meeting, terms)
        if accept_hit is not None:
            hits = [hit for hit in hits if accept_hit(hit)]
        outcome.hits.extend(hits)

        if stop_after is not None and len(outcome.hits) >= stop_after:
            break

    if outcome.failures and not outcome.meetings:
        raise TransientGatewayError(
            f"All {len(outcome.failures)} meetings failed to load",
            {"failures": outcome.failures},
        )
    return outcome


# =============================================================================
# Single-Meeting Operations
# =============================================================================


async def search_transcript(
    gateway: Gateway,
    bot_id: str,
    query: str,
    *,
    cache: RecentMeetingCache | None = None,
) -> SearchOutcome:
    """Case-insensitive substring search in one meeting's transcript."""
    meeting = await load_meeting(gateway, bot_id, cache)
    hits = match_segments(meeting, query)
    if hits:
        message = f'Found {len(hits)} results for "{query}" in meeting "{meeting.title}":'
    else:
        message = f'No results found for "{query}"'
    return SearchOutcome(hits=hits, meetings={bot_id: meeting}, message=message)


async def search_video_segment(
    gateway: Gateway,
    bot_id: str,
    start_time: float | None = None,
    end_time: float | None = None,
    speaker: str | None = None,
    *,
    cache: RecentMeetingCache | None = None,
) -> SearchOutcome:
    """Segments of one meeting inside a time window and/or by a speaker."""
    meeting = await load_meeting(gateway, bot_id, cache)
    accept = segment_filter(TimeRange(start_time, end_time), speaker)
    hits = [hit for hit in match_segments(meeting, "") if accept(hit)]

    if not hits:
        message = "No matching video segments found based on your criteria."
    else:
        first, last = hits[0].segment.start_time, hits[-1].segment.start_time
        message = (
            f"Found {len(hits)} segments from {format_time(first)} to {format_time(last)} "
            f'in meeting "{meeting.title}".'
        )
    return SearchOutcome(hits=hits, meetings={bot_id: meeting}, message=message)


async def find_topic(
    gateway: Gateway,
    meeting_id: str,
    topic: str,
    *,
    cache: RecentMeetingCache | None = None,
    context: int = CONTEXT_WINDOW,
    limit: int | None = None,
) -> SearchOutcome:
    """
    Where a topic comes up in one meeting, with surrounding segments.

    With a ``limit`` only the most relevant mentions are kept; the result is
    still shown in transcript order.
    """
    meeting = await load_meeting(gateway, meeting_id, cache)
    matches = match_segments(meeting, topic)
    if limit is not None:
        matches = sort_hits(matches)[:limit]
    if not matches:
        return SearchOutcome(
            meetings={meeting_id: meeting},
            message=f'Topic "{topic}" was not discussed in this meeting.',
        )

    hits = sorted(expand_context(matches, {meeting_id: meeting}, context), key=lambda h: h.index)
    return SearchOutcome(
        hits=hits,
        meetings={meeting_id: meeting},
        message=f'Found topic "{topic}" in the meeting with context:',
    )


# =============================================================================
# Multi-Meeting Operations
# =============================================================================


def _type_matches(meeting_type: str | None, wanted: str) -> bool:
    return meeting_type is not None and meeting_type.lower() == wanted.lower()


async def search_by_type(
    gateway: Gateway,
    meeting_type: str,
    query: str,
    limit: int = DEFAULT_TYPE_LIMIT,
    *,
    cache: RecentMeetingCache | None = None,
    accept_hit: Callable[[SearchHit], bool] | None = None,
) -> SearchOutcome:
    """Search up to ``limit`` meetings of one type, returning up to ``limit`` hits."""
    summaries = await gateway.list_meetings()
    candidates = [s.bot_id for s in summaries if _type_matches(s.meeting_type, meeting_type)]
    if not candidates:
        return SearchOutcome(message=f'No meetings found with type "{meeting_type}"')

    outcome = await _scan(gateway, candidates[:limit], query, cache, accept_hit=accept_hit)
    outcome.hits = sorted(outcome.hits, key=lambda h: h.segment.start_time)[:limit]
    if outcome.hits:
        outcome.message = f'Found {len(outcome.hits)} results for "{query}" in "{meeting_type}" meetings:'
    else:
        outcome.message = f'No results found for "{query}" in "{meeting_type}" meetings'
    return outcome


def _starts_within(event: CalendarEvent, date_range: DateRange | None) -> bool:
    """Events without a readable start time are kept."""
    starts_at = event.starts_at
    if date_range is None or starts_at is None:
        return True
    if date_range.start is not None and starts_at < date_range.start:
        return False
    if date_range.end is not None and starts_at >= date_range.end:
        return False
    return True


async def search_calendar(
    gateway: Gateway,
    calendar_id: str,
    query: str,
    meeting_type: str | None = None,
    limit: int = CALENDAR_SCAN_LIMIT,
    date_range: DateRange | None = None,
    *,
    cache: RecentMeetingCache | None = None,
    accept_hit: Callable[[SearchHit], bool] | None = None,
) -> SearchOutcome:
    """Search recordings attached to a calendar's events, optionally only events starting in ``date_range``."""
    events = await gateway.list_calendar_events(calendar_id, date_range)
    recorded = [e for e in events if e.bot_id and not e.deleted and _starts_within(e, date_range)]
    if meeting_type:
        # Events without a type are checked against the fetched meeting instead
        recorded = [e for e in recorded if e.meeting_type is None or _type_matches(e.meeting_type, meeting_type)]
    if not recorded:
        return SearchOutcome(message=f'No recorded meetings found in calendar "{calendar_id}"')

    accept_meeting = (lambda m: _type_matches(m.meeting_type, meeting_type)) if meeting_type else None
    bot_ids = [e.bot_id for e in recorded[:limit] if e.bot_id]
    outcome = await _scan(gateway, bot_ids, query, cache, accept_meeting=accept_meeting, accept_hit=accept_hit)
    if outcome.hits:
        outcome.message = f'Found {len(outcome.hits)} results for "{query}" across {len(bot_ids)} calendar meetings:'
    else:
        outcome.message = f'No results found for "{query}" in calendar "{calendar_id}"'
    return outcome


async def search_recent(
    gateway: Gateway,
    query: str,
    cache: RecentMeetingCache | None = None,
    limit: int = DEFAULT_MAX_RESULTS,
    *,
    accept_hit: Callable[[SearchHit], bool] | None = None,
) -> SearchOutcome:
    """Search recently used meetings, or the first few meetings when none are cached."""
    if cache:
        bot_ids = [entry.bot_id for entry in cache.entries()]
        source = "recent"
    else:
        summaries = await gateway.list_meetings()
        bot_ids = [s.bot_id for s in summaries[:FALLBACK_SCAN_LIMIT]]
        source = "available"
        if not bot_ids:
            return SearchOutcome(message="No meeting recordings found to search.")

    outcome = await _scan(gateway, bot_ids, query, cache, stop_after=limit, accept_hit=accept_hit)
    if outcome.hits:
        outcome.message = (
            f'Found {len(outcome.hits)} results for "{query}" in {outcome.meetings_searched} {source} meetings:'
        )
    else:
        outcome.message = (
            "No relevant results found across any meetings. "
            "Try refining your search terms or specifying a particular meeting."
        )
    return outcome


# =============================================================================
# Calendar Events
# =============================================================================


async def list_upcoming_events(
    gateway: Gateway,
    calendar_id: str,
    now: datetime | None = None,
) -> list[CalendarEvent]:
    """Events of one calendar that start after ``now``, soonest first."""
    now = now or datetime.now(timezone.utc)
    events = await gateway.list_calendar_events(calendar_id, DateRange(start=now))
    upcoming = [e for e in events if not e.deleted and e.starts_at is not None and e.starts_at > now]
    return sorted(upcoming, key=lambda e: e.starts_at)


# =============================================================================
# Intelligent Search
# =============================================================================


async def _execute_plan(
    gateway: Gateway,
    plan: SearchPlan,
    terms: str,
    *,
    include_context: bool,
    max_results: int,
    cache: RecentMeetingCache | None,
) -> SearchOutcome:
    strategy = plan.strategy
    accept_hit = segment_filter(plan.time_range, plan.speaker) if plan.is_segment_search else None

    if strategy is SearchStrategy.SPECIFIC_MEETING:
        meeting_id = plan.meeting_id or ""
        if plan.topic:
            return await find_topic(
                gateway,
                meeting_id,
                plan.topic,
                cache=cache,
                context=CONTEXT_WINDOW if include_context else 0,
                limit=max_results,
            )
        if plan.is_segment_search:
            return await search_video_segment(
                gateway, meeting_id, plan.time_range.start, plan.time_range.end, plan.speaker, cache=cache
            )
        return await search_transcript(gateway, meeting_id, terms, cache=cache)

    if strategy is SearchStrategy.MEETING_TYPE:
        return await search_by_type(
            gateway, plan.meeting_type or "", terms, limit=max_results, cache=cache, accept_hit=accept_hit
        )

    if strategy is SearchStrategy.CALENDAR:
        return await search_calendar(
            gateway,
            plan.calendar_id or "",
            terms,
            date_range=None if plan.date_range.is_empty else plan.date_range,
            cache=cache,
            accept_hit=accept_hit,
        )

    return await search_recent(gateway, terms, cache, limit=max_results, accept_hit=accept_hit)


async def intelligent_search(
    gateway: Gateway,
    query: str,
    filters: Mapping[str, Any] | None = None,
    *,
    include_context: bool = True,
    max_results: int = DEFAULT_MAX_RESULTS,
    sort_by: str = "relevance",
    cache: RecentMeetingCache | None = None,
) -> SearchOutcome:
    """
    Plan a free-text query and run the matching search strategy.

    Args:
        gateway: MeetingBaaS API gateway
        query: Natural language search request
        filters: Explicit filters that override anything parsed from the query
        include_context: Add neighbouring segments around each match
        max_results: Maximum number of matches returned (context not counted)
        sort_by: 'relevance', 'date' or 'speaker'
        cache: The session's recent meetings, used as the fallback scan set

    Returns:
        SearchOutcome with the plan attached
    """
    if sort_by not in SORT_OPTIONS:
        raise ValueError(f"Unknown sort order '{sort_by}'. Expected one of: {', '.join(SORT_OPTIONS)}")

    plan = plan_search(query, filters, has_recent=bool(cache))
    # A query made only of filter phrases lists every segment the filters accept
    terms = "" if plan.filters_only and not plan.topic else plan.query_terms
    logger.info("   🧭 Strategy: %s, terms: %r", plan.strategy.value, terms)

    outcome = await _execute_plan(
        gateway, plan, terms, include_context=include_context, max_results=max_results, cache=cache
    )
    outcome.plan = plan

    if plan.strategy is SearchStrategy.SPECIFIC_MEETING and plan.topic:
        # find_topic already capped the mentions and returns them in transcript order
        return outcome

    ranked = sort_hits(outcome.matches, sort_by)[:max_results]
    if include_context and ranked:
        for hit in ranked:
            if hit.bot_id not in outcome.meetings:
                outcome.meetings[hit.bot_id] = await load_meeting(gateway, hit.bot_id, cache)
        ranked = expand_context(ranked, outcome.meetings)
    outcome.hits = ranked
    return outcome
