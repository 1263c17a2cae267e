"""
MeetingBaaS MCP Server

Exposes MeetingBaaS meeting recordings to AI assistants:
- find_key_moments: Structural, topical and conversational highlights of a meeting
- search_transcript / find_meeting_topic / search_video_segment: Single-meeting search
- search_transcript_by_type: Search every meeting of one type
- intelligent_search: Free-text search that picks its own strategy
- shareable_meeting_link / share_meeting_segments: Timestamped viewer links
- list_calendars / list_upcoming_meetings: Connected calendars and their scheduled meetings

Architecture:
- FastMCP tools and resources; every tool is read-only
- One httpx-backed MeetingBaasClient per tool call
- A per-session RecentMeetingCache feeds intelligent search
"""

# NOTE: Do NOT use `from __future__ import annotations` with FastMCP/Pydantic
# as it breaks type resolution for Annotated parameters in tool functions

import json
import logging
from typing import Annotated, Any, Literal

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ResourceError, ToolError
from fastmcp.server.dependencies import get_http_headers
from pydantic import BaseModel, Field

from meetingbaas_mcp import __version__, search
from meetingbaas_mcp.client import MeetingBaasClient
from meetingbaas_mcp.config import (
    DEFAULT_GRANULARITY,
    DEFAULT_MAX_MOMENTS,
    DEFAULT_MAX_RESULTS,
    DEFAULT_TYPE_LIMIT,
    LOGGER_NAME,
    SERVER_NAME,
    get_api_base_url,
    get_host,
    get_port,
    get_transport,
)
from meetingbaas_mcp.formatting import (
    format_calendars,
    format_hits,
    format_key_moments,
    format_meeting_data,
    format_segments_list,
    format_shareable_link,
    format_transcript,
    format_upcoming_events,
    recording_link,
    viewer_link,
)
from meetingbaas_mcp.moments import adjust_max_moments, select_key_moments
from meetingbaas_mcp.session import RecentMeetingCache, SessionRegistry, resolve_api_key
from meetingbaas_mcp.topics import detect_topics, merge_topics
from meetingbaas_mcp.types import AuthenticationError, Meeting, MeetingBaasError, NotFoundError

# Configure logging
logger = logging.getLogger(LOGGER_NAME)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


# =============================================================================
# Server Instance
# =============================================================================

mcp = FastMCP(
    name=SERVER_NAME,
    instructions="""
MeetingBaaS MCP Server - search and share recorded meetings

## Key Moments (find_key_moments)
Highlights of one meeting with shareable timestamped links.
Use for: "summarize the meeting", "what were the important parts".

## Single Meeting
- search_transcript: find text in one meeting
- find_meeting_topic: where a topic came up, with surrounding context
- search_video_segment: segments by time range or speaker, with recording links

## Across Meetings
- search_transcript_by_type: search all meetings of a type (sales, standup, ...)
- intelligent_search: free-text query; detects meeting ids, meeting types,
  speakers ("what did Alice say"), time ranges ("between 10 and 20"),
  dates ("last week", used with a calendar_id filter) and topics

## Sharing
- shareable_meeting_link / share_meeting_segments: viewer links to moments

## Calendars
- list_calendars: calendars connected to the account (their IDs feed calendar_id)
- list_upcoming_meetings: scheduled meetings of one calendar and whether a bot will join
""",
)

_sessions = SessionRegistry()


# =============================================================================
# Helper Functions
# =============================================================================


def _build_gateway(api_key: str) -> MeetingBaasClient:
    """Create the API client for one tool call."""
    return MeetingBaasClient(api_key, base_url=get_api_base_url())


def _open_gateway() -> MeetingBaasClient:
    """Resolve the caller's API key and create a client with it."""
    api_key = resolve_api_key(get_http_headers(include_all=True))
    return _build_gateway(api_key)


def _recent(ctx: Context | None) -> RecentMeetingCache:
    session_id = ctx.session_id if ctx is not None else None
    return _sessions.get(session_id).recent


def _failure(action: str, error: MeetingBaasError) -> str:
    """Text for a failed call. Authentication failures become tool errors."""
    if isinstance(error, AuthenticationError):
        logger.warning("   🔒 %s: %s", action, error.message)
        raise ToolError(error.message) from error
    if isinstance(error, NotFoundError):
        return f"❌ {action}: {error.message}. Please check that the bot ID is correct."
    logger.warning("   ⚠️ %s: %s", action, error)
    return f"❌ {action}: {error.message}"


# =============================================================================
# Tools - Key Moments
# =============================================================================


@mcp.tool(annotations={"readOnlyHint": True})
async def find_key_moments(
    bot_id: Annotated[str, "ID of the bot that recorded the meeting"],
    ctx: Context,
    meeting_title: Annotated[str | None, "Title of the meeting (optional)"] = None,
    topics: Annotated[list[str] | None, "Topics to look for in the meeting (optional)"] = None,
    max_moments: Annotated[int, "Maximum number of key moments to find"] = DEFAULT_MAX_MOMENTS,
    granularity: Annotated[
        Literal["low", "medium", "high"],
        "Level of detail: 'high' finds many specific moments, 'low' a few broad ones",
    ] = DEFAULT_GRANULARITY,
    auto_detect_topics: Annotated[bool, "Detect important topics automatically"] = False,
) -> str:
    """
    Find and share key moments from a meeting recording.

    Picks the meeting start and conclusion, the best segment for each topic,
    and stretches where several participants talk, then returns them as
    timestamped viewer links.

    Args:
        bot_id: ID of the bot that recorded the meeting
        meeting_title: Title to show instead of the recorded bot name
        topics: Topics to look for
        max_moments: Maximum number of moments (raised to 10 for high, capped at 3 for low)
        granularity: 'low', 'medium' or 'high'
        auto_detect_topics: Add frequently discussed topics to the search list

    Returns:
        Markdown list of key moments with links
    """
    logger.info("✨ find_key_moments: %s (%s)", bot_id, granularity)

    try:
        async with _open_gateway() as gateway:
            meeting = await search.load_meeting(gateway, bot_id, _recent(ctx))
    except MeetingBaasError as e:
        message = _failure("Error finding key moments", e)
        return f"{message}\n\nYou can still try the viewer: {viewer_link(bot_id)}"

    if meeting_title:
        meeting.title = meeting_title

    if not meeting.segments:
        return (
            f'No transcript found for meeting "{meeting.title}". You can still view the recording:\n\n'
            f"{format_shareable_link(bot_id, title=meeting.title)}"
        )

    search_topics = merge_topics(topics or [])
    if auto_detect_topics:
        search_topics = merge_topics(search_topics, detect_topics(meeting.texts, granularity))

    moments = select_key_moments(
        meeting.segments,
        search_topics,
        adjust_max_moments(max_moments, granularity),
        granularity=granularity,
    )
    logger.info("   ✅ %d moments from %d segments", len(moments), len(meeting.segments))

    if not moments:
        return (
            f'No key moments found in meeting "{meeting.title}". You can view the full recording:\n\n'
            f"{format_shareable_link(bot_id, title=meeting.title)}"
        )
    return format_key_moments(meeting, moments, search_topics if auto_detect_topics else ())


# =============================================================================
# Tools - Single Meeting Search
# =============================================================================


@mcp.tool(annotations={"readOnlyHint": True})
async def search_transcript(
    bot_id: Annotated[str, "ID of the bot that recorded the meeting"],
    query: Annotated[str, "Text to search for in the transcript"],
    ctx: Context,
) -> str:
    """
    Search a meeting transcript for a word or phrase (case-insensitive).

    Args:
        bot_id: ID of the bot that recorded the meeting
        query: Text to search for

    Returns:
        Matching segments with timestamps and speakers
    """
    logger.info("🔎 search_transcript: %s in %s", query[:100], bot_id)

    try:
        async with _open_gateway() as gateway:
            outcome = await search.search_transcript(gateway, bot_id, query, cache=_recent(ctx))
    except MeetingBaasError as e:
        return _failure("Search failed", e)

    return format_hits(outcome.hits, outcome.message)


@mcp.tool(annotations={"readOnlyHint": True})
async def find_meeting_topic(
    meeting_id: Annotated[str, "ID of the meeting (bot ID) to search"],
    topic: Annotated[str, "Topic to find"],
    ctx: Context,
) -> str:
    """
    Find where a topic was discussed in a meeting, with two segments of context
    either side of every mention.

    Args:
        meeting_id: ID of the meeting (bot ID)
        topic: Topic to find

    Returns:
        Segments mentioning the topic plus context, and the recording URL
    """
    logger.info("🧵 find_meeting_topic: %s in %s", topic[:100], meeting_id)

    try:
        async with _open_gateway() as gateway:
            outcome = await search.find_topic(gateway, meeting_id, topic, cache=_recent(ctx))
    except MeetingBaasError as e:
        return _failure("Topic search failed", e)

    text = format_hits(outcome.hits, outcome.message)
    meeting = outcome.meetings.get(meeting_id)
    if outcome.hits and meeting is not None and meeting.recording_url:
        text += f"\n\nVideo URL: {meeting.recording_url}"
    return text


@mcp.tool(annotations={"readOnlyHint": True})
async def search_video_segment(
    bot_id: Annotated[str, "ID of the bot that recorded the meeting"],
    ctx: Context,
    start_time: Annotated[float | None, "Start of the time range in seconds (optional)"] = None,
    end_time: Annotated[float | None, "End of the time range in seconds (optional)"] = None,
    speaker: Annotated[str | None, "Only segments by this speaker (optional)"] = None,
) -> str:
    """
    Find segments of a meeting recording by time range and/or speaker.

    A segment is in range when it starts at or after start_time and ends at
    or before end_time.

    Args:
        bot_id: ID of the bot that recorded the meeting
        start_time: Range start in seconds
        end_time: Range end in seconds
        speaker: Speaker name (substring match)

    Returns:
        Matching segments with direct recording links
    """
    logger.info("🎬 search_video_segment: %s [%s-%s] speaker=%s", bot_id, start_time, end_time, speaker)

    try:
        async with _open_gateway() as gateway:
            outcome = await search.search_video_segment(
                gateway, bot_id, start_time, end_time, speaker, cache=_recent(ctx)
            )
    except MeetingBaasError as e:
        return _failure("Segment search failed", e)

    if not outcome.hits:
        return outcome.message

    meeting = outcome.meetings[bot_id]
    lines = [outcome.message]
    if meeting.recording_url:
        start = outcome.hits[0].segment.start_time
        lines.append(f"Watch from beginning of segment: {recording_link(meeting.recording_url, start)}")
    return format_hits(outcome.hits, "\n".join(lines), with_link=True)


# =============================================================================
# Tools - Cross-Meeting Search
# =============================================================================


@mcp.tool(annotations={"readOnlyHint": True})
async def search_transcript_by_type(
    meeting_type: Annotated[str, "Meeting type, e.g. 'sales', 'standup', 'interview'"],
    query: Annotated[str, "Text to search for"],
    ctx: Context,
    limit: Annotated[int, "Maximum number of meetings to search and results to return"] = DEFAULT_TYPE_LIMIT,
) -> str:
    """
    Search the transcripts of every meeting with a given type.

    The type comes from the meetingType field bots were created with.

    Args:
        meeting_type: Meeting type to filter on (case-insensitive)
        query: Text to search for
        limit: Maximum number of meetings searched and results returned

    Returns:
        Matching segments grouped with their meeting
    """
    logger.info("🗂️ search_transcript_by_type: %s in %s meetings", query[:100], meeting_type)

    try:
        async with _open_gateway() as gateway:
            outcome = await search.search_by_type(gateway, meeting_type, query, limit, cache=_recent(ctx))
    except MeetingBaasError as e:
        return _failure("Search failed", e)

    if outcome.failures:
        logger.info("   ⚠️ %d meetings could not be loaded", len(outcome.failures))
    return format_hits(outcome.hits, outcome.message, with_meeting=True)


@mcp.tool(annotations={"readOnlyHint": True})
async def intelligent_search(
    query: Annotated[str, "Natural language search query"],
    ctx: Context,
    filters: Annotated[
        dict[str, Any] | None,
        "Optional filters: meeting_id/bot_id, meeting_type, calendar_id, speaker, topic, "
        "start_time, end_time (seconds), start_date, end_date (ISO 8601, calendar events)",
    ] = None,
    include_context: Annotated[bool, "Include surrounding segments for each match"] = True,
    max_results: Annotated[int, "Maximum number of matches to return"] = DEFAULT_MAX_RESULTS,
    sort_by: Annotated[Literal["relevance", "date", "speaker"], "Result order"] = "relevance",
) -> str:
    """
    Search across meetings with a free-text query. The strategy adapts to what
    the query mentions:

    - a meeting or bot id: search only that meeting
    - a meeting type ("sales calls", "standups"): search meetings of that type
    - a calendar_id filter: search recordings of that calendar's events
    - otherwise: meetings used recently in this session, then the latest meetings

    Speaker ("what did Alice say") and time ("between 10 and 20", minutes)
    phrases narrow the matches in every strategy. Dates ("yesterday", "last
    week") and start_date/end_date filters narrow the calendar strategy.

    Args:
        query: Natural language search query
        filters: Explicit filters; they override values parsed from the query
        include_context: Include two segments of context around each match
        max_results: Maximum number of matches
        sort_by: 'relevance', 'date' (newest meeting first) or 'speaker'

    Returns:
        Search strategy used and the matching segments
    """
    logger.info("🧠 intelligent_search: %s", query[:100])

    try:
        async with _open_gateway() as gateway:
            outcome = await search.intelligent_search(
                gateway,
                query,
                filters,
                include_context=include_context,
                max_results=max_results,
                sort_by=sort_by,
                cache=_recent(ctx),
            )
    except ValueError as e:
        logger.info("   ⚠️ Invalid search request: %s", e)
        return f"❌ Invalid search request: {e}"
    except MeetingBaasError as e:
        return _failure("An error occurred during the search", e)

    plan = outcome.plan
    header = outcome.message
    if plan is not None:
        header = f"**Search strategy:** {plan.strategy.value}\n**Search terms:** {plan.search_terms}\n\n{header}"
    return format_hits(outcome.hits, header, with_meeting=True, with_link=True)


# =============================================================================
# Tools - Meeting Data and Links
# =============================================================================


class SegmentLink(BaseModel):
    """A moment to include in a shared list of links."""

    timestamp: float = Field(ge=0, description="Timestamp in seconds")
    description: str = Field(description="What happens at this timestamp")
    speaker: str | None = Field(default=None, description="Speaker at this timestamp (optional)")


@mcp.tool(annotations={"readOnlyHint": True})
async def get_meeting_data(
    bot_id: Annotated[str, "ID of the bot that recorded the meeting"],
    ctx: Context,
) -> str:
    """
    Get metadata for a recorded meeting: title, type, participants, recording URL.

    Args:
        bot_id: ID of the bot that recorded the meeting

    Returns:
        Meeting metadata as markdown
    """
    logger.info("📋 get_meeting_data: %s", bot_id)

    try:
        async with _open_gateway() as gateway:
            meeting = await search.load_meeting(gateway, bot_id, _recent(ctx))
    except MeetingBaasError as e:
        return _failure("Failed to get meeting data", e)

    return format_meeting_data(meeting)


@mcp.tool(annotations={"readOnlyHint": True})
async def shareable_meeting_link(
    bot_id: Annotated[str, "ID of the bot that recorded the meeting"],
    ctx: Context,
    timestamp: Annotated[float | None, "Timestamp in seconds to link to (optional)"] = None,
    title: Annotated[str | None, "Title to display (optional)"] = None,
    speaker_name: Annotated[str | None, "Speaker at this timestamp (optional)"] = None,
    description: Annotated[str | None, "What happens at this timestamp (optional)"] = None,
) -> str:
    """
    Generate a shareable link to a meeting recording, optionally at a timestamp.

    Args:
        bot_id: ID of the bot that recorded the meeting
        timestamp: Seconds into the recording
        title: Title to display; defaults to the meeting name
        speaker_name: Speaker at the timestamp
        description: What happens at the timestamp

    Returns:
        Markdown with the link
    """
    logger.info("🔗 shareable_meeting_link: %s @ %s", bot_id, timestamp)

    try:
        async with _open_gateway() as gateway:
            meeting = await search.load_meeting(gateway, bot_id, _recent(ctx))
    except MeetingBaasError as e:
        return _failure("Error generating shareable link", e)

    return format_shareable_link(bot_id, timestamp, title or meeting.title, speaker_name, description)


@mcp.tool(annotations={"readOnlyHint": True})
async def share_meeting_segments(
    bot_id: Annotated[str, "ID of the bot that recorded the meeting"],
    segments: Annotated[list[SegmentLink], "Moments to share"],
    ctx: Context,
) -> str:
    """
    Generate a list of links to several moments in one meeting.

    Args:
        bot_id: ID of the bot that recorded the meeting
        segments: Moments with timestamp, description and optional speaker

    Returns:
        Numbered markdown list of links
    """
    logger.info("🔗 share_meeting_segments: %s (%d segments)", bot_id, len(segments))

    try:
        async with _open_gateway() as gateway:
            await search.load_meeting(gateway, bot_id, _recent(ctx))
    except MeetingBaasError as e:
        return _failure("Error generating meeting segments", e)

    return format_segments_list(bot_id, [segment.model_dump() for segment in segments])


@mcp.tool(annotations={"readOnlyHint": True})
async def list_recent_meetings(ctx: Context) -> str:
    """
    List the meetings used in this session, most recent first.

    These are the meetings intelligent_search looks at first when a query
    names no meeting, type or calendar.

    Returns:
        Recent meetings with their detected topics and participants
    """
    entries = _recent(ctx).entries()
    if not entries:
        return "No meetings have been used in this session yet."

    lines = ["## Recent Meetings", ""]
    for i, entry in enumerate(entries, 1):
        lines.append(f"{i}. **{entry.name}** (`{entry.bot_id}`)")
        if entry.meeting_type:
            lines.append(f"   - Type: {entry.meeting_type}")
        if entry.participants:
            lines.append(f"   - Participants: {', '.join(entry.participants)}")
        if entry.topics:
            lines.append(f"   - Topics: {', '.join(entry.topics)}")
    return "\n".join(lines)


# =============================================================================
# Tools - Calendars
# =============================================================================


@mcp.tool(annotations={"readOnlyHint": True})
async def list_calendars(ctx: Context) -> str:
    """
    List the calendars connected to the MeetingBaaS account.

    Use a calendar ID with list_upcoming_meetings, or as the calendar_id
    filter of intelligent_search.

    Returns:
        Calendars with their names, emails and IDs
    """
    logger.info("📅 list_calendars")

    try:
        async with _open_gateway() as gateway:
            calendars = await gateway.list_calendars()
    except MeetingBaasError as e:
        return _failure("Error listing calendars", e)

    logger.info("   ✅ %d calendars", len(calendars))
    return format_calendars(calendars)


@mcp.tool(annotations={"readOnlyHint": True})
async def list_upcoming_meetings(
    calendar_id: Annotated[str, "ID of the calendar (see list_calendars)"],
    ctx: Context,
) -> str:
    """
    List the meetings of a calendar that have not started yet, soonest first.

    Args:
        calendar_id: ID of the calendar

    Returns:
        Upcoming meetings with start times and whether a bot is scheduled to record them
    """
    logger.info("📅 list_upcoming_meetings: %s", calendar_id)

    try:
        async with _open_gateway() as gateway:
            events = await search.list_upcoming_events(gateway, calendar_id)
    except MeetingBaasError as e:
        return _failure("Error listing upcoming meetings", e)

    return format_upcoming_events(events)


# =============================================================================
# Resources
# =============================================================================


async def _load_meeting(bot_id: str) -> Meeting:
    try:
        async with _open_gateway() as gateway:
            return await gateway.fetch_meeting(bot_id)
    except MeetingBaasError as e:
        raise ResourceError(e.message) from e


@mcp.resource("meeting://{bot_id}/transcript", mime_type="text/plain")
async def meeting_transcript(bot_id: str) -> str:
    """Full transcript of a recorded meeting, one line per segment."""
    return format_transcript(await _load_meeting(bot_id))


@mcp.resource("meeting://{bot_id}/metadata", mime_type="application/json")
async def meeting_metadata(bot_id: str) -> str:
    """Metadata of a recorded meeting as JSON."""
    meeting = await _load_meeting(bot_id)
    return json.dumps(meeting.to_dict(), indent=2)


# =============================================================================
# Main Entry Point
# =============================================================================


def main() -> None:
    """Run the MCP server on the configured transport (stdio by default)."""
    transport = get_transport()
    logger.info("🚀 Starting MeetingBaaS MCP Server v%s (FastMCP)", __version__)
    logger.info("   API: %s", get_api_base_url())
    logger.info("   Transport: %s", transport)

    if transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport=transport, host=get_host(), port=get_port())


# Export for use as module
__all__ = ["mcp", "main"]


if __name__ == "__main__":
    main()
