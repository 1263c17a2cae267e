"""
Plain-text rendering of meetings, key moments and search results.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from meetingbaas_mcp.config import get_viewer_url
from meetingbaas_mcp.types import Calendar, CalendarEvent, KeyMoment, Meeting, SearchHit, TranscriptSegment


def format_time(seconds: float) -> str:
    """Format seconds as MM:SS, or H:MM:SS past the hour."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def recording_link(recording_url: str, seconds: float) -> str:
    """Recording URL that starts playback at ``seconds``."""
    if not recording_url:
        return ""
    base = recording_url.split("?", 1)[0]
    return f"{base}?t={int(seconds)}"


def viewer_link(bot_id: str, timestamp: float | None = None, viewer_url: str | None = None) -> str:
    """Shareable viewer link, optionally jumping to a timestamp."""
    link = f"{(viewer_url or get_viewer_url()).rstrip('/')}/{bot_id}"
    if timestamp is not None:
        link += f"?t={int(max(0.0, timestamp))}"
    return link


def format_segment(segment: TranscriptSegment) -> str:
    return f"[{format_time(segment.start_time)}] {segment.speaker}: {segment.text}"


def format_transcript(meeting: Meeting) -> str:
    """Whole transcript, one line per segment."""
    if not meeting.segments:
        return f'No transcript available for meeting "{meeting.title}".'
    lines = [f"# {meeting.title}", ""]
    lines.extend(format_segment(segment) for segment in meeting.segments)
    return "\n".join(lines)


# =============================================================================
# Shareable Links
# =============================================================================


def format_shareable_link(
    bot_id: str,
    timestamp: float | None = None,
    title: str | None = None,
    speaker: str | None = None,
    description: str | None = None,
) -> str:
    link = viewer_link(bot_id, timestamp)
    lines = [f"## {title or 'Meeting Recording'}"]
    if timestamp is not None:
        lines.append(f"**Timestamp:** {format_time(timestamp)}")
    if speaker:
        lines.append(f"**Speaker:** {speaker}")
    if description:
        lines.append(f"**Moment:** {description}")
    lines.extend(["", f"🔗 [Watch recording]({link})", "", link])
    return "\n".join(lines)


def format_segments_list(bot_id: str, segments: Iterable[dict[str, Any]]) -> str:
    """
    Numbered list of timestamped links.

    Each segment is a mapping with ``timestamp`` and ``description`` and an
    optional ``speaker``.
    """
    lines = []
    for i, segment in enumerate(segments, 1):
        timestamp = float(segment.get("timestamp", 0))
        label = f"{i}. **[{format_time(timestamp)}]** {segment.get('description', '')}".rstrip()
        speaker = segment.get("speaker")
        if speaker:
            label += f" ({speaker})"
        lines.append(label)
        lines.append(f"   {viewer_link(bot_id, timestamp)}")

    if not lines:
        return f"No segments to share. Full recording: {viewer_link(bot_id)}"
    return "\n".join(["## Meeting Segments", "", *lines, "", f"Full recording: {viewer_link(bot_id)}"])


def format_key_moments(meeting: Meeting, moments: Sequence[KeyMoment], topics: Sequence[str] = ()) -> str:
    lines = [f"# Key Moments from {meeting.title}", ""]
    if topics:
        lines.append("## Main Topics Discussed")
        lines.extend(f"- {topic}" for topic in topics)
        lines.append("")
    segments = [
        {"timestamp": m.start_time, "speaker": m.speaker, "description": m.description}
        for m in moments
    ]
    lines.append(format_segments_list(meeting.bot_id, segments))
    return "\n".join(lines)


# =============================================================================
# Search Results
# =============================================================================


def format_hit(hit: SearchHit, *, with_meeting: bool = False, with_link: bool = False) -> str:
    text = format_segment(hit.segment)
    if hit.is_context:
        text = f"  {text}"
    if with_meeting:
        text = f"Meeting: {hit.meeting_title} ({hit.bot_id})\n{text}"
    if with_link and hit.recording_url:
        text += f"\nSegment link: {recording_link(hit.recording_url, hit.segment.start_time)}"
    return text


def format_hits(
    hits: Sequence[SearchHit],
    header: str,
    *,
    with_meeting: bool = False,
    with_link: bool = False,
) -> str:
    body = "\n\n".join(format_hit(h, with_meeting=with_meeting, with_link=with_link) for h in hits)
    return f"{header}\n\n{body}" if body else header


def format_meeting_data(meeting: Meeting) -> str:
    lines = [
        f"# {meeting.title}",
        "",
        f"- **Bot ID:** `{meeting.bot_id}`",
        f"- **Meeting URL:** {meeting.meeting_url or 'Unknown'}",
        f"- **Meeting Type:** {meeting.meeting_type or 'Unknown'}",
        f"- **Created:** {meeting.created_at or 'Unknown'}",
        f"- **Participants:** {', '.join(meeting.participants) or 'Unknown'}",
        f"- **Transcript segments:** {len(meeting.segments)}",
    ]
    if meeting.duration is not None:
        lines.append(f"- **Duration:** {format_time(meeting.duration)}")
    if meeting.recording_url:
        lines.append(f"- **Recording:** {meeting.recording_url}")
    lines.append(f"- **Viewer:** {viewer_link(meeting.bot_id)}")
    return "\n".join(lines)


# =============================================================================
# Calendars
# =============================================================================


def format_calendars(calendars: Sequence[Calendar]) -> str:
    if not calendars:
        return "No calendars found. Connect a calendar to your MeetingBaaS account first."
    lines = [f"- {c.name} ({c.email or 'no email'}) [ID: {c.uuid}]" for c in calendars]
    return f"Found {len(calendars)} calendars:\n\n" + "\n".join(lines)


def format_upcoming_events(events: Sequence[CalendarEvent]) -> str:
    """One line per event with its start time and whether a bot will record it."""
    if not events:
        return "No upcoming meetings found in this calendar."
    lines = []
    for event in events:
        starts_at = event.starts_at
        when = starts_at.strftime("%Y-%m-%d %H:%M UTC") if starts_at else "unknown time"
        bot = " 🤖 Bot scheduled" if event.bot_scheduled else ""
        lines.append(f"- {event.name} [{when}]{bot} [ID: {event.uuid}]")
    return "Upcoming meetings:\n\n" + "\n".join(lines)
