"""Shared builders and a fake gateway for tests."""

from meetingbaas_mcp.types import (
    Calendar,
    CalendarEvent,
    DateRange,
    Meeting,
    MeetingBaasError,
    MeetingSummary,
    NotFoundError,
    TranscriptSegment,
)


def seg(speaker: str, start: float, text: str, end: float | None = None) -> TranscriptSegment:
    return TranscriptSegment(speaker=speaker, start_time=start, words=tuple(text.split()), end_time=end)


def make_meeting(
    bot_id: str,
    segments: list[TranscriptSegment],
    *,
    title: str | None = None,
    meeting_type: str | None = None,
    created_at: str | None = None,
    recording_url: str = "",
) -> Meeting:
    return Meeting(
        bot_id=bot_id,
        title=title or f"Meeting {bot_id}",
        recording_url=recording_url or f"https://cdn.test/{bot_id}.mp4",
        segments=segments,
        meeting_type=meeting_type,
        created_at=created_at,
    )


class FakeGateway:
    """In-memory gateway that records every call."""

    def __init__(
        self,
        meetings: list[Meeting] = (),
        *,
        summaries: list[MeetingSummary] | None = None,
        events: list[CalendarEvent] = (),
        calendars: list[Calendar] = (),
        errors: dict[str, MeetingBaasError] | None = None,
        list_error: MeetingBaasError | None = None,
    ):
        self.meetings = {m.bot_id: m for m in meetings}
        if summaries is None:
            summaries = [
                MeetingSummary(m.bot_id, m.title, meeting_type=m.meeting_type, created_at=m.created_at)
                for m in meetings
            ]
        self.summaries = list(summaries)
        self.events = list(events)
        self.calendars = list(calendars)
        self.errors = errors or {}
        self.list_error = list_error
        self.calls: list[tuple] = []

    async def __aenter__(self) -> "FakeGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def fetch_meeting(self, bot_id: str) -> Meeting:
        self.calls.append(("fetch_meeting", bot_id))
        if bot_id in self.errors:
            raise self.errors[bot_id]
        if bot_id not in self.meetings:
            raise NotFoundError(f"No meeting data found for bot {bot_id}")
        return self.meetings[bot_id]

    async def list_meetings(self) -> list[MeetingSummary]:
        self.calls.append(("list_meetings",))
        if self.list_error is not None:
            raise self.list_error
        return list(self.summaries)

    async def list_calendar_events(self, calendar_id: str, date_range: DateRange | None = None) -> list[CalendarEvent]:
        self.calls.append(("list_calendar_events", calendar_id, date_range))
        return list(self.events)

    async def list_calendars(self) -> list[Calendar]:
        self.calls.append(("list_calendars",))
        return list(self.calendars)

    @property
    def fetched(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "fetch_meeting"]
