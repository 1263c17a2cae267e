"""Tests for the MeetingBaaS HTTP client using httpx.MockTransport.

Run with: uv run pytest tests/test_client.py -v
"""

from datetime import datetime, timezone

import httpx
import pytest

from meetingbaas_mcp.client import (
    MeetingBaasClient,
    parse_calendar_events,
    parse_calendars,
    parse_meeting,
    parse_meeting_list,
)
from meetingbaas_mcp.types import (
    AuthenticationError,
    Calendar,
    DateRange,
    MalformedResponseError,
    NotFoundError,
    TransientGatewayError,
)

BASE_URL = "https://api.test"

MEETING_PAYLOAD = {
    "mp4": "https://cdn.test/rec.mp4?sig=abc",
    "duration": 612,
    "bot_data": {
        "bot": {
            "bot_name": "Weekly Sync",
            "meeting_url": "https://meet.google.com/abc-defg-hij",
            "created_at": "2025-05-01T09:00:00Z",
            "extra": {"meetingType": "standup"},
        },
        "transcripts": [
            {"speaker": "Bob", "start_time": 12.5, "end_time": 15.0, "words": [{"text": "Second"}]},
            {"speaker": None, "start_time": 1.0, "words": [{"text": "First"}, {"text": "line"}]},
        ],
    },
}


def _client(handler) -> MeetingBaasClient:
    return MeetingBaasClient("test-key", base_url=BASE_URL, transport=httpx.MockTransport(handler))


class TestFetchMeeting:
    """Test GET /bots/meeting_data."""

    @pytest.mark.asyncio
    async def test_fetch_meeting(self):
        """The response is validated into a Meeting with sorted segments."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=MEETING_PAYLOAD)

        async with _client(handler) as client:
            meeting = await client.fetch_meeting("bot-1")

        request = seen[0]
        assert request.url.path == "/bots/meeting_data"
        assert request.url.params["bot_id"] == "bot-1"
        assert request.headers["x-meeting-baas-api-key"] == "test-key"

        assert meeting.title == "Weekly Sync"
        assert meeting.meeting_type == "standup"
        assert meeting.recording_url == "https://cdn.test/rec.mp4?sig=abc"
        assert [s.text for s in meeting.segments] == ["First line", "Second"]
        assert meeting.segments[0].speaker == "Unknown"
        assert meeting.participants == ["Bob"]

    @pytest.mark.parametrize("status,error", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, NotFoundError),
        (500, TransientGatewayError),
        (503, TransientGatewayError),
        (429, TransientGatewayError),
    ])
    @pytest.mark.asyncio
    async def test_status_mapping(self, status: int, error: type):
        async with _client(lambda request: httpx.Response(status, text="nope")) as client:
            with pytest.raises(error):
                await client.fetch_meeting("bot-1")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(MalformedResponseError):
                await client.fetch_meeting("bot-1")

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        async with _client(lambda request: httpx.Response(200, json={"unexpected": True})) as client:
            with pytest.raises(MalformedResponseError):
                await client.fetch_meeting("bot-1")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransientGatewayError):
                await client.fetch_meeting("bot-1")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransientGatewayError, match="Timeout"):
                await client.fetch_meeting("bot-1")

    def test_missing_bot_is_not_found(self):
        with pytest.raises(NotFoundError):
            parse_meeting("bot-1", {"bot_data": {"transcripts": []}})


class TestListMeetings:
    """Test GET /bots/."""

    BOTS = [
        {"uuid": "b1", "bot_name": "Demo", "extra": {"meetingType": "sales"}, "creator_email": "a@test"},
        {"uuid": "b2"},
    ]

    @pytest.mark.asyncio
    async def test_list_payload(self):
        async with _client(lambda request: httpx.Response(200, json=self.BOTS)) as client:
            summaries = await client.list_meetings()

        assert [s.bot_id for s in summaries] == ["b1", "b2"]
        assert summaries[0].meeting_type == "sales"
        assert summaries[0].creator_email == "a@test"
        assert summaries[1].title == "Unnamed Bot"

    @pytest.mark.parametrize("key", ["bots", "recentBots"])
    def test_wrapped_payload(self, key: str):
        assert [s.bot_id for s in parse_meeting_list({key: self.BOTS})] == ["b1", "b2"]

    def test_invalid_listing(self):
        with pytest.raises(MalformedResponseError):
            parse_meeting_list({"something": "else"})


class TestCalendarEvents:
    """Test GET /calendar_events/."""

    @pytest.mark.asyncio
    async def test_calendar_id_sent(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": []})

        async with _client(handler) as client:
            assert await client.list_calendar_events("cal-1") == []

        assert seen[0].url.path == "/calendar_events/"
        assert seen[0].url.params["calendar_id"] == "cal-1"

    @pytest.mark.asyncio
    async def test_date_range_sent_as_iso_dates(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "data": [{"uuid": "e1", "name": "Retro", "start_time": "2025-06-03T09:00:00Z"}],
            })

        window = DateRange(datetime(2025, 6, 1, tzinfo=timezone.utc), datetime(2025, 6, 8, tzinfo=timezone.utc))
        async with _client(handler) as client:
            events = await client.list_calendar_events("cal-1", window)

        assert seen[0].url.params["start_date_gte"] == "2025-06-01T00:00:00+00:00"
        assert seen[0].url.params["start_date_lte"] == "2025-06-08T00:00:00+00:00"
        assert events[0].starts_at == datetime(2025, 6, 3, 9, tzinfo=timezone.utc)

    def test_bot_taken_from_bot_param(self):
        events = parse_calendar_events({
            "data": [
                {"uuid": "e1", "name": "Sync", "bot_param": {"bot_id": "b1", "extra": {"meetingType": "sales"}}},
                {"uuid": "e2", "name": "Gone", "deleted": True},
            ]
        })

        assert events[0].bot_id == "b1"
        assert events[0].meeting_type == "sales"
        assert events[0].bot_scheduled
        assert events[1].bot_id is None
        assert events[1].deleted
        assert not events[1].bot_scheduled


class TestCalendars:
    """Test GET /calendars/."""

    @pytest.mark.asyncio
    async def test_list_calendars(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[
                {"uuid": "cal-1", "name": "Work", "email": "ann@example.com", "google_id": "x"},
                {"uuid": "cal-2", "name": ""},
            ])

        async with _client(handler) as client:
            calendars = await client.list_calendars()

        assert seen[0].url.path == "/calendars/"
        assert calendars == [
            Calendar("cal-1", "Work", "ann@example.com"),
            Calendar("cal-2", "Unnamed Calendar"),
        ]

    @pytest.mark.parametrize("key", ["data", "calendars"])
    def test_wrapped_payload(self, key: str):
        assert parse_calendars({key: [{"uuid": "cal-1", "name": "Work"}]}) == [Calendar("cal-1", "Work")]

    def test_invalid_listing(self):
        with pytest.raises(MalformedResponseError):
            parse_calendars({"data": [{"name": "no uuid"}]})


class TestClientLifecycle:
    """Test construction and context management."""

    @pytest.mark.parametrize("api_key", ["", "   "])
    def test_empty_key_rejected(self, api_key: str):
        with pytest.raises(AuthenticationError):
            MeetingBaasClient(api_key)

    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        client = _client(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(RuntimeError):
            await client.list_meetings()
