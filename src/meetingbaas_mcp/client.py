"""
HTTP client for the MeetingBaaS API.

Every response is validated with pydantic models at this boundary and
converted to the dataclasses in ``types``; nothing past this module sees raw
JSON. HTTP failures are mapped onto the error taxonomy:

- 401/403 -> AuthenticationError
- 404 -> NotFoundError
- timeouts, connection errors, other error statuses -> TransientGatewayError
- bodies that are not JSON or do not validate -> MalformedResponseError
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from meetingbaas_mcp.config import API_KEY_HEADER, LOGGER_NAME, get_api_base_url, get_timeout
from meetingbaas_mcp.types import (
    UNKNOWN_SPEAKER,
    AuthenticationError,
    Calendar,
    CalendarEvent,
    DateRange,
    MalformedResponseError,
    Meeting,
    MeetingSummary,
    NotFoundError,
    TranscriptSegment,
    TransientGatewayError,
)

logger = logging.getLogger(LOGGER_NAME)

USER_AGENT = "meetingbaas-mcp/1.0"


# =============================================================================
# Wire Models
# =============================================================================


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _Word(_WireModel):
    text: str = ""


class _Transcript(_WireModel):
    speaker: str | None = None
    start_time: float | None = None
    end_time: float | None = None
    words: list[_Word] = Field(default_factory=list)


class _Bot(_WireModel):
    bot_name: str | None = None
    meeting_url: str | None = None
    created_at: str | None = None
    extra: dict[str, Any] | None = None


class _BotData(_WireModel):
    bot: _Bot | None = None
    transcripts: list[_Transcript] = Field(default_factory=list)


class _MeetingData(_WireModel):
    bot_data: _BotData
    mp4: str | None = None
    duration: float | None = None


class _BotListing(_WireModel):
    bot_id: str = Field(validation_alias=AliasChoices("uuid", "bot_id", "id"))
    bot_name: str | None = None
    meeting_url: str | None = None
    created_at: str | None = None
    creator_email: str | None = None
    extra: dict[str, Any] | None = None


class _CalendarEvent(_WireModel):
    uuid: str
    name: str = ""
    start_time: str | None = None
    deleted: bool = False
    bot_id: str | None = None
    bot_param: dict[str, Any] | None = None


class _CalendarEventPage(_WireModel):
    data: list[_CalendarEvent] = Field(default_factory=list)


class _Calendar(_WireModel):
    uuid: str
    name: str = ""
    email: str | None = None


_BOT_LIST = TypeAdapter(list[_BotListing])
_CALENDAR_LIST = TypeAdapter(list[_Calendar])


def _meeting_type(extra: dict[str, Any] | None) -> str | None:
    if not extra:
        return None
    value = extra.get("meetingType") or extra.get("meeting_type")
    return str(value) if value else None


def _to_segment(transcript: _Transcript) -> TranscriptSegment:
    return TranscriptSegment(
        speaker=transcript.speaker or UNKNOWN_SPEAKER,
        start_time=max(0.0, transcript.start_time or 0.0),
        end_time=transcript.end_time,
        words=tuple(w.text for w in transcript.words if w.text),
    )


def parse_meeting(bot_id: str, payload: Any) -> Meeting:
    """Validate a ``/bots/meeting_data`` response into a Meeting."""
    try:
        data = _MeetingData.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(f"Unexpected meeting data for bot {bot_id}", {"errors": e.errors()}) from e

    bot = data.bot_data.bot
    if bot is None:
        raise NotFoundError(f"No meeting data found for bot {bot_id}", {"bot_id": bot_id})

    extra = bot.extra or {}
    participants = extra.get("participants")
    return Meeting(
        bot_id=bot_id,
        title=bot.bot_name or "Meeting Recording",
        recording_url=data.mp4 or "",
        segments=[_to_segment(t) for t in data.bot_data.transcripts],
        meeting_type=_meeting_type(extra),
        participants=[str(p) for p in participants] if isinstance(participants, list) else [],
        created_at=bot.created_at,
        meeting_url=bot.meeting_url,
        duration=data.duration,
    )


def parse_meeting_list(payload: Any) -> list[MeetingSummary]:
    """Validate a bot listing. Accepts a bare list or ``{"bots": [...]}``."""
    if isinstance(payload, dict):
        payload = payload.get("bots", payload.get("recentBots", payload.get("data")))
    try:
        bots = _BOT_LIST.validate_python(payload)
    except ValidationError as e:
        raise MalformedResponseError("Unexpected bot listing", {"errors": e.errors()}) from e

    return [
        MeetingSummary(
            bot_id=bot.bot_id,
            title=bot.bot_name or "Unnamed Bot",
            meeting_url=bot.meeting_url,
            meeting_type=_meeting_type(bot.extra),
            created_at=bot.created_at,
            creator_email=bot.creator_email,
        )
        for bot in bots
    ]


def parse_calendar_events(payload: Any) -> list[CalendarEvent]:
    """Validate a ``/calendar_events/`` page."""
    try:
        page = _CalendarEventPage.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError("Unexpected calendar events", {"errors": e.errors()}) from e

    events = []
    for event in page.data:
        param = event.bot_param or {}
        bot_id = event.bot_id or param.get("bot_id") or param.get("uuid")
        events.append(
            CalendarEvent(
                uuid=event.uuid,
                name=event.name,
                start_time=event.start_time,
                deleted=event.deleted,
                bot_id=str(bot_id) if bot_id else None,
                meeting_type=_meeting_type(param.get("extra")),
                bot_scheduled=bool(event.bot_param) or bool(bot_id),
            )
        )
    return events


def parse_calendars(payload: Any) -> list[Calendar]:
    """Validate a ``/calendars/`` response. Accepts a bare list or ``{"data": [...]}``."""
    if isinstance(payload, dict):
        payload = payload.get("data", payload.get("calendars"))
    try:
        calendars = _CALENDAR_LIST.validate_python(payload)
    except ValidationError as e:
        raise MalformedResponseError("Unexpected calendar listing", {"errors": e.errors()}) from e
    return [Calendar(uuid=c.uuid, name=c.name or "Unnamed Calendar", email=c.email) for c in calendars]


# =============================================================================
# Client
# =============================================================================


class MeetingBaasClient:
    """Async MeetingBaaS API client. Use as ``async with``."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key or not api_key.strip():
            raise AuthenticationError("Authentication required: No API key provided")
        self._api_key = api_key.strip()
        self._base_url = base_url or get_api_base_url()
        self._timeout = timeout if timeout is not None else get_timeout()
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> MeetingBaasClient:
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={
                API_KEY_HEADER: self._api_key,
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        if self._http is None:
            raise RuntimeError("MeetingBaasClient must be used as an async context manager")

        try:
            response = await self._http.get(endpoint, params=params)
        except httpx.TimeoutException as e:
            logger.warning("   ⏱️ Timeout calling %s", endpoint)
            raise TransientGatewayError(f"Timeout after {self._timeout}s calling {endpoint}") from e
        except httpx.HTTPError as e:
            logger.warning("   ❌ Request to %s failed: %s", endpoint, e)
            raise TransientGatewayError(f"Request error: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(
                "Authentication failed: Invalid API key or insufficient permissions",
                {"status": status},
            )
        if status == 404:
            raise NotFoundError(f"Not found: {endpoint}", {"status": status, "params": params or {}})
        if response.is_error:
            raise TransientGatewayError(
                f"API error {status}: {response.text[:200]}",
                {"status": status},
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Non-JSON response from {endpoint}") from e

    async def fetch_meeting(self, bot_id: str) -> Meeting:
        """Fetch metadata, recording URL and transcript for one bot."""
        payload = await self._get("/bots/meeting_data", {"bot_id": bot_id})
        return parse_meeting(bot_id, payload)

    async def list_meetings(self) -> list[MeetingSummary]:
        """List every bot (metadata only, no transcripts)."""
        payload = await self._get("/bots/")
        return parse_meeting_list(payload)

    async def list_calendars(self) -> list[Calendar]:
        """List the calendars connected to the account."""
        payload = await self._get("/calendars/")
        return parse_calendars(payload)

    async def list_calendar_events(self, calendar_id: str, date_range: DateRange | None = None) -> list[CalendarEvent]:
        """List events of one calendar, optionally only those starting inside ``date_range``."""
        params: dict[str, Any] = {"calendar_id": calendar_id}
        if date_range is not None:
            if date_range.start is not None:
                params["start_date_gte"] = date_range.start.isoformat()
            if date_range.end is not None:
                params["start_date_lte"] = date_range.end.isoformat()
        payload = await self._get("/calendar_events/", params)
        return parse_calendar_events(payload)
