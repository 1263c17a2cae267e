"""
Data types for MeetingBaaS MCP Server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

DEFAULT_SEGMENT_LENGTH = 5.0  # seconds, used when a segment has no end_time
UNKNOWN_SPEAKER = "Unknown"


# =============================================================================
# Exceptions
# =============================================================================


class MeetingBaasError(Exception):
    """Base error for MeetingBaaS operations.

    Provides structured error information with error codes for programmatic handling.
    """

    code = "MEETING_BAAS_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None, *, code: str | None = None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class AuthenticationError(MeetingBaasError):
    """Missing or rejected API key. Aborts the whole call."""

    code = "AUTHENTICATION_ERROR"


class NotFoundError(MeetingBaasError):
    """Meeting, topic or calendar does not exist."""

    code = "NOT_FOUND"


class TransientGatewayError(MeetingBaasError):
    """Network failure, timeout or server-side error from the API."""

    code = "GATEWAY_ERROR"


class MalformedResponseError(TransientGatewayError):
    """The API answered with a shape we could not validate."""

    code = "MALFORMED_RESPONSE"


# =============================================================================
# Transcript Model
# =============================================================================


@dataclass(frozen=True, slots=True)
class TranscriptSegment:
    """One contiguous span of transcribed speech."""

    speaker: str
    start_time: float
    words: tuple[str, ...] = ()
    end_time: float | None = None

    @property
    def text(self) -> str:
        return " ".join(self.words)

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def effective_end(self) -> float:
        """End time, estimated as start + 5s when the API gave none."""
        if self.end_time is not None:
            return self.end_time
        return self.start_time + DEFAULT_SEGMENT_LENGTH


@dataclass(slots=True)
class Meeting:
    """A recorded meeting with its transcript.

    Segments are sorted by start_time on construction; the analysis code
    relies on that ordering.
    """

    bot_id: str
    title: str
    recording_url: str = ""
    segments: list[TranscriptSegment] = field(default_factory=list)
    meeting_type: str | None = None
    participants: list[str] = field(default_factory=list)
    created_at: str | None = None
    meeting_url: str | None = None
    duration: float | None = None

    def __post_init__(self) -> None:
        self.segments = sorted(self.segments, key=lambda s: s.start_time)
        if not self.participants:
            seen: dict[str, None] = {}
            for segment in self.segments:
                if segment.speaker != UNKNOWN_SPEAKER:
                    seen.setdefault(segment.speaker, None)
            self.participants = list(seen)

    @property
    def texts(self) -> list[str]:
        return [segment.text for segment in self.segments]

    def to_dict(self) -> dict[str, Any]:
        """Convert metadata (no transcript) to a JSON-serializable dict."""
        return {
            "bot_id": self.bot_id,
            "title": self.title,
            "recording_url": self.recording_url,
            "meeting_url": self.meeting_url,
            "meeting_type": self.meeting_type,
            "participants": self.participants,
            "created_at": self.created_at,
            "duration": self.duration,
            "segment_count": len(self.segments),
        }


@dataclass(frozen=True, slots=True)
class MeetingSummary:
    """Metadata-only entry from the bot listing."""

    bot_id: str
    title: str
    meeting_url: str | None = None
    meeting_type: str | None = None
    created_at: str | None = None
    creator_email: str | None = None


@dataclass(frozen=True, slots=True)
class CalendarEvent:
    """A calendar event, optionally carrying the bot that recorded it."""

    uuid: str
    name: str
    start_time: str | None = None
    deleted: bool = False
    bot_id: str | None = None
    meeting_type: str | None = None
    bot_scheduled: bool = False

    @property
    def starts_at(self) -> datetime | None:
        """Parsed start time (UTC when the API omits an offset)."""
        return parse_timestamp(self.start_time)


@dataclass(frozen=True, slots=True)
class Calendar:
    """A calendar connected to the MeetingBaaS account."""

    uuid: str
    name: str
    email: str | None = None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp; None when missing or unreadable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class DateRange:
    """Calendar dates bounding when events start; either bound may be open."""

    start: datetime | None = None
    end: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Seconds from meeting start; either bound may be open."""

    start: float | None = None
    end: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, segment: TranscriptSegment) -> bool:
        if self.start is not None and segment.start_time < self.start:
            return False
        if self.end is not None and segment.effective_end > self.end:
            return False
        return True


# =============================================================================
# Analysis Results
# =============================================================================


class MomentKind(str, Enum):
    """Where a key moment came from."""

    STRUCTURAL = "structural"
    TOPIC_MATCH = "topic-match"
    CONVERSATION = "conversation"
    EXTENDED_DISCUSSION = "extended-discussion"


@dataclass(frozen=True, slots=True)
class KeyMoment:
    """A timestamp worth sharing or jumping to."""

    start_time: float
    speaker: str
    description: str
    importance: float
    kind: MomentKind


@dataclass(slots=True)
class SearchHit:
    """A transcript segment returned by a search, tagged with its meeting."""

    bot_id: str
    meeting_title: str
    segment: TranscriptSegment
    index: int
    relevance: float = 0.0
    is_context: bool = False
    recording_url: str = ""
    meeting_type: str | None = None
    created_at: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.bot_id, self.index)
