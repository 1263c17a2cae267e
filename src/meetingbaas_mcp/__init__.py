"""MeetingBaaS MCP Server

Meeting recording search for AI assistants:
- find_key_moments: Highlights of a meeting with shareable links
- intelligent_search: Free-text search across meetings
- search_transcript, find_meeting_topic, search_video_segment: Single-meeting search
"""

try:
    from importlib.metadata import PackageNotFoundError, version
except (ImportError, ModuleNotFoundError):
    __version__ = "0.0.0+unknown"
else:
    try:
        __version__ = version("meetingbaas-mcp")
    except PackageNotFoundError:
        __version__ = "0.0.0+unknown"

from meetingbaas_mcp.client import MeetingBaasClient
from meetingbaas_mcp.moments import select_key_moments
from meetingbaas_mcp.planner import SearchPlan, SearchStrategy, plan_search
from meetingbaas_mcp.search import SearchOutcome, intelligent_search
from meetingbaas_mcp.server import main, mcp
from meetingbaas_mcp.session import RecentMeeting, RecentMeetingCache
from meetingbaas_mcp.topics import extract_topics
from meetingbaas_mcp.types import (
    AuthenticationError,
    Calendar,
    CalendarEvent,
    DateRange,
    KeyMoment,
    MalformedResponseError,
    Meeting,
    MeetingBaasError,
    MeetingSummary,
    MomentKind,
    NotFoundError,
    SearchHit,
    TimeRange,
    TranscriptSegment,
    TransientGatewayError,
)

__all__ = [
    "__version__",
    "AuthenticationError",
    "Calendar",
    "CalendarEvent",
    "DateRange",
    "KeyMoment",
    "MalformedResponseError",
    "Meeting",
    "MeetingBaasClient",
    "MeetingBaasError",
    "MeetingSummary",
    "MomentKind",
    "NotFoundError",
    "RecentMeeting",
    "RecentMeetingCache",
    "SearchHit",
    "SearchOutcome",
    "SearchPlan",
    "SearchStrategy",
    "TimeRange",
    "TranscriptSegment",
    "TransientGatewayError",
    "extract_topics",
    "intelligent_search",
    "main",
    "mcp",
    "plan_search",
    "select_key_moments",
]
