"""
Per-session state and API key resolution.

Each MCP session owns a small recency cache of the meetings it touched.
Intelligent search falls back to that cache before scanning all meetings.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass, field

from meetingbaas_mcp.config import (
    CLIENT_API_KEY_HEADERS,
    LOGGER_NAME,
    RECENT_CACHE_SIZE,
    get_env_api_key,
    load_config_api_key,
)
from meetingbaas_mcp.topics import extract_topics
from meetingbaas_mcp.types import AuthenticationError, Meeting

logger = logging.getLogger(LOGGER_NAME)

RECENT_TOPIC_COUNT = 5
MAX_SESSIONS = 256
DEFAULT_SESSION_ID = "default"


# =============================================================================
# Recent Meetings
# =============================================================================


@dataclass(frozen=True, slots=True)
class RecentMeeting:
    """What a session remembers about a meeting it has looked at."""

    bot_id: str
    name: str
    meeting_type: str | None = None
    topics: tuple[str, ...] = ()
    participants: tuple[str, ...] = ()

    @classmethod
    def from_meeting(cls, meeting: Meeting) -> RecentMeeting:
        return cls(
            bot_id=meeting.bot_id,
            name=meeting.title,
            meeting_type=meeting.meeting_type,
            topics=tuple(extract_topics(meeting.texts, RECENT_TOPIC_COUNT)),
            participants=tuple(meeting.participants),
        )


class RecentMeetingCache:
    """Bounded most-recently-used map of bot_id to RecentMeeting."""

    def __init__(self, max_size: int = RECENT_CACHE_SIZE):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._entries: OrderedDict[str, RecentMeeting] = OrderedDict()

    def record(self, entry: RecentMeeting) -> None:
        """Insert or refresh an entry, evicting the oldest beyond the bound."""
        self._entries[entry.bot_id] = entry
        self._entries.move_to_end(entry.bot_id)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted %s from recent meetings", evicted)

    def touch(self, bot_id: str) -> bool:
        """Mark an entry as most recent. Returns False if it is not cached."""
        if bot_id not in self._entries:
            return False
        self._entries.move_to_end(bot_id)
        return True

    def get(self, bot_id: str) -> RecentMeeting | None:
        return self._entries.get(bot_id)

    def entries(self) -> list[RecentMeeting]:
        """Most recent first."""
        return list(reversed(self._entries.values()))

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, bot_id: object) -> bool:
        return bot_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Sessions
# =============================================================================


@dataclass(slots=True)
class SessionContext:
    """State tied to one MCP session."""

    session_id: str
    recent: RecentMeetingCache = field(default_factory=RecentMeetingCache)


class SessionRegistry:
    """Session contexts keyed by MCP session id, oldest dropped first."""

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, SessionContext] = OrderedDict()

    def get(self, session_id: str | None) -> SessionContext:
        key = session_id or DEFAULT_SESSION_ID
        session = self._sessions.get(key)
        if session is None:
            session = SessionContext(session_id=key)
            self._sessions[key] = session
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)
        else:
            self._sessions.move_to_end(key)
        return session

    def __len__(self) -> int:
        return len(self._sessions)


# =============================================================================
# Authentication
# =============================================================================


def api_key_from_headers(headers: Mapping[str, str] | None) -> str | None:
    """Find an API key in request headers (names compared case-insensitively)."""
    if not headers:
        return None
    lowered = {name.lower(): value for name, value in headers.items()}
    for name in CLIENT_API_KEY_HEADERS:
        value = lowered.get(name, "").strip()
        if value:
            return value

    auth = lowered.get("authorization", "").strip()
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        if token:
            return token
    return None


def resolve_api_key(headers: Mapping[str, str] | None = None) -> str:
    """
    Resolve the API key for a request.

    Precedence: request headers, then MEETING_BAAS_API_KEY, then the local
    config file.

    Raises:
        AuthenticationError: If no source provides a key
    """
    api_key = api_key_from_headers(headers)
    if api_key:
        return api_key

    api_key = get_env_api_key()
    if api_key:
        return api_key

    try:
        api_key = load_config_api_key()
    except (OSError, ValueError) as e:
        logger.warning("⚠️ Could not read config file: %s", e)
        api_key = None
    if api_key:
        return api_key

    raise AuthenticationError(
        "Authentication required: No API key provided. "
        "Set MEETING_BAAS_API_KEY or send an x-meeting-baas-api-key header."
    )
