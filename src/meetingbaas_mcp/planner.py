"""
Natural-language query planning for intelligent search.

A query is scanned with a fixed set of regex heuristics to pull out a
meeting identifier, a meeting type, a speaker, a time range within the
meeting, a date range for calendar events and a topic.
Whatever is left after removing those phrases becomes the free-text search
term. The search strategy is then picked by walking ``STRATEGY_RULES`` in
order and taking the first rule whose predicate holds.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from meetingbaas_mcp.types import DateRange, TimeRange, parse_timestamp


class SearchStrategy(str, Enum):
    """How intelligent search will look for results."""

    SPECIFIC_MEETING = "specific-meeting"
    MEETING_TYPE = "meeting-type"
    CALENDAR = "calendar"
    RECENT_BOTS = "recent-bots"
    GENERAL = "general-fallback"


@dataclass(frozen=True, slots=True)
class QuerySignals:
    """Filter values found in a query, before a strategy is chosen."""

    meeting_id: str | None = None
    meeting_type: str | None = None
    calendar_id: str | None = None
    speaker: str | None = None
    topic: str | None = None
    time_range: TimeRange = field(default_factory=TimeRange)
    date_range: DateRange = field(default_factory=DateRange)
    has_recent: bool = False


@dataclass(frozen=True, slots=True)
class SearchPlan:
    """A strategy plus everything needed to execute it."""

    strategy: SearchStrategy
    search_terms: str
    meeting_id: str | None = None
    meeting_type: str | None = None
    calendar_id: str | None = None
    speaker: str | None = None
    topic: str | None = None
    time_range: TimeRange = field(default_factory=TimeRange)
    date_range: DateRange = field(default_factory=DateRange)
    # True when nothing but filter phrases was left in the query
    filters_only: bool = False

    @property
    def is_segment_search(self) -> bool:
        """True when results must be narrowed by speaker or time."""
        return self.speaker is not None or not self.time_range.is_empty

    @property
    def query_terms(self) -> str:
        """Text to look for in transcripts: the topic when one was named."""
        return self.topic or self.search_terms


# =============================================================================
# Patterns
# =============================================================================

_ID_PATTERN = re.compile(
    r"\b(?:meeting|bot|recording)(?:\s+(?:id|uuid))?\s*[:#]?\s*"
    r"(?=[0-9a-f-]*\d)([0-9a-f][0-9a-f-]{7,})\b",
    re.IGNORECASE,
)

_MEETING_SUFFIX = r"(?:\s+(?:meetings?|calls?|sessions?))?"
_TYPE_PREFIX = r"(?:\b(?:in|from|during|across)\s+(?:the\s+|my\s+|our\s+|all\s+)?)?"

# Order matters: the first keyword that matches decides the type
MEETING_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("sales", r"sales"),
    ("psychiatric", r"psychiatric|therapy|mental\s+health"),
    ("standup", r"(?:daily\s+)?stand-?ups?|scrum|daily\s+(?:syncs?|meetings?|calls?)"),
    ("interview", r"interviews?"),
    ("product", r"product\s+(?:meetings?|reviews?|syncs?)"),
    ("planning", r"planning\s+(?:meetings?|sessions?)"),
)

_TYPE_PATTERNS: tuple[tuple[str, re.Pattern[str], re.Pattern[str]], ...] = tuple(
    (
        name,
        re.compile(rf"\b(?:{keyword})\b", re.IGNORECASE),
        re.compile(rf"{_TYPE_PREFIX}\b(?:{keyword}){_MEETING_SUFFIX}\b", re.IGNORECASE),
    )
    for name, keyword in MEETING_TYPE_KEYWORDS
)

_SPEAKER_PATTERN = re.compile(
    r"\b(?:(?:where|when|what|how)\s+)?(?:did|does|was|has)\s+"
    r"(?!(?:the|we|they|you|i|he|she|it|everyone|anyone|someone|people|anybody)\b)"
    r"([a-z][\w'-]*(?:\s+(?!(?:say|said|talk|speak|spoke|mention)\w*\b)[a-z][\w'-]*)?)"
    r"\s+(?:say|said|talk|speak|spoke|mention)\w*",
    re.IGNORECASE,
)

_CLOCK = r"(\d+)(?::(\d{1,2}))?"
_MINUTES = r"(?:\s*min(?:ute)?s?)?"

_RANGE_PATTERN = re.compile(rf"\bbetween\s+{_CLOCK}{_MINUTES}\s+(?:and|to)\s+{_CLOCK}{_MINUTES}", re.IGNORECASE)
_AFTER_PATTERN = re.compile(rf"\bafter\s+{_CLOCK}{_MINUTES}", re.IGNORECASE)
_BEFORE_PATTERN = re.compile(rf"\bbefore\s+{_CLOCK}{_MINUTES}", re.IGNORECASE)
_AROUND_PATTERN = re.compile(rf"\baround\s+{_CLOCK}{_MINUTES}", re.IGNORECASE)

AROUND_SPAN = 60.0  # seconds either side of an "around" time

_TOPIC_STOP = r"(?:in|of|on|at|during|between|after|before|around|with|from|the|a|an|my|our|all)"
_TOPIC_BODY = (
    rf"\s+(?:(?:of|on)\s+)?(?:the\s+)?(?!{_TOPIC_STOP}\b)([a-z][a-z\s-]{{2,}}?)"
    rf"(?=\s+(?:in|during|at|on|between|after|before|around|with|from)\b|[?.!,]|$)"
)

_TOPIC_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:about|regarding|discuss(?:ed|ing|ion)?|mention(?:ed|s)?|talk(?:ed)?\s+about|cover(?:ed)?)"
        + _TOPIC_BODY,
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:find|search\s+for|look\s+for)" + _TOPIC_BODY, re.IGNORECASE),
)

_DATE_PATTERN = re.compile(
    r"\b(?:from\s+)?(?:(yesterday|today)|(?:last|past)\s+(week|day|month)|this\s+(week|month|quarter))\b",
    re.IGNORECASE,
)
_PAST_DAYS = {"day": 1, "week": 7, "month": 30}

_LEADING_FILLER = re.compile(
    r"^(?:about|regarding|on|for|the|of|find|search|look|show\s+me|any|all)\s+", re.IGNORECASE
)
# Questions that name no subject once filter phrases are gone
_BARE_QUESTION = re.compile(
    r"^(?:what|anything)(?:\s+(?:was|were|is|got|did\s+(?:we|they)))?\s+"
    r"(?:discuss(?:ed)?|said|say|mention(?:ed)?|cover(?:ed)?|talk(?:ed)?\s+about)$",
    re.IGNORECASE,
)


# =============================================================================
# Extraction
# =============================================================================


def _to_seconds(minutes: str, seconds: str | None) -> float:
    return float(int(minutes) * 60 + (int(seconds) if seconds else 0))


def extract_meeting_id(query: str) -> str | None:
    match = _ID_PATTERN.search(query)
    return match.group(1).lower() if match else None


def extract_meeting_type(query: str) -> str | None:
    for name, pattern, _ in _TYPE_PATTERNS:
        if pattern.search(query):
            return name
    return None


def extract_speaker(query: str) -> str | None:
    match = _SPEAKER_PATTERN.search(query)
    return match.group(1).strip() if match else None


def extract_time_range(query: str) -> TimeRange:
    """Parse between/after/before/around phrases. Numbers are minutes."""
    if match := _RANGE_PATTERN.search(query):
        return TimeRange(
            start=_to_seconds(match.group(1), match.group(2)),
            end=_to_seconds(match.group(3), match.group(4)),
        )
    if match := _AFTER_PATTERN.search(query):
        return TimeRange(start=_to_seconds(match.group(1), match.group(2)))
    if match := _BEFORE_PATTERN.search(query):
        return TimeRange(end=_to_seconds(match.group(1), match.group(2)))
    if match := _AROUND_PATTERN.search(query):
        center = _to_seconds(match.group(1), match.group(2))
        return TimeRange(start=max(0.0, center - AROUND_SPAN), end=center + AROUND_SPAN)
    return TimeRange()


def extract_topic(query: str) -> str | None:
    """Topic named by about/discussed/find phrases, minus any filter phrases inside it."""
    for pattern in _TOPIC_PATTERNS:
        match = pattern.search(query)
        if match:
            topic = strip_filter_phrases(match.group(1))
            if topic:
                return topic.lower()
    return None


def extract_date_range(query: str, now: datetime | None = None) -> DateRange:
    """Parse today/yesterday/last week style phrases into whole UTC days."""
    match = _DATE_PATTERN.search(query)
    if not match:
        return DateRange()

    today = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    today = today.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)
    single, past, current = (group.lower() if group else None for group in match.groups())

    if single == "today":
        return DateRange(today, tomorrow)
    if single == "yesterday":
        return DateRange(today - timedelta(days=1), today)
    if past:
        return DateRange(today - timedelta(days=_PAST_DAYS[past]), tomorrow)
    if current == "week":
        return DateRange(today - timedelta(days=today.weekday()), tomorrow)
    if current == "month":
        return DateRange(today.replace(day=1), tomorrow)
    quarter_month = 3 * ((today.month - 1) // 3) + 1
    return DateRange(today.replace(month=quarter_month, day=1), tomorrow)


def residual_terms(query: str) -> str:
    """Strip filter phrases from the query. Falls back to the whole query."""
    return strip_filter_phrases(query) or query


def strip_filter_phrases(query: str) -> str:
    """Remove id, type, speaker, time and date phrases plus leading filler."""
    terms = _ID_PATTERN.sub(" ", query)
    for _, _, strip_pattern in _TYPE_PATTERNS:
        terms = strip_pattern.sub(" ", terms)
    terms = _SPEAKER_PATTERN.sub(" ", terms)
    for pattern in (_RANGE_PATTERN, _AFTER_PATTERN, _BEFORE_PATTERN, _AROUND_PATTERN, _DATE_PATTERN):
        terms = pattern.sub(" ", terms)

    terms = " ".join(terms.split()).strip(" ?.!,")
    while (stripped := _LEADING_FILLER.sub("", terms)) != terms:
        terms = stripped

    if _BARE_QUESTION.match(terms):
        return ""
    return terms


# =============================================================================
# Filters
# =============================================================================

_FILTER_ALIASES: dict[str, tuple[str, ...]] = {
    "meeting_id": ("meeting_id", "meetingId", "bot_id", "botId"),
    "meeting_type": ("meeting_type", "meetingType", "type"),
    "calendar_id": ("calendar_id", "calendarId"),
    "speaker": ("speaker",),
    "topic": ("topic",),
    "start_time": ("start_time", "startTime"),
    "end_time": ("end_time", "endTime"),
    "start_date": ("start_date", "startDate"),
    "end_date": ("end_date", "endDate"),
}


def _filter_value(filters: Mapping[str, Any], name: str) -> Any:
    for alias in _FILTER_ALIASES[name]:
        value = filters.get(alias)
        if value is not None and value != "":
            return value
    return None


def _seconds_filter(filters: Mapping[str, Any], name: str, default: float | None) -> float | None:
    value = _filter_value(filters, name)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"Filter '{name}' must be a number of seconds, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Filter '{name}' must be a number of seconds, got {value!r}") from e


def _date_filter(filters: Mapping[str, Any], name: str, default: datetime | None) -> datetime | None:
    value = _filter_value(filters, name)
    if value is None:
        return default
    parsed = parse_timestamp(str(value))
    if parsed is None:
        raise ValueError(f"Filter '{name}' must be an ISO 8601 date, got {value!r}")
    return parsed


def apply_filters(signals: QuerySignals, filters: Mapping[str, Any] | None) -> QuerySignals:
    """
    Overlay explicit filters. An explicit value always beats an extracted one.

    Raises:
        ValueError: If a time filter is not a number or a date filter is not ISO 8601
    """
    if not filters:
        return signals

    updates: dict[str, Any] = {}
    for name in ("meeting_id", "meeting_type", "calendar_id", "speaker", "topic"):
        value = _filter_value(filters, name)
        if value is not None:
            updates[name] = str(value)

    time_range = TimeRange(
        start=_seconds_filter(filters, "start_time", signals.time_range.start),
        end=_seconds_filter(filters, "end_time", signals.time_range.end),
    )
    if time_range != signals.time_range:
        updates["time_range"] = time_range

    date_range = DateRange(
        start=_date_filter(filters, "start_date", signals.date_range.start),
        end=_date_filter(filters, "end_date", signals.date_range.end),
    )
    if date_range != signals.date_range:
        updates["date_range"] = date_range

    return replace(signals, **updates)


# =============================================================================
# Strategy Selection
# =============================================================================

StrategyRule = tuple[Callable[[QuerySignals], bool], SearchStrategy]

STRATEGY_RULES: tuple[StrategyRule, ...] = (
    (lambda s: s.meeting_id is not None, SearchStrategy.SPECIFIC_MEETING),
    (lambda s: s.meeting_type is not None, SearchStrategy.MEETING_TYPE),
    (lambda s: s.calendar_id is not None, SearchStrategy.CALENDAR),
    (lambda s: s.has_recent, SearchStrategy.RECENT_BOTS),
    (lambda s: True, SearchStrategy.GENERAL),
)


def choose_strategy(signals: QuerySignals, rules: tuple[StrategyRule, ...] = STRATEGY_RULES) -> SearchStrategy:
    for predicate, strategy in rules:
        if predicate(signals):
            return strategy
    return SearchStrategy.GENERAL


def extract_signals(query: str, *, has_recent: bool = False, now: datetime | None = None) -> QuerySignals:
    """Run every extractor over the query."""
    return QuerySignals(
        meeting_id=extract_meeting_id(query),
        meeting_type=extract_meeting_type(query),
        speaker=extract_speaker(query),
        topic=extract_topic(query),
        time_range=extract_time_range(query),
        date_range=extract_date_range(query, now),
        has_recent=has_recent,
    )


def plan_search(
    query: str,
    filters: Mapping[str, Any] | None = None,
    *,
    has_recent: bool = False,
    now: datetime | None = None,
) -> SearchPlan:
    """
    Turn a free-text query into a search plan.

    Args:
        query: Natural language search request
        filters: Explicit filter values; these override anything parsed from the query
        has_recent: Whether the session has recently used meetings to fall back on
        now: Reference time for relative dates such as "yesterday" (defaults to the current UTC time)

    Returns:
        SearchPlan with the chosen strategy and residual search terms

    Raises:
        ValueError: If an explicit filter has an unusable value
    """
    signals = apply_filters(extract_signals(query, has_recent=has_recent, now=now), filters)
    stripped = strip_filter_phrases(query)
    return SearchPlan(
        strategy=choose_strategy(signals),
        search_terms=stripped or query,
        filters_only=not stripped,
        meeting_id=signals.meeting_id,
        meeting_type=signals.meeting_type,
        calendar_id=signals.calendar_id,
        speaker=signals.speaker,
        topic=signals.topic,
        time_range=signals.time_range,
        date_range=signals.date_range,
    )
