"""
Configuration management for MeetingBaaS MCP Server.

All configuration is loaded from environment variables with sensible defaults.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

LOGGER_NAME = "meetingbaas_mcp"


# =============================================================================
# API Configuration
# =============================================================================

API_BASE_URLS = {
    "prod": "https://api.meetingbaas.com",
    "preprod": "https://api.pre-prod-meetingbaas.com",
    "gmeetbot": "https://api.gmeetbot.com",
}
DEFAULT_ENVIRONMENT = "prod"

DEFAULT_VIEWER_URL = "https://meetingbaas.com/viewer"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "meetingbaas-mcp" / "config.json"

API_KEY_HEADER = "x-meeting-baas-api-key"
# Headers a client may use to hand us its key
CLIENT_API_KEY_HEADERS = ("x-meeting-baas-api-key", "x-api-key")

DEFAULT_TIMEOUT = 30.0  # seconds per HTTP request


# =============================================================================
# Server Configuration
# =============================================================================

SERVER_NAME = "Meeting BaaS MCP"
DEFAULT_TRANSPORT = "stdio"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7017


# =============================================================================
# Analysis Tuning
# =============================================================================

# Two key moments closer than this are considered duplicates
PROXIMITY_WINDOW = 30.0  # seconds
MIN_WINDOW_SIZE = 30.0  # seconds

# Meeting duration is divided by this to get the conversation window size
WINDOW_DIVISORS = {
    "low": 5,
    "medium": 10,
    "high": 20,
}

TOPIC_COUNTS = {
    "low": 3,
    "medium": 5,
    "high": 10,
}
DEFAULT_GRANULARITY = "medium"
DEFAULT_MAX_MOMENTS = 5


# =============================================================================
# Search Limits
# =============================================================================

RECENT_CACHE_SIZE = 5
FALLBACK_SCAN_LIMIT = 5  # meetings tried when nothing is cached
CALENDAR_SCAN_LIMIT = 5
CONTEXT_WINDOW = 2  # segments before/after a match
DEFAULT_MAX_RESULTS = 20
DEFAULT_TYPE_LIMIT = 10


# =============================================================================
# Getters
# =============================================================================


def get_environment() -> str:
    """Get the MeetingBaaS environment name (prod, preprod, gmeetbot)."""
    env = os.environ.get("MEETING_BAAS_ENV", DEFAULT_ENVIRONMENT).strip().lower()
    if env not in API_BASE_URLS:
        raise ValueError(
            f"Unknown MEETING_BAAS_ENV '{env}'. Expected one of: {', '.join(API_BASE_URLS)}"
        )
    return env


def get_api_base_url() -> str:
    """Get the API base URL, honouring an explicit override."""
    override = os.environ.get("MEETING_BAAS_API_URL")
    if override:
        return override.rstrip("/")
    return API_BASE_URLS[get_environment()]


def get_viewer_url() -> str:
    """Get the base URL used for shareable recording links."""
    return os.environ.get("MEETING_BAAS_VIEWER_URL", DEFAULT_VIEWER_URL).rstrip("/")


def get_timeout() -> float:
    """Get the HTTP timeout in seconds."""
    return float(os.environ.get("MEETING_BAAS_TIMEOUT", DEFAULT_TIMEOUT))


def get_config_path() -> Path:
    """Get the path of the local JSON config file."""
    override = os.environ.get("MEETING_BAAS_CONFIG")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def load_config_api_key(path: Path | None = None) -> str | None:
    """Read ``api_key`` from the local config file, if one exists."""
    path = path or get_config_path()
    if not path.is_file():
        return None

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")

    api_key = data.get("api_key") or data.get("apiKey")
    return str(api_key) if api_key else None


def get_env_api_key() -> str | None:
    """Get API key from environment."""
    return os.environ.get("MEETING_BAAS_API_KEY") or None


def get_transport() -> str:
    """Get the MCP transport to serve on."""
    return os.environ.get("MEETING_BAAS_TRANSPORT", DEFAULT_TRANSPORT)


def get_host() -> str:
    """Get bind host for network transports."""
    return os.environ.get("MEETING_BAAS_HOST", DEFAULT_HOST)


def get_port() -> int:
    """Get bind port for network transports."""
    return int(os.environ.get("MEETING_BAAS_PORT", DEFAULT_PORT))


def get_topic_count(granularity: str) -> int:
    """Map a granularity level to the number of topics to detect."""
    return TOPIC_COUNTS.get(granularity, TOPIC_COUNTS[DEFAULT_GRANULARITY])


def get_window_divisor(granularity: str) -> int:
    """Map a granularity level to the meeting-duration divisor for windows."""
    return WINDOW_DIVISORS.get(granularity, WINDOW_DIVISORS[DEFAULT_GRANULARITY])
