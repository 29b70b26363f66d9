"""Constants for working-hours resolution and queue rendering."""

import re
from typing import Final

MINUTES_PER_DAY: Final[int] = 1440
"""Minutes in a calendar day; also the "24:00" end-of-day sentinel."""

WEEKEND_WEEKDAYS: Final[frozenset[int]] = frozenset({5, 6})
"""datetime.weekday() values for Saturday and Sunday (always unavailable)."""

MAX_DAYS_AHEAD: Final[int] = 7
"""Upper bound for the day-by-day roll forward in next-availability search."""

DEFAULT_TIMEZONE: Final[str] = "America/New_York"
DEFAULT_SUMMARY_TIME: Final[str] = "22:00"

UNKNOWN_CHANNEL: Final[str] = "Unknown"

CLOCK_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\d{1,2}):(\d{2})$")
"""Pattern for HH:MM clock readings (24h, "24:00" allowed as end of day)."""

WINDOW_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})\s*$"
)
"""Pattern for HH:MM-HH:MM window declarations in config."""

SLACK_MESSAGE_CHAR_LIMIT: Final[int] = 3500
"""Digest chunk size, kept well below Slack's hard text limit."""

DEFAULT_EVENT_DEDUPE_TTL_SECONDS: Final[int] = 1800
