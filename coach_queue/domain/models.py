"""Domain models for the coach mention queue.

All models use Pydantic v2 for validation and serialization.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coach_queue.domain.availability_constants import (
    CLOCK_PATTERN,
    MINUTES_PER_DAY,
    UNKNOWN_CHANNEL,
    WINDOW_PATTERN,
)


def parse_clock(value: str) -> int:
    """Convert an HH:MM clock reading into minute-of-day.

    "24:00" is accepted and maps to the end-of-day sentinel.

    Example:
        >>> parse_clock("09:30")
        570
        >>> parse_clock("24:00")
        1440
    """
    match = CLOCK_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid clock reading: {value!r} (expected HH:MM)")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes >= 60 or hours > 24 or (hours == 24 and minutes != 0):
        raise ValueError(f"Invalid clock reading: {value!r}")
    return hours * 60 + minutes


def format_clock(minute_of_day: int) -> str:
    """Render minute-of-day as HH:MM."""
    hours, minutes = divmod(minute_of_day, 60)
    return f"{hours:02d}:{minutes:02d}"


class AvailabilityWindow(BaseModel):
    """Daily [start, end) interval in minutes during which a coach is reachable.

    A window whose end is not after its start (including end 0) runs to the
    end of the same day. It never wraps into the next calendar day; overnight
    coverage is declared as a second window starting at 00:00.
    """

    model_config = ConfigDict(frozen=True)

    start_minute: int = Field(..., ge=0, lt=MINUTES_PER_DAY)
    end_minute: int = Field(..., ge=0, le=MINUTES_PER_DAY)

    @property
    def effective_end(self) -> int:
        if self.end_minute > self.start_minute:
            return self.end_minute
        return MINUTES_PER_DAY

    def contains(self, minute_of_day: int) -> bool:
        return self.start_minute <= minute_of_day < self.effective_end

    @classmethod
    def parse(cls, value: str) -> "AvailabilityWindow":
        """Parse the "HH:MM-HH:MM" config form.

        Example:
            >>> AvailabilityWindow.parse("20:00-24:00").effective_end
            1440
        """
        match = WINDOW_PATTERN.match(value)
        if not match:
            raise ValueError(
                f"Invalid availability window: {value!r} (expected HH:MM-HH:MM)"
            )
        start = parse_clock(match.group(1))
        if start >= MINUTES_PER_DAY:
            raise ValueError(f"Window cannot start at 24:00: {value!r}")
        return cls(start_minute=start, end_minute=parse_clock(match.group(2)))

    def __str__(self) -> str:
        return f"{format_clock(self.start_minute)}-{format_clock(self.effective_end)}"


class Coach(BaseModel):
    """Monitored person whose off-hours mentions are queued."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1, description="Stable roster identifier")
    display_name: str = Field(..., min_length=1, description="Name used in replies")
    slack_user_id: str = Field(
        ..., min_length=1, description="Slack user ID detected in mentions"
    )
    windows: tuple[AvailabilityWindow, ...] = Field(
        default=(), description="Daily availability windows (may be empty)"
    )

    @field_validator("windows", mode="before")
    @classmethod
    def _parse_windows(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(
                AvailabilityWindow.parse(item) if isinstance(item, str) else item
                for item in value
            )
        return value


class MentionEvent(BaseModel):
    """Inbound chat message, normalized from the platform payload."""

    author_id: str = Field(..., description="Sender user ID")
    author_display_name: str = Field(..., description="Sender username")
    is_from_bot: bool = Field(default=False)
    text: str = Field(default="")
    mentioned_ids: frozenset[str] = Field(default_factory=frozenset)
    channel_id: str = Field(default="")
    channel_label: str = Field(default=UNKNOWN_CHANNEL)
    received_at: datetime = Field(..., description="Timestamp (timezone aware)")
    message_ts: str | None = Field(
        default=None, description="Platform message timestamp, used as thread anchor"
    )

    @property
    def delivery_key(self) -> str | None:
        if not self.message_ts:
            return None
        return f"{self.channel_id}:{self.message_ts}"


class MentionRecord(BaseModel):
    """Per (coach, author_id, day) aggregation of off-hours messages."""

    record_id: str = Field(..., description="Store identifier")
    coach: str = Field(..., description="Coach key")
    author: str = Field(..., description="Author display label")
    author_id: str = Field(..., description="Author user ID (record key)")
    day: date = Field(..., description="Calendar day in the reference time zone")
    messages: list[str] = Field(default_factory=list)
    first_seen_at: datetime
    last_seen_at: datetime | None = None
    source_channel: str = Field(default=UNKNOWN_CHANNEL)

    def has_message(self, text: str) -> bool:
        return text in self.messages


class IngestionOutcome(str, Enum):
    """What the ingestion pipeline did with one event."""

    IGNORED_BOT = "ignored_bot"
    DUPLICATE_EVENT = "duplicate_event"
    NO_COACH = "no_coach"
    IN_OFFICE = "in_office"
    QUEUED = "queued"
    APPENDED = "appended"
    DUPLICATE_TEXT = "duplicate_text"


class IngestionResult(BaseModel):
    """Result of handling one event for one coach."""

    outcome: IngestionOutcome
    coach_key: str | None = None
    record: MentionRecord | None = None
    replied: bool = False
    reply_text: str | None = None


class CommandType(str, Enum):
    """Administrative slash commands."""

    LIST = "list"
    CLEAR = "clear"
    CLEAR_ALL = "clear_all"
    TOGGLE = "toggle"


class CommandRequest(BaseModel):
    """Inbound administrative command."""

    command: CommandType
    coach: str = Field(..., description="Target coach key")
    acting_principal_id: str = Field(..., description="User ID issuing the command")
    student: str | None = Field(default=None, description="Author name or user ID")
    day: date | None = Field(default=None)
    confirm: bool = Field(default=False)
    enabled: bool | None = Field(default=None)


class CommandResult(BaseModel):
    """Acknowledgement returned to the command issuer."""

    text: str
    ephemeral: bool = True
    succeeded: bool = True
    affected: int = 0


class SummaryEntry(BaseModel):
    """One author's block in a daily digest."""

    author: str
    first_seen_at: datetime
    source_channel: str = UNKNOWN_CHANNEL
    messages: list[str] = Field(default_factory=list)


class DigestRunResult(BaseModel):
    """Outcome of one daily summary run across the roster."""

    trigger: str
    day: date
    posted: list[str] = Field(default_factory=list)
    empty: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed
