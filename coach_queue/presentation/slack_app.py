"""Slack Bolt wiring: message events and slash commands."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any, Final

from slack_bolt import App

from coach_queue.config.logging_config import bind_context, clear_context, get_logger
from coach_queue.domain.exceptions import (
    RateLimitError,
    SlackAPIError,
    StoreUnavailableError,
)
from coach_queue.domain.models import CommandRequest, CommandType, MentionEvent
from coach_queue.domain.protocols import ChatClientProtocol
from coach_queue.services.mention_classifier import extract_mentioned_ids

if TYPE_CHECKING:
    from coach_queue.use_cases.app_factory import CoachQueueContainer

logger = get_logger(__name__)

HANDLED_SUBTYPES: Final[frozenset[str | None]] = frozenset(
    {None, "thread_broadcast", "file_share", "bot_message"}
)
"""Message subtypes that carry a new message (edits and joins are skipped)."""

COMMANDS: Final[dict[str, CommandType]] = {
    "/queue-list": CommandType.LIST,
    "/queue-clear": CommandType.CLEAR,
    "/queue-clear-all": CommandType.CLEAR_ALL,
    "/queue-toggle": CommandType.TOGGLE,
}

COMMAND_USAGE: Final[dict[CommandType, str]] = {
    CommandType.LIST: "Usage: /queue-list <coach> [YYYY-MM-DD]",
    CommandType.CLEAR: "Usage: /queue-clear <coach> <student> [YYYY-MM-DD]",
    CommandType.CLEAR_ALL: "Usage: /queue-clear-all <coach> confirm",
    CommandType.TOGGLE: "Usage: /queue-toggle <coach> [on|off]",
}

_TOGGLE_VALUES: Final[dict[str, bool]] = {
    "on": True,
    "enable": True,
    "enabled": True,
    "off": False,
    "disable": False,
    "disabled": False,
}


def resolve_author_name(user: dict[str, Any], fallback: str) -> str:
    """Pick the username used as the queue author key."""
    profile = user.get("profile") or {}
    for candidate in (
        user.get("name"),
        profile.get("display_name"),
        user.get("real_name"),
        profile.get("real_name"),
    ):
        if candidate:
            return str(candidate)
    return fallback


def parse_message_event(
    event: dict[str, Any], chat: ChatClientProtocol
) -> MentionEvent | None:
    """Normalize a Slack message payload.

    Returns None for payloads that cannot reference a coach (edits,
    deletions, joins, messages without user mentions). Name lookups only
    happen once a mention is present.
    """
    subtype = event.get("subtype")
    if subtype not in HANDLED_SUBTYPES:
        return None

    text = event.get("text") or ""
    mentioned_ids = extract_mentioned_ids(text)
    if not mentioned_ids:
        return None

    is_bot = bool(event.get("bot_id")) or subtype == "bot_message"
    author_id = event.get("user") or event.get("bot_id") or ""
    if not author_id:
        return None

    author_name = author_id
    if not is_bot:
        try:
            author_name = resolve_author_name(chat.get_user_info(author_id), author_id)
        except (SlackAPIError, RateLimitError) as exc:
            logger.warning("slack_user_lookup_failed", user_id=author_id, error=str(exc))

    ts = event.get("ts")
    received_at = (
        datetime.fromtimestamp(float(ts), tz=UTC) if ts else datetime.now(UTC)
    )
    channel_id = event.get("channel") or ""

    return MentionEvent(
        author_id=author_id,
        author_display_name=author_name,
        is_from_bot=is_bot,
        text=text,
        mentioned_ids=mentioned_ids,
        channel_id=channel_id,
        channel_label=chat.get_channel_label(channel_id),
        received_at=received_at,
        message_ts=ts,
    )


def _parse_day(value: str, command_type: CommandType) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(
            f"Invalid date `{value}`. {COMMAND_USAGE[command_type]}"
        ) from exc


def parse_command(command_name: str, text: str, user_id: str) -> CommandRequest:
    """Turn slash command text into a CommandRequest.

    Raises:
        ValueError: With a usage hint when the command cannot be parsed
    """
    command_type = COMMANDS.get(command_name)
    if command_type is None:
        raise ValueError(f"Unsupported command: {command_name}")

    args = text.split()
    usage = COMMAND_USAGE[command_type]
    if not args:
        raise ValueError(usage)

    coach, rest = args[0].lower(), args[1:]
    request: dict[str, Any] = {
        "command": command_type,
        "coach": coach,
        "acting_principal_id": user_id,
    }

    if command_type is CommandType.LIST:
        if len(rest) > 1:
            raise ValueError(usage)
        if rest:
            request["day"] = _parse_day(rest[0], command_type)

    elif command_type is CommandType.CLEAR:
        if not rest or len(rest) > 2:
            raise ValueError(usage)
        request["student"] = rest[0]
        if len(rest) == 2:
            request["day"] = _parse_day(rest[1], command_type)

    elif command_type is CommandType.CLEAR_ALL:
        if len(rest) > 1 or (rest and rest[0].lower() != "confirm"):
            raise ValueError(usage)
        request["confirm"] = bool(rest)

    else:
        if len(rest) > 1:
            raise ValueError(usage)
        if rest:
            value = rest[0].lower()
            if value not in _TOGGLE_VALUES:
                raise ValueError(usage)
            request["enabled"] = _TOGGLE_VALUES[value]

    return CommandRequest(**request)


def register_handlers(app: App, container: CoachQueueContainer) -> None:
    """Attach the message listener and slash commands to a Bolt app."""

    @app.event("message")
    def _on_message(event: dict[str, Any]) -> None:
        mention = parse_message_event(event, container.chat)
        if mention is None:
            return

        bind_context(channel_id=mention.channel_id, message_ts=mention.message_ts)
        try:
            container.pipeline.handle(mention)
        except StoreUnavailableError:
            logger.error("mention_dropped_store_unavailable")
        finally:
            clear_context()

    def _on_command(ack: Any, command: dict[str, Any], respond: Any) -> None:
        ack()
        try:
            request = parse_command(
                command.get("command", ""),
                command.get("text", ""),
                command.get("user_id", ""),
            )
        except ValueError as exc:
            respond(text=str(exc), response_type="ephemeral")
            return

        result = container.admin.execute(request)
        respond(
            text=result.text,
            response_type="ephemeral" if result.ephemeral else "in_channel",
        )

    for command_name in COMMANDS:
        app.command(command_name)(_on_command)

    logger.info("slack_handlers_registered", commands=sorted(COMMANDS))
