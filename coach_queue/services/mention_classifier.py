"""Resolve which monitored coach an incoming message refers to."""

import re
from collections.abc import Sequence
from typing import Final

from coach_queue.domain.models import Coach, MentionEvent

USER_MENTION_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"<@([UW][A-Z0-9]+)(?:\|[^>]*)?>"
)
"""Slack user mention token, e.g. <@U123ABC> or <@U123ABC|alice>."""


def extract_mentioned_ids(text: str | None) -> frozenset[str]:
    """Collect user IDs referenced in Slack message text.

    Example:
        >>> sorted(extract_mentioned_ids("hey <@U1> and <@U2|bob>"))
        ['U1', 'U2']
    """
    if not text:
        return frozenset()
    return frozenset(USER_MENTION_PATTERN.findall(text))


def mentioned_coaches(event: MentionEvent, roster: Sequence[Coach]) -> list[Coach]:
    """All coaches referenced by the event, in roster order."""
    return [coach for coach in roster if coach.slack_user_id in event.mentioned_ids]


def classify(event: MentionEvent, roster: Sequence[Coach]) -> Coach | None:
    """Return the first roster coach referenced by the event.

    When several coaches are mentioned, roster order decides.
    """
    for coach in roster:
        if coach.slack_user_id in event.mentioned_ids:
            return coach
    return None
