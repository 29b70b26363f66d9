"""Slack API client adapter."""

import time
from collections.abc import Callable
from typing import Any, Final, cast

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.availability_constants import UNKNOWN_CHANNEL
from coach_queue.domain.exceptions import RateLimitError, SlackAPIError
from coach_queue.domain.models import MentionEvent

logger = get_logger(__name__)

DEFAULT_SLACK_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_AFTER_SECONDS: Final[int] = 10


class SlackClient:
    """Slack Web API client with retries and lookup caching."""

    def __init__(
        self,
        bot_token: str | None = None,
        *,
        client: WebClient | None = None,
        max_retries: int = DEFAULT_SLACK_MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize Slack client.

        Args:
            bot_token: Slack bot user OAuth token
            client: Preconfigured WebClient (e.g. the one owned by slack_bolt)
            max_retries: Maximum attempts for transient errors
            sleep: Sleep function used between retries
        """
        if client is None and not bot_token:
            raise ValueError("Either bot_token or client must be provided")
        self.client = client or WebClient(token=bot_token)
        self._max_retries = max(max_retries, 1)
        self._sleep = sleep
        self._user_cache: dict[str, dict[str, Any]] = {}
        self._channel_cache: dict[str, str] = {}

    def send_reply(self, event: MentionEvent, text: str) -> str:
        """Reply in the thread of the original message.

        Raises:
            SlackAPIError: On API communication errors
            RateLimitError: When still rate limited after retries
        """
        params: dict[str, Any] = {"channel": event.channel_id, "text": text}
        if event.message_ts:
            params["thread_ts"] = event.message_ts
        response = self._call_with_retries("chat_postMessage", **params)
        return cast(str, response.get("ts", ""))

    def send_to_channel(self, channel_id: str, text: str) -> str:
        """Post a plain-text message to a channel.

        Raises:
            SlackAPIError: On API communication errors
            RateLimitError: When still rate limited after retries
        """
        response = self._call_with_retries(
            "chat_postMessage", channel=channel_id, text=text
        )
        return cast(str, response.get("ts", ""))

    def get_user_info(self, user_id: str) -> dict[str, Any]:
        """Get user information by ID (with in-memory caching).

        Raises:
            SlackAPIError: On API communication errors
        """
        if not user_id:
            return {"real_name": "Unknown", "name": "unknown"}

        if user_id in self._user_cache:
            return self._user_cache[user_id]

        response = self._call_with_retries("users_info", user=user_id)
        user_data = cast(dict[str, Any], response["user"])
        self._user_cache[user_id] = user_data
        return user_data

    def get_channel_label(self, channel_id: str) -> str:
        """Get "#name" for a channel, "Unknown" if lookup fails."""
        if not channel_id:
            return UNKNOWN_CHANNEL
        if channel_id in self._channel_cache:
            return self._channel_cache[channel_id]

        try:
            response = self.client.conversations_info(channel=channel_id)
        except SlackApiError as error:
            logger.warning(
                "slack_channel_lookup_failed", channel_id=channel_id, error=str(error)
            )
            return UNKNOWN_CHANNEL

        channel = response.get("channel") or {}
        if channel.get("is_im"):
            label = "Direct message"
        elif channel.get("name"):
            label = f"#{channel['name']}"
        else:
            return UNKNOWN_CHANNEL

        self._channel_cache[channel_id] = label
        return label

    def _call_with_retries(self, method: str, **params: Any) -> dict[str, Any]:
        """Call a WebClient method, retrying rate limits and transient errors."""

        api_call = getattr(self.client, method)
        attempt = 0
        while True:
            try:
                response = api_call(**params)
            except SlackApiError as error:
                attempt += 1
                if error.response.get("error") == "ratelimited":
                    retry_after = int(
                        error.response.headers.get(
                            "Retry-After", DEFAULT_RETRY_AFTER_SECONDS
                        )
                    )
                    if attempt >= self._max_retries:
                        raise RateLimitError(retry_after=retry_after) from error
                    logger.warning(
                        "slack_rate_limited",
                        method=method,
                        retry_after_seconds=retry_after,
                        attempt=attempt,
                        max_retries=self._max_retries,
                    )
                    self._sleep(retry_after)
                    continue

                if attempt >= self._max_retries:
                    raise SlackAPIError(
                        f"{method} failed after {attempt} attempts: {error}"
                    ) from error

                backoff_seconds = 2**attempt
                logger.warning(
                    "slack_api_retry",
                    method=method,
                    error=str(error),
                    attempt=attempt,
                    max_retries=self._max_retries,
                    backoff_seconds=backoff_seconds,
                )
                self._sleep(backoff_seconds)
                continue

            if not response.get("ok"):
                raise SlackAPIError(f"{method} error: {response.get('error')}")
            return cast(dict[str, Any], response)
