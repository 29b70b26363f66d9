"""Custom exception hierarchy for the coach mention queue.

Following error taxonomy: retryable, non-retryable, authorization, rate-limit.
"""


class CoachQueueError(Exception):
    """Base exception for all application errors."""

    pass


class RetryableError(CoachQueueError):
    """Errors that can be retried (network issues, temporary failures)."""

    pass


class NonRetryableError(CoachQueueError):
    """Errors that should not be retried (configuration, auth, logic errors)."""

    pass


class ConfigurationError(NonRetryableError):
    """Missing or unusable configuration (no windows, absent credentials)."""

    pass


class UnknownCoachError(NonRetryableError):
    """A coach key that is not part of the roster."""

    def __init__(self, coach_key: str) -> None:
        self.coach_key = coach_key
        super().__init__(f"Unknown coach: {coach_key}")


class UnauthorizedActionError(NonRetryableError):
    """Command issued by a principal not allowed to act on the coach."""

    def __init__(self, action: str, principal_id: str, coach_key: str) -> None:
        self.action = action
        self.principal_id = principal_id
        self.coach_key = coach_key
        super().__init__(
            f"{principal_id} is not allowed to {action} for coach {coach_key}"
        )


class RateLimitError(RetryableError):
    """API rate limit exceeded."""

    def __init__(self, retry_after: int | None = None) -> None:
        """Initialize with optional retry_after seconds."""
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after: {retry_after}s")


class SlackAPIError(RetryableError):
    """Slack API communication errors."""

    pass


class StoreUnavailableError(RetryableError):
    """Mention store errors (connection, auth, query failures)."""

    pass
