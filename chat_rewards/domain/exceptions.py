"""Custom exception hierarchy for chat-rewards.

Following error taxonomy: retryable, non-retryable, configuration.
Duplicate suppression is a normal outcome and has no exception here.
"""


class ChatRewardsError(Exception):
    """Base exception for all application errors."""

    pass


class RetryableError(ChatRewardsError):
    """Errors that can be retried (network issues, temporary failures)."""

    pass


class NonRetryableError(ChatRewardsError):
    """Errors that should not be retried (validation, logic errors)."""

    pass


class ConfigurationError(NonRetryableError):
    """Scoring rules or settings failed validation.

    Raised at load time; the scoring engine never runs with such a document.
    """

    pass


class ResolutionError(RetryableError):
    """A message locator could not be resolved to a snapshot."""

    def __init__(self, message: str, *, locator: str | None = None) -> None:
        """Initialize with the offending locator (URL or id triple)."""
        self.locator = locator
        super().__init__(message)


class IssuanceError(RetryableError):
    """The external reward call failed or timed out.

    The reservation for ``identity`` has already been released when this is
    raised, so the caller may retry later.
    """

    def __init__(self, message: str, *, identity: str) -> None:
        """Initialize with the message identity whose reward failed."""
        self.identity = identity
        super().__init__(message)


class RepositoryError(RetryableError):
    """Database/storage errors."""

    pass
