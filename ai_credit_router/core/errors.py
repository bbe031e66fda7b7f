"""
Error taxonomy for routing and metering.

All errors bubble to the immediate caller with the task and the attempted
route attached, so the caller can log and decide on retry/backoff.
"""

from typing import Optional


class RouterError(Exception):
    """Base class for all routing and metering errors."""

    retryable = False

    def __init__(self, message: str, task: Optional[str] = None, route=None):
        super().__init__(message)
        self.task = task
        self.route = route


class ValidationError(RouterError, ValueError):
    """Request rejected before any provider call was attempted."""


class ConfigurationError(RouterError):
    """A required credential or setting is missing or invalid."""


class ProviderError(RouterError):
    """The AI provider failed or returned something unusable.

    Safe to retry from the caller; the router itself never retries.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        task: Optional[str] = None,
        route=None,
    ):
        super().__init__(message, task=task, route=route)
        self.provider = provider
        self.status_code = status_code


class InsufficientCreditsError(RouterError):
    """User balance is below the pre-flight estimate for the task."""

    def __init__(self, message: str, required: int, remaining: int, task: Optional[str] = None):
        super().__init__(message, task=task)
        self.required = required
        self.remaining = remaining
