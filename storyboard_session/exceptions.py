"""Storyboard Session exceptions.

Absence of a session is not an error: ``ApiKeySessionStore.get`` returns
``None``. The classes below cover the conditions that do terminate an
operation.
"""
from typing import Optional


class StoryboardSessionError(Exception):
    """Base class for all storyboard_session errors."""


class ConfigurationError(StoryboardSessionError, RuntimeError):
    """Required setup is missing or malformed (e.g. no ENCRYPTION_KEY)."""


class DecryptionError(StoryboardSessionError, ValueError):
    """Ciphertext could not be authenticated with the given key."""


class TransportError(StoryboardSessionError):
    """The probe's underlying HTTP call failed.

    Args:
        message: Human readable description.
        status: HTTP status code, when the server answered at all.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SessionExpiredError(TransportError):
    """The server no longer holds the API key session for this job.

    Callers should ask the user to re-enter credentials rather than retry.
    """


class PollingTimeoutError(StoryboardSessionError, TimeoutError):
    """The polling attempt budget was exhausted before the job finished."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Polling timeout: exceeded {attempts} attempts"
        )
        self.attempts = attempts


class OperationCancelled(StoryboardSessionError):
    """Raised inside a probe that observed its cancellation token."""
