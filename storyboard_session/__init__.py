"""Storyboard Session.

In-memory API key sessions for the video job queue and backoff polling of
job status.
"""
from .version import __version__
from .exceptions import (
    ConfigurationError,
    DecryptionError,
    OperationCancelled,
    PollingTimeoutError,
    SessionExpiredError,
    StoryboardSessionError,
    TransportError,
)
from .vault import ApiKeySession, ApiKeySessionStore, Provider, get_session_store
from .polling import BackoffPoller, CancellationToken, PollResult

__all__ = [
    "__version__",
    "ApiKeySession",
    "ApiKeySessionStore",
    "BackoffPoller",
    "CancellationToken",
    "ConfigurationError",
    "DecryptionError",
    "OperationCancelled",
    "PollResult",
    "PollingTimeoutError",
    "Provider",
    "SessionExpiredError",
    "StoryboardSessionError",
    "TransportError",
    "get_session_store",
]
