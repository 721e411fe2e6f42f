"""Backoff polling of long-running video generation jobs."""

from .cancellation import CancellationToken
from .config import PollerConfig
from .poller import BackoffPoller, PollResult, PollState, PollStatus
from .probes import status_probe

__all__ = [
    "BackoffPoller",
    "CancellationToken",
    "PollerConfig",
    "PollResult",
    "PollState",
    "PollStatus",
    "status_probe",
]
