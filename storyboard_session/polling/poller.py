"""
BackoffPoller — bounded, cancellable polling of long-running remote jobs.

Each operation is keyed by a caller-chosen id. The first probe runs right away;
every probe that asks to continue pushes the next one further out, multiplying
the delay by ``backoff_multiplier`` up to ``max_interval``. The attempt budget
guarantees termination even if the remote job never finishes.

Terminal conditions are delivered through callbacks, never raised:
- completed  -> ``on_complete(data)``
- failed     -> ``on_error(exc)``
- exhausted  -> ``on_error(PollingTimeoutError)``
- cancelled  -> nothing
"""
import enum
import math
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, NamedTuple, Optional

from pydantic import BaseModel

from ..exceptions import OperationCancelled, PollingTimeoutError
from .cancellation import CancellationToken
from .config import PollerConfig

logger = logging.getLogger("storyboard.polling")


class PollResult(BaseModel):
    """Outcome of one probe invocation."""

    should_continue: bool
    data: Any = None

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @classmethod
    def done(cls, data: Any = None) -> "PollResult":
        return cls(should_continue=False, data=data)

    @classmethod
    def pending(cls) -> "PollResult":
        return cls(should_continue=True)


class PollStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


class PollState(NamedTuple):
    attempts: int
    current_interval: int
    active: bool


Probe = Callable[[CancellationToken], Awaitable[PollResult]]
CompleteCallback = Callable[[Any], Any]
ErrorCallback = Callable[[BaseException], Any]


@dataclass(eq=False)
class _PollOperation:
    poll_id: str
    probe: Probe
    on_complete: Optional[CompleteCallback]
    on_error: Optional[ErrorCallback]
    current_interval: int
    attempts: int = 0
    status: PollStatus = PollStatus.ACTIVE
    token: CancellationToken = field(default_factory=CancellationToken)
    handle: Optional[asyncio.TimerHandle] = None
    task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self.status is PollStatus.ACTIVE


class BackoffPoller:
    """Registry of polling operations sharing one backoff configuration.

    Must be used from a running asyncio event loop. All state is private to
    the instance; ``stop_all()`` (or leaving ``async with``) tears it down.
    """

    def __init__(self, config: Optional[PollerConfig] = None, **overrides: Any):
        if overrides:
            base = (config or PollerConfig()).model_dump()
            base.update(overrides)
            config = PollerConfig(**base)
        self._config = config or PollerConfig()
        self._operations: dict[str, _PollOperation] = {}

    @property
    def config(self) -> PollerConfig:
        return self._config

    def next_interval(self, current: int) -> int:
        """Backoff step: ``min(floor(current * multiplier), max_interval)``."""
        nxt = math.floor(current * self._config.backoff_multiplier)
        return min(nxt, self._config.max_interval)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(
        self,
        poll_id: str,
        probe: Probe,
        on_complete: Optional[CompleteCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        """Begin polling ``probe`` under ``poll_id``.

        An operation already running under the same id is stopped first.
        The first probe is scheduled without delay.
        """
        self.stop(poll_id)
        loop = asyncio.get_running_loop()
        op = _PollOperation(
            poll_id=poll_id,
            probe=probe,
            on_complete=on_complete,
            on_error=on_error,
            current_interval=self._config.initial_interval,
        )
        self._operations[poll_id] = op
        op.task = loop.create_task(self._poll(op), name=f"poll:{poll_id}")
        logger.debug("Polling started: id=%s", poll_id)

    def stop(self, poll_id: str) -> None:
        """Cancel an operation; unknown ids are ignored."""
        op = self._operations.pop(poll_id, None)
        if op is None:
            return
        self._cancel(op)
        logger.debug(
            "Polling stopped: id=%s attempts=%d", poll_id, op.attempts,
        )

    def stop_all(self) -> None:
        for poll_id in list(self._operations):
            self.stop(poll_id)

    def is_active(self, poll_id: str) -> bool:
        op = self._operations.get(poll_id)
        return op is not None and op.active

    def state(self, poll_id: str) -> Optional[PollState]:
        op = self._operations.get(poll_id)
        if op is None:
            return None
        return PollState(op.attempts, op.current_interval, op.active)

    def active_ids(self) -> list[str]:
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    async def __aenter__(self) -> "BackoffPoller":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop_all()

    # ------------------------------------------------------------------
    # Operation lifecycle
    # ------------------------------------------------------------------

    def _cancel(self, op: _PollOperation) -> None:
        if op.active:
            op.status = PollStatus.CANCELLED
        op.token.cancel()
        if op.handle is not None:
            op.handle.cancel()
            op.handle = None
        if op.task is not None and not op.task.done():
            op.task.cancel()

    def _finish(self, op: _PollOperation, status: PollStatus) -> None:
        """Move ``op`` to a terminal status and drop it from the registry."""
        op.status = status
        op.token.cancel(status.value)
        if self._operations.get(op.poll_id) is op:
            del self._operations[op.poll_id]

    def _schedule(self, op: _PollOperation) -> None:
        loop = asyncio.get_running_loop()
        op.handle = loop.call_later(
            op.current_interval / 1000, self._fire, op,
        )

    def _fire(self, op: _PollOperation) -> None:
        op.handle = None
        if not op.active:
            return
        op.task = asyncio.get_running_loop().create_task(
            self._poll(op), name=f"poll:{op.poll_id}",
        )

    async def _poll(self, op: _PollOperation) -> None:
        if not op.active:
            return

        if op.attempts >= self._config.max_attempts:
            logger.warning(
                "Polling exhausted: id=%s attempts=%d", op.poll_id, op.attempts,
            )
            self._finish(op, PollStatus.EXHAUSTED)
            await self._notify(op, op.on_error, PollingTimeoutError(op.attempts))
            return

        try:
            result = await op.probe(op.token)
        except OperationCancelled:
            logger.debug("Probe observed cancellation: id=%s", op.poll_id)
            if op.active:
                self._finish(op, PollStatus.CANCELLED)
            return
        except asyncio.CancelledError:
            if op.active:
                self._finish(op, PollStatus.CANCELLED)
            raise
        except Exception as err:
            if not op.active:
                return
            logger.error("Polling failed: id=%s error=%s", op.poll_id, err)
            self._finish(op, PollStatus.FAILED)
            await self._notify(op, op.on_error, err)
            return

        # stopped while the probe was past its cancellation checks
        if not op.active:
            return

        if not isinstance(result, PollResult):
            err = TypeError(
                f"probe must return PollResult, got {type(result).__name__}"
            )
            logger.error("Polling failed: id=%s error=%s", op.poll_id, err)
            self._finish(op, PollStatus.FAILED)
            await self._notify(op, op.on_error, err)
            return

        if not result.should_continue:
            logger.debug(
                "Polling completed: id=%s attempts=%d", op.poll_id, op.attempts + 1,
            )
            self._finish(op, PollStatus.COMPLETED)
            await self._notify(op, op.on_complete, result.data)
            return

        op.attempts += 1
        op.current_interval = self.next_interval(op.current_interval)
        self._schedule(op)

    async def _notify(
        self,
        op: _PollOperation,
        callback: Optional[Callable[[Any], Any]],
        value: Any,
    ) -> None:
        if callback is None:
            return
        try:
            ret = callback(value)
            if inspect.isawaitable(ret):
                await ret
        except Exception:
            logger.exception(
                "Polling callback raised: id=%s status=%s",
                op.poll_id, op.status.value,
            )
