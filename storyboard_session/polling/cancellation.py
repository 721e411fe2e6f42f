"""Cooperative cancellation signal handed to each polling probe."""
import asyncio

from ..exceptions import OperationCancelled


class CancellationToken:
    """One-shot cancellation flag.

    Probes should call :meth:`raise_if_cancelled` around their suspension
    points, or race their I/O against :meth:`wait`.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self):
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if :meth:`cancel` has been called."""
        if self._event.is_set():
            raise OperationCancelled(self._reason)

    async def wait(self) -> None:
        await self._event.wait()

    def __repr__(self) -> str:
        return f"<CancellationToken cancelled={self.cancelled}>"
