"""Explicit cancellation token shared by every in-flight chunk request."""
import asyncio
from typing import Awaitable, Optional, TypeVar

from ..errors import UploadCancelledError

T = TypeVar("T")


class CancellationToken:
    """
    One-shot cancellation signal.

    Usage:
        token = CancellationToken()
        ack = await token.guard(client.post(...))   # raises UploadCancelledError on cancel
        ...
        token.cancel()                              # from a signal handler, UI, etc.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Upload cancelled") -> None:
        """Trigger the signal. Later calls keep the first reason."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise UploadCancelledError(self._reason or "Upload cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the token fires first.

        On cancellation the pending work is cancelled and awaited, then
        UploadCancelledError is raised.
        """
        self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        raise UploadCancelledError(self._reason or "Upload cancelled")
