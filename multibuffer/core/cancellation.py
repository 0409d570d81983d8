"""Cooperative cancellation shared by search, replace and apply."""

import asyncio

from multibuffer.core.exceptions import OperationCancelledError


class CancellationToken:
    """Flag that long-running operations check at coarse boundaries.

    ``cancel()`` is safe to call from signal handlers running on the loop.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, operation: str = "Operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} cancelled")
