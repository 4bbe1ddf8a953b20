"""Cooperative cancellation tokens."""

from __future__ import annotations

import asyncio

from vwiz.errors import RenderCancelledError


class CancelToken:
    """One-shot cancellation signal shared between a job and the engine.

    Cancelling only delivers the request. The engine is trusted to notice
    it (by awaiting ``wait()`` or polling ``cancelled``) and to settle its
    in-flight call.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Calling it again has no effect."""
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RenderCancelledError("Render was cancelled")
