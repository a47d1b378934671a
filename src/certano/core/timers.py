"""Cancellable timer handles and deferred callbacks.

A CancellableTimer owns one asyncio task. Whoever starts it keeps the
handle and cancels it explicitly; the callback never runs after cancel().
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

TimerCallback = Callable[[], "Awaitable[Any] | Any"]


class CancellableTimer:
    """One-shot delayed callback.

    Usage:
        timer = CancellableTimer(10.0, advance, name="auto_advance").start()
        ...
        timer.cancel()
    """

    def __init__(self, delay: float, callback: TimerCallback, name: str = "timer"):
        self.delay = max(0.0, float(delay))
        self.name = name
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._deadline: float | None = None
        self._fired = False
        self._cancelled = False

    def start(self) -> CancellableTimer:
        """Schedule the callback on the running event loop."""
        if self._task is not None:
            raise RuntimeError(f"Timer '{self.name}' already started")
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.delay
        self._task = loop.create_task(self._run(), name=self.name)
        return self

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        if self._cancelled:
            return
        self._fired = True
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("timer_callback_failed", timer=self.name, error=str(e))

    def cancel(self) -> bool:
        """Cancel the timer.

        Returns:
            True if the callback had not fired yet
        """
        if self._fired or self._cancelled:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug("timer_cancelled", timer=self.name)
        return True

    @property
    def active(self) -> bool:
        return self._task is not None and not self._fired and not self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def remaining(self) -> float:
        """Seconds until the callback fires (0 once fired or cancelled)."""
        if not self.active or self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    async def wait(self) -> None:
        """Wait until the timer has fired or been cancelled."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._cancelled:
                raise


def defer(callback: Callable[..., Any], *args: Any) -> None:
    """Run ``callback(*args)`` after the current loop iteration.

    Without a running loop the callback runs immediately. Errors are
    logged and never propagate to the caller.
    """

    def _guarded() -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.error(
                "deferred_callback_failed",
                callback=getattr(callback, "__name__", repr(callback)),
                error=str(e),
            )

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        _guarded()
        return
    loop.call_soon(_guarded)
