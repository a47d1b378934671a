"""Connectivity state and transition listeners.

The monitor holds one boolean. Listeners run only when the value
changes: on_online on offline -> online, on_offline on the reverse.
An optional watch task polls a probe (normally the backend health
check) and feeds the result into set_online.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

Listener = Callable[[], "Awaitable[Any] | Any"]
Probe = Callable[[], Awaitable[bool]]


class ConnectivityMonitor:
    """Tracks whether the backend is believed reachable."""

    def __init__(self, is_online: bool = True):
        self._online = is_online
        self._on_online: list[Listener] = []
        self._on_offline: list[Listener] = []
        self._watch_task: asyncio.Task[None] | None = None

    @property
    def is_online(self) -> bool:
        return self._online

    def on_online(self, listener: Listener) -> None:
        self._on_online.append(listener)

    def on_offline(self, listener: Listener) -> None:
        self._on_offline.append(listener)

    async def set_online(self, online: bool) -> None:
        """Update the state and run listeners if it changed."""
        if online == self._online:
            return
        self._online = online
        logger.info("connectivity_changed", online=online)

        listeners = self._on_online if online else self._on_offline
        for listener in list(listeners):
            try:
                result = listener()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "connectivity_listener_failed",
                    listener=getattr(listener, "__name__", repr(listener)),
                    error=str(e),
                )

    async def check(self, probe: Probe) -> bool:
        """Run the probe once and apply its result."""
        try:
            online = await probe()
        except Exception as e:
            logger.debug("connectivity_probe_failed", error=str(e))
            online = False
        await self.set_online(online)
        return online

    def watch(self, probe: Probe, interval: float = 30.0) -> asyncio.Task[None]:
        """Poll ``probe`` every ``interval`` seconds until stop() is called."""
        if self._watch_task is not None and not self._watch_task.done():
            return self._watch_task

        async def _loop() -> None:
            while True:
                await self.check(probe)
                await asyncio.sleep(interval)

        self._watch_task = asyncio.get_running_loop().create_task(
            _loop(), name="connectivity_watch"
        )
        logger.debug("connectivity_watch_started", interval=interval)
        return self._watch_task

    async def stop(self) -> None:
        task = self._watch_task
        self._watch_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
