# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""SessionReaper — periodic removal of expired sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class SessionReaper:
    """Runs a reap callable on a fixed interval until shut down.

    Passes start at a fixed rate: the first one interval after
    :meth:`start`, each later one an interval after the previous start.
    A pass that overruns the interval is followed by the next one
    immediately. A failing pass is logged and the next pass still fires
    on schedule. :meth:`shutdown` never interrupts a pass in progress: it
    waits for the pass to finish and cancels the loop between passes.

    Args:
        reap: Coroutine function performing one reap pass.
        interval: Milliseconds between passes; ``<= 0`` disables the reaper.
    """

    def __init__(self, reap: Callable[[], Awaitable[Any]], interval: int) -> None:
        self._reap = reap
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._in_pass = False
        self._closed = False

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the loop on the running event loop. Return ``True`` if started.

        Does nothing when disabled, already running or shut down.
        """
        if not self.enabled or self._closed or self.running:
            return False
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._loop_done_callback)
        logger.debug("session_reaper_started", interval_ms=self._interval)
        return True

    async def shutdown(self) -> None:
        """Stop the loop. Safe to call repeatedly and before :meth:`start`.

        Every caller, including overlapping ones, returns only after the
        loop task has finished.
        """
        self._closed = True
        task = self._task
        if task is None:
            return
        if not self._in_pass:
            task.cancel()
        # asyncio.wait never cancels the task if this caller is cancelled.
        await asyncio.wait({task})
        if self._task is task:
            self._task = None
            logger.debug("session_reaper_stopped")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        delay = self._interval / 1000
        next_run = loop.time() + delay
        while not self._closed:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            if self._closed:
                break
            self._in_pass = True
            try:
                await self._reap()
            except Exception as exc:  # noqa: BLE001
                logger.error("session_reap_failed", error=str(exc), error_type=type(exc).__name__)
            finally:
                self._in_pass = False
            # Passes overrunning the interval are not queued up.
            next_run = max(next_run + delay, loop.time())

    @staticmethod
    def _loop_done_callback(task: asyncio.Task[None]) -> None:
        if not task.cancelled():
            exc = task.exception()
            if exc is not None:
                logger.error("session_reaper_crashed", exc_info=exc)
