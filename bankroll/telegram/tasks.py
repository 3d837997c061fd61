from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Run update handlers after the webhook has been acknowledged.

    Every task is bounded by ``timeout`` seconds. Failures are logged here and
    never propagate back to the webhook.
    """

    def __init__(self, timeout: float | None = 180.0) -> None:
        self.timeout = timeout
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[None]:
        task = asyncio.create_task(self._run(coro, name or "update"), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            if self.timeout is None:
                await coro
            else:
                await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Background task timed out", extra={"task": name, "timeout": self.timeout})
        except asyncio.CancelledError:
            logger.info("Background task cancelled", extra={"task": name})
            raise
        except Exception:
            logger.exception("Background task failed", extra={"task": name})

    async def join(self) -> None:
        """Wait for every task spawned so far, including ones they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
