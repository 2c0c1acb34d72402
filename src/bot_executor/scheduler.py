"""In-process periodic trigger for executor passes."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from bot_executor.runner import BotRunner

logger = structlog.get_logger()


class BotScheduler:
    """Background task that runs one pass every `interval_seconds`."""

    def __init__(self, runner: BotRunner, interval_seconds: int = 60) -> None:
        self.runner = runner
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None
        self._running = False

    def start(self) -> None:
        """Start the scheduler background task."""
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("bot_scheduler_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the scheduler and cancel the background task."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("bot_scheduler_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.runner.run_pass()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("bot_scheduler_pass_error")

            await asyncio.sleep(self.interval_seconds)
