"""One executor pass over every due bot."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

import structlog

from bot_executor.models.bot import TradeJob
from bot_executor.models.trade import BotRunResult, PassSummary
from bot_executor.trade.errors import ErrorCode

if TYPE_CHECKING:
    from bot_executor.config import Settings
    from bot_executor.db.repository import BotRepository
    from bot_executor.trade.executor import BotExecutor

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BotRunner:
    """Selects due bots and runs each one inside its own exception boundary.

    Only a failure to read the due list aborts the pass. A trigger arriving
    while a pass is still running returns immediately instead of overlapping.
    """

    def __init__(
        self,
        settings: Settings,
        bot_repo: BotRepository,
        executor: BotExecutor,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.bot_repo = bot_repo
        self.executor = executor
        self.clock = clock
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run_pass(self) -> PassSummary:
        if self._lock.locked():
            logger.info("pass_skipped_previous_still_running")
            return PassSummary(message="Previous pass still running", checked_at=self.clock())

        async with self._lock:
            return await self._run_pass()

    async def _run_pass(self) -> PassSummary:
        now = self.clock()
        due_before = now + timedelta(seconds=self.settings.DUE_BUFFER_SECONDS)
        logger.info("pass_started", checked_at=now.isoformat(), due_before=due_before.isoformat())

        rows = await self.bot_repo.get_due_bots(due_before)
        logger.info("due_bots_found", count=len(rows))

        if not rows:
            return PassSummary(message="No bots ready to trade", checked_at=now)

        results = [await self._run_bot(row) for row in rows]
        summary = PassSummary.from_results(results, checked_at=now)
        logger.info("pass_completed", executed=summary.executed, total=summary.total)
        return summary

    async def _run_bot(self, row: dict) -> BotRunResult:
        bot_row = row.get("bot") or {}
        bot_id = str(bot_row.get("id", ""))
        bot_name = bot_row.get("name") or ""

        try:
            job = TradeJob.from_row(row)
        except ValueError as e:
            return await self._reject_config(bot_id, bot_name, e)

        try:
            return await self.executor.execute(job)
        except Exception as e:
            logger.exception("bot_execution_error", bot_id=bot_id, bot_name=bot_name)
            return BotRunResult(bot_id=bot_id, bot_name=bot_name, status="error", error=str(e))

    async def _reject_config(self, bot_id: str, bot_name: str, error: ValueError) -> BotRunResult:
        """Pause a bot whose joined rows cannot form a valid trade job."""
        message = f"Invalid bot configuration: {_summarize(error)}"
        logger.error("bot_config_invalid", bot_id=bot_id, bot_name=bot_name, error=message)
        try:
            await self.bot_repo.record_failure(
                bot_id, message, self.clock(), pause=True, count_failure=False
            )
        except Exception as e:
            logger.exception("bot_config_error_not_recorded", bot_id=bot_id)
            return BotRunResult(bot_id=bot_id, bot_name=bot_name, status="error", error=str(e))
        return BotRunResult(
            bot_id=bot_id,
            bot_name=bot_name,
            status="failed",
            error_code=ErrorCode.CONFIG_ERROR.value,
            error=message,
        )


def _summarize(error: ValueError) -> str:
    """First validation problem, without echoing input values such as seeds."""
    errors = getattr(error, "errors", None)
    if callable(errors):
        first = errors(include_input=False)[0]
        location = ".".join(str(part) for part in first["loc"])
        return f"{location}: {first['msg']}" if location else first["msg"]
    return str(error)
