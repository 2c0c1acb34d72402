"""Entry point: run one pass, the periodic loop, or the HTTP trigger."""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from contextlib import asynccontextmanager

import structlog

from bot_executor.config import Settings
from bot_executor.db.engine import create_db_engine, create_session_factory
from bot_executor.db.repository import BotRepository
from bot_executor.logging_config import configure_logging
from bot_executor.runner import BotRunner
from bot_executor.scheduler import BotScheduler
from bot_executor.trade.executor import BotExecutor

logger = structlog.get_logger()


def build_runner(settings: Settings, session_factory) -> BotRunner:
    bot_repo = BotRepository(session_factory)
    executor = BotExecutor(settings=settings, bot_repo=bot_repo)
    return BotRunner(settings=settings, bot_repo=bot_repo, executor=executor)


async def run_once(settings: Settings) -> int:
    engine = create_db_engine(settings)
    runner = build_runner(settings, create_session_factory(engine))
    try:
        summary = await runner.run_pass()
        print(json.dumps(summary.to_response(), indent=2))
        return 0
    except Exception as e:
        logger.exception("bot_executor_pass_failed")
        print(json.dumps({"success": False, "error": str(e)}, indent=2))
        return 1
    finally:
        await engine.dispose()


async def run_loop(settings: Settings) -> int:
    engine = create_db_engine(settings)
    runner = build_runner(settings, create_session_factory(engine))
    scheduler = BotScheduler(runner, interval_seconds=settings.PASS_INTERVAL_SECONDS)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _signal_handler)
    else:
        signal.signal(signal.SIGINT, lambda *_: _signal_handler())

    scheduler.start()
    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        pass
    finally:
        await scheduler.stop()
        await engine.dispose()
        logger.info("shutdown_complete")
    return 0


def serve(settings: Settings) -> int:
    import uvicorn

    from bot_executor.api import create_app

    engine = create_db_engine(settings)
    runner = build_runner(settings, create_session_factory(engine))

    @asynccontextmanager
    async def lifespan(app):
        yield
        await engine.dispose()
        logger.info("shutdown_complete")

    app = create_app(runner, lifespan=lifespan)
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT, log_config=None)
    return 0


def cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="bot-executor", description="AMM trading bot executor")
    parser.add_argument(
        "mode",
        nargs="?",
        choices=("once", "loop", "serve"),
        default="once",
        help="once: single pass; loop: pass every PASS_INTERVAL_SECONDS; serve: HTTP trigger",
    )
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    if args.mode == "serve":
        return serve(settings)
    if args.mode == "loop":
        return asyncio.run(run_loop(settings))
    return asyncio.run(run_once(settings))


if __name__ == "__main__":
    sys.exit(cli())
