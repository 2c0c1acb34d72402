"""HTTP trigger: one request runs one executor pass."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from bot_executor.runner import BotRunner

logger = structlog.get_logger()

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "X-Client-Info", "Apikey"]


def create_app(
    runner: BotRunner,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager] | None = None,
) -> FastAPI:
    app = FastAPI(title="AMM Bot Executor", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    @app.options("/")
    async def preflight() -> Response:
        return Response(status_code=200)

    @app.api_route("/", methods=["GET", "POST"])
    async def run_pass() -> JSONResponse:
        try:
            summary = await runner.run_pass()
        except Exception as e:
            logger.exception("bot_executor_pass_failed")
            return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
        return JSONResponse(content=summary.to_response())

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "pass_running": runner.busy}

    return app
