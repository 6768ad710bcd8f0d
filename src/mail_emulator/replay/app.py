"""FastAPI application factory for the replay service.

The dataset is loaded synchronously during startup, before the first request
is accepted. ``/health`` answers as soon as the process is up; ``/ready``
answers 503 until the dataset is fully indexed.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mail_emulator.config import Settings, get_settings
from mail_emulator.exceptions import BadRequestError, ReplayError

from .api import router as messages_router
from .store import MessageStore

logger = structlog.get_logger()


def error_body(exc: ReplayError) -> dict:
    """Gmail-style error envelope."""
    return {
        "error": {
            "code": exc.status_code,
            "message": exc.message,
            "errors": [{"message": exc.message, "domain": "global", "reason": exc.reason}],
            "status": exc.status,
        }
    }


async def _replay_error_handler(request: Request, exc: ReplayError) -> JSONResponse:
    logger.info(
        "replay_request_rejected",
        path=request.url.path,
        status_code=exc.status_code,
        reason=exc.reason,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await _replay_error_handler(request, BadRequestError(f"Invalid request: {exc.errors()}"))


def create_app(
    settings: Settings | None = None,
    *,
    store: MessageStore | None = None,
    data_dir: Path | None = None,
) -> FastAPI:
    """Build the replay application.

    Args:
        settings: Application settings. If None, uses default settings.
        store: A pre-built store. If it is already ready, startup skips loading.
        data_dir: Directory with transform output. Defaults to ``settings.data_dir``.
    """
    settings = settings or get_settings()
    store = store if store is not None else MessageStore()
    source = Path(data_dir or settings.data_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not store.ready:
            # Nothing is served until the index is complete.
            store.load(source)
        logger.info("replay_service_started", message_count=len(store), api_version=settings.api_version)
        yield
        logger.info("replay_service_stopped")

    app = FastAPI(title="Mail Emulator Replay", lifespan=lifespan)
    app.state.store = store
    app.state.settings = settings

    app.include_router(messages_router)
    app.include_router(messages_router, prefix="/gmail")
    app.add_exception_handler(ReplayError, _replay_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/ready", response_model=None)
    def ready() -> dict[str, object] | JSONResponse:
        if not store.ready:
            return JSONResponse(status_code=503, content={"status": "loading"})
        return {"status": "ready", "messages": len(store), "threads": store.thread_count}

    return app
