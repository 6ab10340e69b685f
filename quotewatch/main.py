# quotewatch/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quotewatch.errors import InvalidInput, QuoteWatchError, envelope_from_http_exception
from quotewatch.history_store import HistoryStore
from quotewatch.job_registry import JobRegistry
from quotewatch.logging_conf import setup_logging

# --- Observability ---
from quotewatch.observability import metrics_endpoint, timing_middleware
from quotewatch.quote_client import QuoteClient

# --- Routers ---
from quotewatch.routers import monitor
from quotewatch.scheduler import MonitoringScheduler, QuoteFetcher
from quotewatch.schemas import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    JobStatus,
    VersionResponse,
)
from quotewatch.settings import Settings, load_settings
from quotewatch.version import service_version_payload

logger = logging.getLogger("quotewatch.main")


def _error_json(status_code: int, envelope: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope.model_dump(mode="json"))


# --- Error handlers ---
async def quotewatch_error_handler(request: Request, exc: QuoteWatchError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_json(exc.http_status, exc.to_response())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # The public contract is 400 for any malformed input, not FastAPI's 422
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid input: {where} {first.get('msg', '')}".strip() if where else "Invalid input"
    err = InvalidInput(message)
    return _error_json(err.http_status, err.to_response())


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    envelope = envelope_from_http_exception(exc)
    status_code = 404 if envelope.error.code == ErrorCode.NOT_FOUND else exc.status_code
    return _error_json(status_code, envelope)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    envelope = ErrorResponse(
        error=ErrorDetail(code=ErrorCode.INTERNAL_ERROR, message=str(exc) or "Server error")
    )
    return _error_json(500, envelope)


def create_app(
    settings: Settings | None = None, quote_client: QuoteFetcher | None = None
) -> FastAPI:
    """
    Build the API. `quote_client` replaces the Finnhub client (tests, replays);
    when omitted one is created from `settings` and closed on shutdown.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = quote_client is None
        fetcher = quote_client if quote_client is not None else QuoteClient(settings)
        app.state.scheduler = MonitoringScheduler(fetcher, HistoryStore(), JobRegistry())
        logger.info("QuoteWatch ready")
        try:
            yield
        finally:
            await app.state.scheduler.shutdown()
            if owned:
                await fetcher.aclose()

    app = FastAPI(title="QuoteWatch", version="0.1.0", lifespan=lifespan)

    # --- Include routers ---
    app.include_router(monitor.router)

    # --- Observability ---
    app.middleware("http")(timing_middleware)

    app.add_exception_handler(QuoteWatchError, quotewatch_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # --- Utility endpoints ---
    @app.get("/health", response_model=HealthResponse)
    def health(request: Request):
        scheduler = request.app.state.scheduler
        jobs = scheduler.monitored()
        return HealthResponse(
            as_of=datetime.now(UTC).isoformat(),
            monitored=[job.symbol for job in jobs],
            jobs=[
                JobStatus(
                    symbol=job.symbol,
                    interval_s=job.interval,
                    started_at=job.started_at,
                    ticks_fired=job.ticks_fired,
                )
                for job in jobs
            ],
            inflight_ticks=scheduler.registry.inflight,
            history_symbols=scheduler.history.symbols(),
        )

    @app.get("/version", response_model=VersionResponse)
    def version():
        return VersionResponse(**service_version_payload())

    @app.get("/metrics")
    def metrics():
        return metrics_endpoint()

    return app


def run() -> None:
    """Console entry point: `quotewatch`."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
