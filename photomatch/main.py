"""
photomatch — FastAPI application

Wires the matching API together:
- lifespan: database warm-up on start, request drain and engine disposal on stop
- middleware: request timeout, per-request structlog context, CORS
- a single handler turning ``PhotomatchError`` into a JSON error response
- liveness and database readiness checks
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from photomatch.api.deps import http_status_for
from photomatch.config import get_settings
from photomatch.database import dispose_engine, get_engine, get_session_factory
from photomatch.exceptions import PhotomatchError

settings = get_settings()

# ── Logging ──────────────────────────────────────────────────────────────────

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger("photomatch")


# ── In-flight request tracking ───────────────────────────────────────────────


class InFlightRequests:
    """Counts requests being served so shutdown can wait for them."""

    def __init__(self, drain_timeout: float = 15.0, poll_interval: float = 0.25) -> None:
        self.drain_timeout = drain_timeout
        self.poll_interval = poll_interval
        self._count = 0
        self._lock = asyncio.Lock()

    @property
    def count(self) -> int:
        return self._count

    async def enter(self) -> None:
        async with self._lock:
            self._count += 1

    async def leave(self) -> None:
        async with self._lock:
            self._count -= 1

    async def drain(self) -> bool:
        """Wait for the count to reach zero; False if the timeout won."""
        deadline = time.monotonic() + self.drain_timeout
        while self._count > 0:
            if time.monotonic() >= deadline:
                logger.warning("request_drain_timeout", in_flight=self._count)
                return False
            await asyncio.sleep(self.poll_interval)
        return True


in_flight = InFlightRequests()


# ── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("photomatch_starting", environment=settings.ENVIRONMENT)

    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_ready")

    yield

    logger.info("photomatch_stopping", in_flight=in_flight.count)
    await in_flight.drain()
    await dispose_engine()
    logger.info("photomatch_stopped")


# ── Middleware ───────────────────────────────────────────────────────────────


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a request runs past ``timeout_seconds``."""

    def __init__(self, app, timeout_seconds: float = 70.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("request_timeout", path=request.url.path, timeout=self.timeout_seconds)
            return JSONResponse(
                status_code=504,
                content={"detail": "Request timed out", "error_type": "Timeout"},
            )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id into the structlog context and log each request once."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        )
        started = time.perf_counter()

        await in_flight.enter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_crashed", duration_ms=_elapsed_ms(started))
            raise
        finally:
            await in_flight.leave()

        response.headers["x-request-id"] = request_id
        logger.info("request_served", status=response.status_code, duration_ms=_elapsed_ms(started))
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


# ── Application ──────────────────────────────────────────────────────────────

app = FastAPI(
    title="photomatch",
    description="Photographer matching and personality classification",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

# last added runs outermost
app.add_middleware(RequestContextMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PhotomatchError)
async def photomatch_error_handler(request: Request, exc: PhotomatchError) -> JSONResponse:
    status_code = http_status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "request_rejected",
        status=status_code,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    return {"status": "healthy"}


@app.get("/health/deep", tags=["health"])
async def health_deep() -> dict:
    """Readiness: the process is up and the database answers ``SELECT 1``."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_database_unreachable", error=str(exc))
        return {"status": "degraded", "database": f"error: {exc}"}
    return {"status": "healthy", "database": "connected"}


from photomatch.api.router import router as api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
