from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI, Request
from fastapi.middleware import Middleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from chat_sessions.api.v1 import routes_health, routes_sessions
from chat_sessions.core.config import get_settings
from chat_sessions.core.debug import log_settings_debug
from chat_sessions.core.errors import setup_exception_handlers
from chat_sessions.core.logging import configure_logging, get_logger
from chat_sessions.core.security import configure_cors
from chat_sessions.core.utils import start_timer, stop_timer
from chat_sessions.services.session_service import get_session_registry


REQUEST_COUNT = Counter(
    "api_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "api_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id  # type: ignore[attr-defined]
        logger = get_logger("RequestContext")
        logger.info("request.start", request_id=request_id, path=str(request.url.path), method=request.method)
        timer_start = start_timer()
        response = await call_next(request)
        endpoint = _endpoint_label(request)
        REQUEST_LATENCY.labels(request.method, endpoint).observe(stop_timer(timer_start) / 1000.0)
        REQUEST_COUNT.labels(request.method, endpoint, str(response.status_code)).inc()
        response.headers["X-Request-Id"] = request_id
        return response


def _endpoint_label(request: Request) -> str:
    # Route templates keep one series per endpoint instead of one per session id.
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        return path
    return "unmatched"


async def sweep_idle_sessions(ttl_seconds: float, interval_seconds: float) -> None:
    registry = get_session_registry()
    while True:
        await asyncio.sleep(interval_seconds)
        registry.sweep_idle(ttl_seconds)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger = get_logger("Lifespan")
    sweeper: asyncio.Task | None = None
    if settings.session_idle_ttl_seconds > 0:
        sweeper = asyncio.get_running_loop().create_task(
            sweep_idle_sessions(settings.session_idle_ttl_seconds, settings.session_sweep_interval_seconds)
        )
        logger.info("Lifespan.idle_sweep_started", ttl_seconds=settings.session_idle_ttl_seconds)
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
        registry = get_session_registry()
        logger.info("Lifespan.shutdown", open_sessions=len(registry))
        registry.close_all()


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    log_settings_debug(settings)

    middleware = [
        Middleware(RequestContextMiddleware),
    ]

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        middleware=middleware,
        lifespan=lifespan,
    )

    configure_cors(app)
    setup_exception_handlers(app)

    app.include_router(routes_sessions.router)
    app.include_router(routes_health.router)

    if settings.prometheus_enabled:

        @app.get("/metrics")
        async def metrics() -> Response:
            data = generate_latest()
            return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
