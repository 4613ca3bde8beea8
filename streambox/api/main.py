"""
FastAPI application for Stream Box (in-memory; no DB).

- Health: /api/health, /api/health/live, /api/health/ready
- API: /api/chat/*, /api/viewer/ping, /api/info, /api/update, /api/stats
- Background: stream monitor polling the media engine playlist
"""
import logging
import math
import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from streambox.core.config import Settings, settings as default_settings
from streambox.api.health import router as health_router
from streambox.api.router import router as api_router
from streambox.services import (
    ChatHub,
    Components,
    PresenceTracker,
    StatusStore,
    set_components,
)
from streambox.worker.monitor import StreamMonitor

logger = logging.getLogger("streambox.http")


def _setup_logging(cfg: Settings) -> None:
    level = getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_components(
    cfg: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Components:
    status = StatusStore()
    return Components(
        settings=cfg,
        status=status,
        hub=ChatHub(
            history_size=cfg.CHAT_HISTORY_SIZE, queue_maxsize=cfg.CHAT_QUEUE_SIZE
        ),
        presence=PresenceTracker(status, ttl=cfg.VIEWER_TTL_SEC),
        monitor=StreamMonitor(
            status,
            cfg.probe_url,
            interval=cfg.CHECK_INTERVAL,
            timeout=cfg.PROBE_TIMEOUT_SEC,
            transport=transport,
        ),
        started_at=time.monotonic(),
    )


def create_app(
    cfg: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the app. `transport` replaces the probe's network layer (tests)."""
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _setup_logging(cfg)
        logger.info("Stream Box API v%s starting", cfg.VERSION)
        logger.info(
            "Configuration: PORT=%s, ENGINE=%s, CHECK_INTERVAL=%.1fs",
            cfg.API_PORT,
            cfg.ENGINE_URL,
            cfg.CHECK_INTERVAL,
        )

        components = build_components(cfg, transport)
        set_components(app, components)
        await components.monitor.start()

        yield

        logger.info("Shutting down")
        await components.monitor.stop()
        components.hub.close()

    app = FastAPI(
        title="Stream Box API",
        description="Stream status, chat and live viewer count",
        version=cfg.VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s - %.1fms",
            request.method,
            request.url.path,
            (time.perf_counter() - start) * 1000,
        )
        return response

    app.include_router(health_router, prefix=cfg.API_PREFIX)
    app.include_router(api_router, prefix=cfg.API_PREFIX)
    return app


app = create_app()


def run() -> None:
    """Serve the API; open streams are force-closed after SHUTDOWN_TIMEOUT_SEC."""
    uvicorn.run(
        app,
        host=default_settings.API_HOST,
        port=default_settings.API_PORT,
        timeout_graceful_shutdown=math.ceil(default_settings.SHUTDOWN_TIMEOUT_SEC),
    )


if __name__ == "__main__":
    run()
