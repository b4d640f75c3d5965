"""
LinkRelay — Main FastAPI Application

Takes video links from users, resolves them through an extraction service and
relays the media to a Telegram chat through per-platform delivery bots.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from linkrelay.core.config import get_settings
from linkrelay.core.database import init_db
from linkrelay.core.errors import LinkRelayError

settings = get_settings()

# ── Logging ──────────────────────────────────────────────────────────────

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level)
    ),
)
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

logger = structlog.get_logger()


# ── Lifespan ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    logger.info("Starting LinkRelay", version=settings.app_version)

    await init_db()
    Path(settings.download_dir).mkdir(parents=True, exist_ok=True)

    if not settings.extraction_api_key:
        logger.warning("Extraction API key not configured; every pipeline run will fail at metadata")
    if not settings.telegram_chat_id:
        logger.warning("Telegram chat id not configured; every pipeline run will fail at upload")

    logger.info("LinkRelay ready", download_dir=settings.download_dir)

    yield

    logger.info("Shutting down LinkRelay")


# ── App ──────────────────────────────────────────────────────────────────

app = FastAPI(
    title="LinkRelay",
    description="Video link retrieval and Telegram delivery service",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.exception_handler(LinkRelayError)
async def linkrelay_error_handler(request: Request, exc: LinkRelayError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ── Routes ───────────────────────────────────────────────────────────────

from linkrelay.api.routes import bots, links, owners  # noqa: E402

app.include_router(owners.router, prefix=settings.api_prefix)
app.include_router(links.router, prefix=settings.api_prefix)
app.include_router(bots.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "description": "Video link retrieval and Telegram delivery",
        "version": settings.app_version,
        "platforms": ["youtube", "instagram", "twitter", "doodstream", "other"],
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "version": settings.app_version}
