import asyncio
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import structlog

from meeting_minutes.api.deps import get_pipeline, get_rate_limiter
from meeting_minutes.api.routes import audio, health
from meeting_minutes.core.config import ENVIRONMENT, FRONTEND_URL, STATIC_DIR, is_production, validate_config
from meeting_minutes.core.errors import ProcessingError, processing_error_handler, unhandled_error_handler
from meeting_minutes.core.logging import configure_logging

logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Meeting Minutes",
    servers=[
        {"url": "http://localhost:3000", "description": "local"},
    ]
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL or "*"] if is_production() else ["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.add_exception_handler(ProcessingError, processing_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# Include routers
app.include_router(audio.router)
app.include_router(health.router)

# Browser client, served last so it never shadows the API routes
if os.path.isdir(STATIC_DIR):
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")


@app.on_event("startup")
async def startup():
    configure_logging()
    validate_config()
    app.state.rate_limit_sweeper = asyncio.create_task(get_rate_limiter().run_sweeper())
    logger.info("server_ready", environment=ENVIRONMENT)


@app.on_event("shutdown")
async def shutdown():
    sweeper = getattr(app.state, "rate_limit_sweeper", None)
    if sweeper:
        sweeper.cancel()
    if get_pipeline.cache_info().currsize:
        get_pipeline().shutdown()
