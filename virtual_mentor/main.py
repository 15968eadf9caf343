"""Main FastAPI application."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from virtual_mentor.core.config import settings
from virtual_mentor.core.errors import AppError
from virtual_mentor.core.logging import setup_logging
from virtual_mentor.db.database import AsyncSessionLocal, init_db
from virtual_mentor.api import admin, calls, conversations, health, live, sessions, users
from virtual_mentor.api.webhooks import livekit_events
from virtual_mentor.services.calls.reconciler import run_reconcile_loop
from virtual_mentor.services.realtime.feed import change_feed
from virtual_mentor.services.telephony.livekit_provider import livekit_telephony_factory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()

    missing = settings.missing_livekit_variables()
    if missing:
        logger.warning(f"[STARTUP] Telephony not configured, missing: {', '.join(missing)}")

    sweep = None
    if settings.reconcile_interval_seconds > 0:
        sweep = asyncio.create_task(
            run_reconcile_loop(settings, AsyncSessionLocal, livekit_telephony_factory, change_feed)
        )
    yield
    # Shutdown
    if sweep is not None:
        sweep.cancel()
        with suppress(asyncio.CancelledError):
            await sweep
    await change_feed.close()


app = FastAPI(
    title="Virtual Mentor",
    description="Outbound AI mentor calls, call session tracking and live transcripts",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render application errors as {error, details?}."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(health.router, tags=["health"])
app.include_router(calls.router, tags=["calls"])
app.include_router(livekit_events.router, prefix="/api/webhooks", tags=["webhooks"])
app.include_router(sessions.router, tags=["sessions"])
app.include_router(conversations.router, tags=["conversations"])
app.include_router(users.router, tags=["users"])
app.include_router(live.router, tags=["live"])
app.include_router(admin.router, tags=["admin"])
