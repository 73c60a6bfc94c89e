# app/rollcall/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import redis.asyncio as redis
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config.config import settings
from .api import auth, marking, preferences
from .api.utilities.limiter import limiter
from .db.supabase_client import create_supabase_gateway
from .logging.logging_config import setup_logging
from .services.marking_service import TeacherLocks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the shared Redis pool and Supabase gateway on startup and releases them on shutdown.
    """
    setup_logging()
    logger.info("Starting application...")

    app.state.redis_pool = None
    app.state.supabase_gateway = None

    try:
        app.state.redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )
        app.state.supabase_gateway = await create_supabase_gateway(
            settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, settings.SUPABASE_SERVICE_KEY, settings.LEDGER_BUCKET
        )
        logger.info("Redis pool and Supabase clients created.")
    except Exception as e:
        logger.error(f"Error during startup, dependent routes will answer 503: {e}", exc_info=True)

    yield

    logger.info("Shutting down application...")
    if app.state.redis_pool is not None:
        await app.state.redis_pool.disconnect()
        logger.info("Redis pool closed.")


app = FastAPI(
    title="Rollcall API",
    description="Swipe-to-mark class attendance for teachers",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.state.teacher_locks = TeacherLocks()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(marking.router, prefix="/api/v1")
app.include_router(preferences.router, prefix="/api/v1")

@app.get("/health", tags=["System"])
def health_check():
    """Simple liveness check."""
    return {"status": "ok", "message": "Rollcall API is running."}
