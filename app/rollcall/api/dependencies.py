# app/rollcall/api/dependencies.py
from fastapi import Request, Depends, HTTPException, status
import redis.asyncio as redis

from ..config.config import settings
from ..db.redis_client import RedisClient
from ..db.supabase_client import SupabaseGateway
from ..services.marking_service import MarkingService, TeacherLocks
from ..services.preferences_service import PreferencesService
from ..services.roster_loader import RosterLoader
from ..services.session_committer import SessionCommitter


def _startup_resource(request: Request, name: str, label: str):
    """Returns a resource created by the lifespan, or 503 when startup could not create it."""
    resource = getattr(request.app.state, name, None)
    if resource is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"{label} is not available.")
    return resource

def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """Returns the Redis connection pool created at startup."""
    return _startup_resource(request, "redis_pool", "Session storage")

def get_supabase_gateway(request: Request) -> SupabaseGateway:
    """Returns the Supabase gateway created at startup."""
    return _startup_resource(request, "supabase_gateway", "The attendance database")

def get_teacher_locks(request: Request) -> TeacherLocks:
    return request.app.state.teacher_locks


def get_marking_service(
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool),
    gateway: SupabaseGateway = Depends(get_supabase_gateway),
    locks: TeacherLocks = Depends(get_teacher_locks),
) -> MarkingService:
    """
    Builds a fresh MarkingService for every request.

    The pool, the gateway and the per-teacher locks are shared and live on the
    application state; the loader, committer and draft store wrapped around them
    are cheap and rebuilt each time.
    """
    return MarkingService(
        draft_store=RedisClient(pool=redis_pool),
        roster_loader=RosterLoader(source=gateway, class_tables=settings.CLASS_TABLE_MAP),
        committer=SessionCommitter(sink=gateway),
        locks=locks,
        hours_per_day=settings.HOURS_PER_DAY,
        draft_ttl_seconds=settings.MARKING_DRAFT_TTL_SECONDS,
    )


def get_preferences_service(gateway: SupabaseGateway = Depends(get_supabase_gateway)) -> PreferencesService:
    return PreferencesService(gateway=gateway, departments=settings.DEPARTMENTS)
