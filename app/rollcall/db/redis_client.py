import logging
from typing import Optional
import redis.asyncio as redis

from ..models.redis_models import MarkingDraftRedis, UserSessionRedis

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Redis client that owns teacher login sessions and in-progress marking drafts.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    # ===== User Session Management =====

    async def save_user_session(self, session: UserSessionRedis, ttl: int):
        """Stores the teacher's login session with a TTL."""
        key = f"users:{session.user_data.teacher_id}"
        await self._redis.set(key, session.model_dump_json(), ex=ttl)

    async def get_user_session(self, teacher_id: str) -> Optional[UserSessionRedis]:
        key = f"users:{teacher_id}"
        session_json = await self._redis.get(key)
        return UserSessionRedis.model_validate_json(session_json) if session_json else None

    async def delete_user_session(self, teacher_id: str) -> int:
        key = f"users:{teacher_id}"
        return await self._redis.delete(key)

    # ===== Marking Draft Management =====

    async def save_marking_draft(self, draft: MarkingDraftRedis, ttl: int):
        """Stores (or replaces) a teacher's single in-progress draft, refreshing its TTL."""
        key = f"marking_draft:{draft.teacher_id}"
        await self._redis.set(key, draft.model_dump_json(), ex=ttl)

    async def get_marking_draft(self, teacher_id: str) -> Optional[MarkingDraftRedis]:
        key = f"marking_draft:{teacher_id}"
        draft_json = await self._redis.get(key)
        return MarkingDraftRedis.model_validate_json(draft_json) if draft_json else None

    async def delete_marking_draft(self, teacher_id: str) -> int:
        key = f"marking_draft:{teacher_id}"
        return await self._redis.delete(key)
