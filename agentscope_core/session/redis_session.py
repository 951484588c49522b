"""
Redis 会话存储：redis.asyncio 连接池 + Key 统一管理
"""

import json
from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from agentscope_core.config import get_settings
from agentscope_core.exceptions import SessionError
from agentscope_core.session.base import SessionBase

log = structlog.get_logger()


class RedisKeys:
    """
    Redis Key 统一管理，避免散弹式硬编码
    命名规范：{业务域}:{资源类型}:{标识}
    """

    @staticmethod
    def session(session_id: str) -> str:
        """会话状态 (TTL 由 SESSION_TTL 控制)"""
        return f"agentscope:session:{session_id}"

    @staticmethod
    def session_pattern() -> str:
        return "agentscope:session:*"


def create_redis_client(url: str | None = None) -> aioredis.Redis:
    """按配置创建带连接池的 Redis 客户端"""
    settings = get_settings()
    pool = aioredis.ConnectionPool.from_url(
        url or settings.REDIS_URL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
        retry_on_timeout=True,
    )
    return aioredis.Redis(connection_pool=pool)


class RedisSession(SessionBase):
    """Redis 会话存储，客户端需以 decode_responses=True 创建"""

    def __init__(self, redis: aioredis.Redis, ttl: int | None = None):
        self.redis = redis
        self.ttl = get_settings().SESSION_TTL if ttl is None else ttl

    async def _save(self, session_id: str, state: dict[str, Any]) -> None:
        key = RedisKeys.session(session_id)
        try:
            await self.redis.set(
                key,
                json.dumps(state, ensure_ascii=False),
                ex=self.ttl if self.ttl > 0 else None,
            )
        except RedisError as e:
            log.error("Redis 会话写入失败", session_id=session_id, error=str(e))
            raise SessionError(f"Failed to save session '{session_id}': {e}", cause=e) from e

    async def _load(self, session_id: str) -> dict[str, Any] | None:
        try:
            raw = await self.redis.get(RedisKeys.session(session_id))
        except RedisError as e:
            log.error("Redis 会话读取失败", session_id=session_id, error=str(e))
            raise SessionError(f"Failed to load session '{session_id}': {e}", cause=e) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            log.error("Redis 会话数据损坏", session_id=session_id, error=str(e))
            raise SessionError(f"Failed to load session '{session_id}': {e}", cause=e) from e

    async def exists(self, session_id: str) -> bool:
        try:
            return bool(await self.redis.exists(RedisKeys.session(session_id)))
        except RedisError as e:
            log.error("Redis 会话查询失败", session_id=session_id, error=str(e))
            raise SessionError(f"Failed to check session '{session_id}': {e}", cause=e) from e

    async def delete(self, session_id: str) -> bool:
        try:
            return bool(await self.redis.delete(RedisKeys.session(session_id)))
        except RedisError as e:
            log.error("Redis 会话删除失败", session_id=session_id, error=str(e))
            raise SessionError(f"Failed to delete session '{session_id}': {e}", cause=e) from e

    async def list_sessions(self) -> list[str]:
        prefix = RedisKeys.session("")
        try:
            keys = [key async for key in self.redis.scan_iter(match=RedisKeys.session_pattern())]
        except RedisError as e:
            log.error("Redis 会话列表读取失败", error=str(e))
            raise SessionError(f"Failed to list sessions: {e}", cause=e) from e
        return sorted(key[len(prefix):] for key in keys)
