"""
依赖注入：会话存储、智能体工厂与会话锁

应用启动时在 lifespan 中创建并挂到 app.state，路由通过 Depends 获取；
测试中用 app.dependency_overrides 替换为假实现。
"""

import asyncio
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import Request

from agentscope_core.agent import AgentBase, ReActAgent
from agentscope_core.config import Settings
from agentscope_core.formatter import OpenAIChatFormatter
from agentscope_core.model import OpenAIChatModel
from agentscope_core.session import InMemorySession, JsonSession, RedisSession, SessionBase
from agentscope_core.session.redis_session import create_redis_client
from agentscope_core.tool import Toolkit
from agentscope_core.tool.file_tools import insert_text_file, view_text_file, write_text_file

AgentFactory = Callable[[], AgentBase]

DEFAULT_SYS_PROMPT = (
    "You are a helpful assistant. Use the available tools when they help you answer the "
    "user's request, and answer concisely."
)


def build_session(settings: Settings) -> SessionBase:
    """按 SESSION_BACKEND 创建会话存储"""
    backend = settings.SESSION_BACKEND.lower()
    if backend == "json":
        return JsonSession(settings.SESSION_DIR)
    if backend == "redis":
        return RedisSession(create_redis_client(settings.REDIS_URL), ttl=settings.SESSION_TTL)
    if backend == "memory":
        return InMemorySession()
    raise ValueError(f"Unknown SESSION_BACKEND '{settings.SESSION_BACKEND}', expected json/redis/memory")


def build_agent_factory(settings: Settings) -> AgentFactory:
    """默认智能体：OpenAI 协议模型 + 文本文件工具"""

    def factory() -> AgentBase:
        toolkit = Toolkit()
        for func in (view_text_file, write_text_file, insert_text_file):
            toolkit.register_tool_function(func)
        return ReActAgent(
            name="assistant",
            sys_prompt=DEFAULT_SYS_PROMPT,
            model=OpenAIChatModel(settings.LLM_DEFAULT_MODEL),
            formatter=OpenAIChatFormatter(),
            toolkit=toolkit,
            max_iters=settings.REACT_MAX_ITERS,
        )

    return factory


class SessionLocks:
    """同一 session_id 的请求串行执行（加载 → 运行 → 保存），无人等待的锁立即回收"""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str):
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[session_id] -= 1
            if not self._holders[session_id]:
                del self._holders[session_id]
                del self._locks[session_id]

    def __len__(self) -> int:
        return len(self._locks)


def get_session(request: Request) -> SessionBase:
    return request.app.state.session


def get_agent_factory(request: Request) -> AgentFactory:
    return request.app.state.agent_factory


def get_session_locks(request: Request) -> SessionLocks:
    return request.app.state.session_locks
