from agentscope_core.session.base import InMemorySession, SessionBase
from agentscope_core.session.json_session import JsonSession
from agentscope_core.session.redis_session import RedisSession
from agentscope_core.session.state import StateModule

__all__ = ["InMemorySession", "JsonSession", "RedisSession", "SessionBase", "StateModule"]
