from agentscope_core.agent.base import AgentBase, AgentEvent
from agentscope_core.agent.react_agent import ReActAgent
from agentscope_core.agent.user_agent import UserAgent

__all__ = ["AgentBase", "AgentEvent", "ReActAgent", "UserAgent"]
