from agentscope_core.memory.base import MemoryBase
from agentscope_core.memory.in_memory import InMemoryMemory

__all__ = ["InMemoryMemory", "MemoryBase"]
