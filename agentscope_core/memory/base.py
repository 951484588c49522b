"""
短期记忆抽象：智能体在一次会话中的消息历史
"""

from abc import ABC, abstractmethod

from agentscope_core.message import Msg
from agentscope_core.session.state import StateModule


class MemoryBase(StateModule, ABC):
    """记忆基类，同时也是可持久化的状态模块"""

    @abstractmethod
    async def add(self, msgs: Msg | list[Msg] | None, allow_duplicates: bool = False) -> None:
        ...

    @abstractmethod
    async def delete(self, index: int | list[int]) -> None:
        ...

    @abstractmethod
    async def get_memory(self) -> list[Msg]:
        ...

    @abstractmethod
    async def size(self) -> int:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...
