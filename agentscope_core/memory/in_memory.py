"""
进程内记忆：有序消息列表，按消息 id 去重
"""

import structlog

from agentscope_core.memory.base import MemoryBase
from agentscope_core.message import Msg

log = structlog.get_logger()


class InMemoryMemory(MemoryBase):
    """基于 list 的短期记忆"""

    def __init__(self) -> None:
        super().__init__()
        self.content: list[Msg] = []
        self.register_state(
            "content",
            custom_to_json=lambda msgs: [m.to_dict() for m in msgs],
            custom_from_json=lambda data: [Msg.from_dict(m) for m in data],
        )

    async def add(self, msgs: Msg | list[Msg] | None, allow_duplicates: bool = False) -> None:
        if msgs is None:
            return
        if isinstance(msgs, Msg):
            msgs = [msgs]

        existing = {m.id for m in self.content}
        for msg in msgs:
            if not isinstance(msg, Msg):
                raise TypeError(f"Memory only accepts Msg objects, got {type(msg).__name__}")
            if not allow_duplicates and msg.id in existing:
                log.debug("重复消息已跳过", msg_id=msg.id)
                continue
            self.content.append(msg)
            existing.add(msg.id)

    async def delete(self, index: int | list[int]) -> None:
        indexes = [index] if isinstance(index, int) else list(index)
        for i in indexes:
            if not 0 <= i < len(self.content):
                raise IndexError(f"Memory index {i} out of range [0, {len(self.content)})")
        for i in sorted(set(indexes), reverse=True):
            del self.content[i]

    async def get_memory(self) -> list[Msg]:
        return list(self.content)

    async def size(self) -> int:
        return len(self.content)

    async def clear(self) -> None:
        self.content = []
