"""
智能体生命周期钩子

钩子按 priority 升序执行（数值越小越先执行），每个钩子接收上一个钩子返回的事件，
可以原地修改事件字段（如改写 input_messages、替换 tool_result）后返回。

事件类型：
- PreCallEvent / PostCallEvent：一次 agent() 调用的开始与结束
- PreReasoningEvent / PostReasoningEvent / ReasoningChunkEvent：推理（模型调用）前后与流式分片
- PreActingEvent / PostActingEvent：每次工具调用前后
- ErrorEvent：调用过程中出现异常
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from agentscope_core.message import Msg, ToolResultBlock, ToolUseBlock

if TYPE_CHECKING:
    from agentscope_core.agent.base import AgentBase


@dataclass
class HookEvent:
    agent: "AgentBase"

    type: ClassVar[str] = "event"


@dataclass
class PreCallEvent(HookEvent):
    input_messages: list[Msg] = field(default_factory=list)

    type: ClassVar[str] = "pre_call"


@dataclass
class PostCallEvent(HookEvent):
    final_message: Msg | None = None

    type: ClassVar[str] = "post_call"


@dataclass
class PreReasoningEvent(HookEvent):
    input_messages: list[Msg] = field(default_factory=list)  # 系统提示词 + 记忆 + 计划提示

    type: ClassVar[str] = "pre_reasoning"


@dataclass
class PostReasoningEvent(HookEvent):
    reasoning_message: Msg | None = None
    stop_agent: bool = False  # 置为 True 时跳过工具执行，直接以本次推理结果结束（人工确认场景）

    type: ClassVar[str] = "post_reasoning"


@dataclass
class ReasoningChunkEvent(HookEvent):
    chunk: Msg | None = None  # 累计到当前的推理内容

    type: ClassVar[str] = "reasoning_chunk"


@dataclass
class PreActingEvent(HookEvent):
    tool_use: ToolUseBlock | None = None

    type: ClassVar[str] = "pre_acting"


@dataclass
class PostActingEvent(HookEvent):
    tool_use: ToolUseBlock | None = None
    tool_result: ToolResultBlock | None = None

    type: ClassVar[str] = "post_acting"


@dataclass
class ErrorEvent(HookEvent):
    error: BaseException | None = None

    type: ClassVar[str] = "error"


class Hook(ABC):
    """钩子基类"""

    priority: int = 100

    @abstractmethod
    async def on_event(self, event: HookEvent) -> HookEvent:
        ...
