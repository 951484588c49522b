"""
SubAgentTool：把一个智能体封装为工具（agent as tool）

主智能体把子任务描述交给子智能体，子智能体独立运行自己的 ReAct 循环，
完成后把最终回复文本作为工具结果返回。

防递归：通过 ContextVar 记录当前嵌套深度，超过 max_depth 直接拒绝。
"""

import contextvars
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, Field

from agentscope_core.config import get_settings
from agentscope_core.message import Msg
from agentscope_core.tool.base import BaseTool
from agentscope_core.tool.response import ToolResponse

if TYPE_CHECKING:
    from agentscope_core.agent.base import AgentBase

log = structlog.get_logger()

_subagent_depth: contextvars.ContextVar[int] = contextvars.ContextVar("subagent_depth", default=0)


class SubAgentParams(BaseModel):
    task: str = Field(
        description="The complete task description for the sub agent, including all the context it needs"
    )


class SubAgentTool(BaseTool):
    """子智能体工具，每次调用都通过工厂创建全新的子智能体实例"""

    def __init__(
        self,
        agent_factory: Callable[[], "AgentBase"],
        name: str,
        description: str,
        max_depth: int | None = None,
        timeout_ms: int | None = None,
    ):
        self._agent_factory = agent_factory
        self._name = f"call_{name}"
        self._description = description
        self.max_depth = get_settings().SUBAGENT_MAX_DEPTH if max_depth is None else max_depth
        self._timeout_ms = timeout_ms

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def params_model(self) -> type[BaseModel]:
        return SubAgentParams

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms or super().timeout_ms

    async def execute(self, args: dict) -> ToolResponse:
        params = SubAgentParams.model_validate(args)
        depth = _subagent_depth.get()
        if depth >= self.max_depth:
            log.warning("子智能体嵌套过深，拒绝调用", tool=self.name, depth=depth)
            return ToolResponse.fail(
                f"Sub agent nesting depth limit ({self.max_depth}) reached, "
                "finish the task yourself instead."
            )

        token = _subagent_depth.set(depth + 1)
        try:
            agent = self._agent_factory()
            log.info("子智能体开始执行", tool=self.name, agent=agent.name, depth=depth + 1)
            reply = await agent(Msg("user", params.task, "user"))
        finally:
            _subagent_depth.reset(token)

        log.info("子智能体执行完成", tool=self.name, agent=agent.name)
        return ToolResponse.text(reply.get_text_content(), agent=agent.name)
