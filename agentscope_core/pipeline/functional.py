"""
函数式编排：顺序执行 / 扇出执行
"""

import asyncio
import copy
from typing import Any

from agentscope_core.agent.base import AgentBase
from agentscope_core.message import Msg


async def sequential_pipeline(
    agents: list[AgentBase],
    msg: Msg | list[Msg] | None = None,
    **kwargs: Any,
) -> Msg | list[Msg] | None:
    """上一个智能体的输出作为下一个智能体的输入，返回最后一个输出"""
    for agent in agents:
        msg = await agent(msg, **kwargs)
    return msg


async def fanout_pipeline(
    agents: list[AgentBase],
    msg: Msg | list[Msg] | None = None,
    enable_gather: bool = True,
    **kwargs: Any,
) -> list[Msg]:
    """同一输入分发给所有智能体（各自拿到深拷贝），结果顺序与 agents 一致"""
    if enable_gather:
        return list(
            await asyncio.gather(*(agent(copy.deepcopy(msg), **kwargs) for agent in agents))
        )
    return [await agent(copy.deepcopy(msg), **kwargs) for agent in agents]
