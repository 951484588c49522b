"""
MsgHub：多智能体消息广播

进入 hub 时每个参与者订阅其余参与者，之后任一参与者回复都会自动 observe 给其他参与者；
退出时解除订阅。

    async with MsgHub([alice, bob], announcement=Msg("host", "开始讨论", "assistant")) as hub:
        await alice()
        await bob()
"""

import uuid

import structlog

from agentscope_core.agent.base import AgentBase, as_msg_list
from agentscope_core.message import Msg

log = structlog.get_logger()


class MsgHub:
    """消息中心（异步上下文管理器）"""

    def __init__(
        self,
        participants: list[AgentBase],
        announcement: Msg | list[Msg] | None = None,
        enable_auto_broadcast: bool = True,
        name: str | None = None,
    ):
        self.name = name or uuid.uuid4().hex
        self.participants = list(participants)
        self.announcement = as_msg_list(announcement)
        self.enable_auto_broadcast = enable_auto_broadcast
        self._entered = False

    async def __aenter__(self) -> "MsgHub":
        self._entered = True
        self._reset_subscribers()
        for msg in self.announcement:
            await self.broadcast(msg)
        log.debug("MsgHub 已进入", hub=self.name, participants=[a.name for a in self.participants])
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        for agent in self.participants:
            agent.remove_subscribers(self.name)
        self._entered = False
        log.debug("MsgHub 已退出", hub=self.name)

    def _reset_subscribers(self) -> None:
        if not self.enable_auto_broadcast:
            return
        for agent in self.participants:
            agent.reset_subscribers(self.name, self.participants)

    def add(self, new_participant: AgentBase | list[AgentBase]) -> None:
        agents = [new_participant] if isinstance(new_participant, AgentBase) else new_participant
        for agent in agents:
            if agent not in self.participants:
                self.participants.append(agent)
        if self._entered:
            self._reset_subscribers()

    def delete(self, participant: AgentBase | list[AgentBase]) -> None:
        agents = [participant] if isinstance(participant, AgentBase) else participant
        for agent in agents:
            if agent in self.participants:
                self.participants.remove(agent)
                agent.remove_subscribers(self.name)
            else:
                log.warning("MsgHub 中不存在该参与者", hub=self.name, agent=agent.name)
        if self._entered:
            self._reset_subscribers()

    async def broadcast(self, msg: Msg | list[Msg]) -> None:
        """手动广播：所有参与者 observe 该消息"""
        for m in as_msg_list(msg):
            for agent in self.participants:
                await agent.observe(m)

    def set_auto_broadcast(self, enable: bool) -> None:
        self.enable_auto_broadcast = enable
        if enable and self._entered:
            self._reset_subscribers()
        elif not enable:
            for agent in self.participants:
                agent.remove_subscribers(self.name)
