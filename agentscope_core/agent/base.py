"""
AgentBase：智能体基类

一次调用的生命周期：
    PreCall 钩子 → reply() → PostCall 钩子 → 广播给 MsgHub 订阅者

- 同一实例不允许并发调用（"Agent is still running"）
- interrupt() 只设置标志位，由 reply() 在迭代边界 / 流式分片之间检查并抛出
  AgentInterruptedError，__call__ 将其转交 handle_interrupt()
- stream() 通过临时钩子 + asyncio.Queue 把推理分片、工具结果、最终回复转成事件流
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any, ClassVar, Literal

import structlog

from agentscope_core.exceptions import AgentInterruptedError
from agentscope_core.hooks import (
    ErrorEvent,
    Hook,
    HookEvent,
    PostActingEvent,
    PostCallEvent,
    PostReasoningEvent,
    PreCallEvent,
    ReasoningChunkEvent,
)
from agentscope_core.message import Msg
from agentscope_core.observability.context import agent_scope
from agentscope_core.observability.metrics import AGENT_REPLY_TOTAL
from agentscope_core.session.state import StateModule

log = structlog.get_logger()

INTERRUPT_REPLY = "I noticed that you have interrupted me. What can I do for you?"

AgentEventType = Literal["reasoning", "tool_result", "agent_result"]


@dataclass
class AgentEvent:
    """stream() 产出的事件"""

    type: AgentEventType
    msg: Msg
    is_last: bool = True


class _StreamingHook(Hook):
    """把推理分片和工具结果写入队列，优先级最低，拿到的是其他钩子处理后的事件"""

    priority = 1000

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue

    async def on_event(self, event: HookEvent) -> HookEvent:
        if isinstance(event, ReasoningChunkEvent) and event.chunk is not None:
            self.queue.put_nowait(AgentEvent("reasoning", event.chunk, is_last=False))
        elif isinstance(event, PostReasoningEvent) and event.reasoning_message is not None:
            self.queue.put_nowait(AgentEvent("reasoning", event.reasoning_message))
        elif isinstance(event, PostActingEvent) and event.tool_result is not None:
            msg = Msg("system", [event.tool_result], "tool")
            self.queue.put_nowait(AgentEvent("tool_result", msg))
        return event


_STREAM_DONE = object()


def as_msg_list(msgs: Msg | list[Msg] | None) -> list[Msg]:
    if msgs is None:
        return []
    if isinstance(msgs, Msg):
        return [msgs]
    return list(msgs)


class AgentBase(StateModule):
    """智能体基类，子类实现 reply()"""

    _system_hooks: ClassVar[list[Hook]] = []

    def __init__(
        self,
        name: str,
        description: str = "",
        hooks: list[Hook] | None = None,
    ):
        super().__init__()
        self.name = name
        self.description = description
        self.agent_id = uuid.uuid4().hex
        self._hooks: list[Hook] = list(hooks or [])
        self._subscribers: dict[str, list["AgentBase"]] = {}
        self._running = False
        self._interrupted = False

        self.register_state("name")
        self.register_state("agent_id")

    # ── 钩子 ──

    @classmethod
    def register_system_hook(cls, hook: Hook) -> None:
        """系统级钩子，对所有智能体实例生效"""
        AgentBase._system_hooks.append(hook)

    @classmethod
    def clear_system_hooks(cls) -> None:
        AgentBase._system_hooks.clear()

    def add_hook(self, hook: Hook) -> None:
        self._hooks.append(hook)

    def remove_hook(self, hook: Hook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    @property
    def hooks(self) -> list[Hook]:
        """按 priority 升序排列（sorted 稳定，同优先级保持注册顺序）"""
        return sorted([*AgentBase._system_hooks, *self._hooks], key=lambda h: h.priority)

    async def _notify(self, event: HookEvent) -> HookEvent:
        for hook in self.hooks:
            event = await hook.on_event(event)
        return event

    # ── 调用 ──

    async def __call__(self, msg: Msg | list[Msg] | None = None, **kwargs: Any) -> Msg:
        if self._running:
            raise RuntimeError(f"Agent is still running: {self.name}")

        self._running = True
        self._interrupted = False
        try:
            with agent_scope(self.name):
                event = await self._notify(PreCallEvent(self, as_msg_list(msg)))
                try:
                    reply = await self.reply(event.input_messages, **kwargs)
                    outcome = "success"
                except AgentInterruptedError:
                    log.info("智能体被中断", agent=self.name)
                    reply = await self.handle_interrupt(event.input_messages)
                    outcome = "interrupted"

                post_event = await self._notify(PostCallEvent(self, reply))
                reply = post_event.final_message or reply
                await self._broadcast_to_subscribers(reply)
                AGENT_REPLY_TOTAL.labels(agent=self.name, outcome=outcome).inc()
                return reply
        except Exception as e:
            AGENT_REPLY_TOTAL.labels(agent=self.name, outcome="error").inc()
            log.error("智能体调用异常", agent=self.name, error=str(e), exc_info=True)
            await self._notify(ErrorEvent(self, e))
            raise
        finally:
            self._running = False

    async def reply(self, msgs: list[Msg], **kwargs: Any) -> Msg:
        raise NotImplementedError(f"{type(self).__name__} must implement reply()")

    async def observe(self, msg: Msg | list[Msg] | None) -> None:
        """接收消息但不回复，默认忽略"""

    @property
    def is_running(self) -> bool:
        return self._running

    # ── 中断 ──

    def interrupt(self) -> None:
        if self._running:
            log.info("收到中断请求", agent=self.name)
            self._interrupted = True

    def _check_interrupted(self) -> None:
        if self._interrupted:
            raise AgentInterruptedError(f"Agent {self.name} was interrupted")

    async def handle_interrupt(self, msgs: list[Msg]) -> Msg:
        return Msg(self.name, INTERRUPT_REPLY, "assistant", metadata={"interrupted": True})

    # ── MsgHub 订阅 ──

    def reset_subscribers(self, hub_id: str, subscribers: list["AgentBase"]) -> None:
        self._subscribers[hub_id] = [a for a in subscribers if a is not self]

    def remove_subscribers(self, hub_id: str) -> None:
        self._subscribers.pop(hub_id, None)

    async def _broadcast_to_subscribers(self, msg: Msg) -> None:
        for subscribers in self._subscribers.values():
            for agent in subscribers:
                await agent.observe(msg)

    # ── 流式 ──

    async def stream(self, msg: Msg | list[Msg] | None = None, **kwargs: Any) -> AsyncGenerator[AgentEvent, None]:
        """以事件流方式运行一次调用，最后一个事件为 agent_result"""
        queue: asyncio.Queue = asyncio.Queue()
        hook = _StreamingHook(queue)
        self.add_hook(hook)

        task = asyncio.create_task(self(msg, **kwargs))
        task.add_done_callback(lambda _: queue.put_nowait(_STREAM_DONE))
        try:
            while True:
                item = await queue.get()
                if item is _STREAM_DONE:
                    break
                yield item
            reply = await task
            yield AgentEvent("agent_result", reply)
        finally:
            self.remove_hook(hook)
            if not task.done():
                task.cancel()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
