from __future__ import annotations

import asyncio

from agentscope_core.agent import AgentBase
from agentscope_core.message import Msg
from agentscope_core.pipeline import MsgHub, fanout_pipeline, sequential_pipeline


class EchoAgent(AgentBase):
    """回复 "<name>: <输入文本>"，并记录观察到的消息"""

    def __init__(self, name: str, delay: float = 0.0):
        super().__init__(name)
        self.delay = delay
        self.observed: list[Msg] = []
        self.received: list[Msg] = []

    async def reply(self, msgs, **kwargs):
        self.received.extend(msgs)
        if self.delay:
            await asyncio.sleep(self.delay)
        text = " | ".join(m.get_text_content() for m in msgs)
        return Msg(self.name, f"{self.name}: {text}", "assistant")

    async def observe(self, msg):
        if msg is not None:
            self.observed.append(msg)


def _texts(msgs: list[Msg]) -> list[str]:
    return [m.get_text_content() for m in msgs]


# ── MsgHub ──

async def test_msghub_broadcasts_announcement_and_replies() -> None:
    alice, bob, carol = EchoAgent("alice"), EchoAgent("bob"), EchoAgent("carol")

    async with MsgHub([alice, bob, carol], announcement=Msg("host", "welcome", "assistant")):
        await alice(Msg("host", "topic", "user"))

    assert _texts(alice.observed) == ["welcome"]
    assert _texts(bob.observed) == ["welcome", "alice: topic"]
    assert _texts(carol.observed) == ["welcome", "alice: topic"]


async def test_msghub_exit_removes_subscriptions() -> None:
    alice, bob = EchoAgent("alice"), EchoAgent("bob")

    async with MsgHub([alice, bob]):
        pass
    await alice(Msg("host", "after", "user"))

    assert bob.observed == []


async def test_msghub_add_and_delete_participants() -> None:
    alice, bob, carol = EchoAgent("alice"), EchoAgent("bob"), EchoAgent("carol")

    async with MsgHub([alice, bob]) as hub:
        hub.add(carol)
        await alice(Msg("host", "one", "user"))
        hub.delete(bob)
        await alice(Msg("host", "two", "user"))

    assert _texts(carol.observed) == ["alice: one", "alice: two"]
    assert _texts(bob.observed) == ["alice: one"]


async def test_msghub_without_auto_broadcast_needs_manual_broadcast() -> None:
    alice, bob = EchoAgent("alice"), EchoAgent("bob")

    async with MsgHub([alice, bob], enable_auto_broadcast=False) as hub:
        reply = await alice(Msg("host", "quiet", "user"))
        assert bob.observed == []
        await hub.broadcast(reply)
        hub.set_auto_broadcast(True)
        await alice(Msg("host", "loud", "user"))

    assert _texts(bob.observed) == ["alice: quiet", "alice: loud"]


# ── 函数式编排 ──

async def test_sequential_pipeline_chains_outputs() -> None:
    first, second = EchoAgent("first"), EchoAgent("second")

    result = await sequential_pipeline([first, second], Msg("user", "go", "user"))

    assert result.get_text_content() == "second: first: go"


async def test_sequential_pipeline_with_no_agents_returns_input() -> None:
    msg = Msg("user", "go", "user")

    assert await sequential_pipeline([], msg) is msg


async def test_fanout_pipeline_keeps_order_and_copies_input() -> None:
    slow, fast = EchoAgent("slow", delay=0.05), EchoAgent("fast")
    msg = Msg("user", "go", "user")

    results = await fanout_pipeline([slow, fast], msg)
    sequential = await fanout_pipeline([EchoAgent("a"), EchoAgent("b")], msg, enable_gather=False)

    assert _texts(results) == ["slow: go", "fast: go"]
    assert _texts(sequential) == ["a: go", "b: go"]
    assert slow.received[0] is not msg
    assert slow.received[0] is not fast.received[0]
    assert slow.received[0].id == msg.id
