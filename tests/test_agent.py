from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import BaseModel

from agentscope_core.agent import AgentBase, ReActAgent, UserAgent
from agentscope_core.agent.base import INTERRUPT_REPLY
from agentscope_core.agent.react_agent import STRUCTURED_REMINDER, SUMMARY_HINT, TOOL_INTERRUPTED
from agentscope_core.exceptions import ModelError
from agentscope_core.formatter import OpenAIChatFormatter
from agentscope_core.hooks import (
    ErrorEvent,
    Hook,
    PostActingEvent,
    PostCallEvent,
    PostReasoningEvent,
    PreActingEvent,
    PreCallEvent,
    ReasoningChunkEvent,
)
from agentscope_core.message import Msg, TextBlock, ToolUseBlock
from agentscope_core.model.base import ChatResponse
from agentscope_core.plan import PlanNotebook
from agentscope_core.rag import InMemoryStore, SimpleKnowledge, TextReader
from agentscope_core.skill import AgentSkill, SkillBox
from agentscope_core.tool import Toolkit

from tests._fakes import FakeChatModel, FakeEmbedding, text_response, tool_response

weather_calls: list[str] = []


def get_weather(city: str) -> str:
    """Get the weather of a city.

    Args:
        city (str): The city name.
    """
    weather_calls.append(city)
    return f"{city}: sunny"


@pytest.fixture(autouse=True)
def _reset_weather_calls():
    weather_calls.clear()


def _agent(model: FakeChatModel, **kwargs) -> ReActAgent:
    toolkit = kwargs.pop("toolkit", None) or Toolkit()
    if not toolkit.has_tool("get_weather"):
        toolkit.register_tool_function(get_weather)
    return ReActAgent(
        name="assistant",
        sys_prompt="You are a helpful assistant.",
        model=model,
        formatter=OpenAIChatFormatter(),
        toolkit=toolkit,
        **kwargs,
    )


def _user(text: str) -> Msg:
    return Msg("user", text, "user")


def _tool_names(call: dict) -> list[str]:
    return [t["function"]["name"] for t in call["tools"] or []]


class Recorder(Hook):
    def __init__(self, label: str, priority: int, log: list[str]):
        self.label = label
        self.priority = priority
        self.log = log

    async def on_event(self, event):
        if isinstance(event, PreCallEvent):
            self.log.append(self.label)
        return event


# ── ReAct 循环 ──

async def test_tool_loop_runs_tool_then_answers() -> None:
    model = FakeChatModel([tool_response("get_weather", {"city": "Paris"}), text_response("It is sunny.")])
    agent = _agent(model)

    reply = await agent(_user("weather in Paris?"))

    assert reply.get_text_content() == "It is sunny."
    assert weather_calls == ["Paris"]
    memory = await agent.memory.get_memory()
    assert [m.role for m in memory] == ["user", "assistant", "tool", "assistant"]
    assert memory[2].get_content_blocks("tool_result")[0].get_text() == "Paris: sunny"
    assert _tool_names(model.calls[0]) == ["get_weather"]
    assert model.calls[0]["messages"][0] == {"role": "system", "content": "You are a helpful assistant."}


async def test_unknown_tool_only_finishes_the_reply() -> None:
    model = FakeChatModel([tool_response("missing_tool", {})])
    agent = _agent(model)

    reply = await agent(_user("hi"))

    assert reply.get_content_blocks("tool_use")[0].name == "missing_tool"
    assert len(model.calls) == 1


async def test_unknown_tool_next_to_known_tool_gets_error_result() -> None:
    mixed = ChatResponse(content=[
        ToolUseBlock(id="a", name="get_weather", input={"city": "Rome"}),
        ToolUseBlock(id="b", name="missing_tool", input={}),
    ])
    agent = _agent(FakeChatModel([mixed, text_response("done")]))

    await agent(_user("hi"))

    results = [
        block
        for m in await agent.memory.get_memory()
        for block in m.get_content_blocks("tool_result")
    ]
    assert [r.id for r in results] == ["a", "b"]
    assert results[1].get_text().startswith("Error: FunctionNotFoundError")


async def test_max_iters_triggers_summary_without_tools() -> None:
    model = FakeChatModel([
        tool_response("get_weather", {"city": "A"}),
        tool_response("get_weather", {"city": "B"}, call_id="call_2"),
        text_response("Here is what I found so far."),
    ])
    agent = _agent(model, max_iters=2)

    reply = await agent(_user("weather?"))

    assert reply.get_text_content() == "Here is what I found so far."
    assert model.calls[2]["tools"] is None
    assert SUMMARY_HINT in str(model.calls[2]["messages"])


async def test_summary_falls_back_when_model_fails() -> None:
    model = FakeChatModel([tool_response("get_weather", {"city": "A"})])
    agent = _agent(model, max_iters=1)

    reply = await agent(_user("weather?"))

    assert reply.get_text_content() == "Maximum iterations (1) reached. Unable to generate summary."


def test_max_iters_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _agent(FakeChatModel([]), max_iters=0)


# ── 结构化输出 ──

class WeatherReport(BaseModel):
    city: str
    temperature: int


async def test_structured_output_retries_after_validation_failure() -> None:
    model = FakeChatModel([
        text_response("Let me think."),
        tool_response("generate_response", {"city": "Paris", "temperature": "warm"}),
        tool_response("generate_response", {"city": "Paris", "temperature": 21}, call_id="call_2"),
    ])
    agent = _agent(model)

    reply = await agent(_user("report"), structured_model=WeatherReport)

    assert reply.metadata == {"city": "Paris", "temperature": 21}
    assert json.loads(reply.get_text_content()) == {"city": "Paris", "temperature": 21}
    assert all(call["tool_choice"] == "required" for call in model.calls)
    assert STRUCTURED_REMINDER not in str(model.calls[0]["messages"])
    assert STRUCTURED_REMINDER in str(model.calls[1]["messages"])
    assert "Schema validation failed" in str([m.to_dict() for m in await agent.memory.get_memory()])
    assert not agent.toolkit.has_tool("generate_response")


async def test_structured_output_missing_raises() -> None:
    agent = _agent(FakeChatModel([text_response("no tool call")]), max_iters=1)

    with pytest.raises(RuntimeError, match="generate_response"):
        await agent(_user("report"), structured_model=WeatherReport)

    assert not agent.is_running
    assert not agent.toolkit.has_tool("generate_response")


# ── 钩子 ──

async def test_hooks_run_in_priority_order_with_system_hooks() -> None:
    order: list[str] = []
    AgentBase.register_system_hook(Recorder("system", 5, order))
    agent = _agent(
        FakeChatModel([text_response("hi")]),
        hooks=[Recorder("late", 200, order), Recorder("early", 10, order), Recorder("tie", 200, order)],
    )

    await agent(_user("hello"))

    assert order == ["system", "early", "late", "tie"]


async def test_post_call_hook_can_replace_final_message() -> None:
    class Override(Hook):
        async def on_event(self, event):
            if isinstance(event, PostCallEvent):
                event.final_message = Msg(event.agent.name, "overridden", "assistant")
            return event

    agent = _agent(FakeChatModel([text_response("original")]), hooks=[Override()])

    reply = await agent(_user("hello"))

    assert reply.get_text_content() == "overridden"


async def test_pre_acting_hook_can_rewrite_tool_input() -> None:
    class Redirect(Hook):
        async def on_event(self, event):
            if isinstance(event, PreActingEvent):
                event.tool_use = event.tool_use.model_copy(update={"input": {"city": "Berlin"}})
            return event

    model = FakeChatModel([tool_response("get_weather", {"city": "Paris"}), text_response("ok")])
    agent = _agent(model, hooks=[Redirect()])

    await agent(_user("weather?"))

    assert weather_calls == ["Berlin"]


async def test_stop_agent_skips_tool_execution() -> None:
    class NeedsApproval(Hook):
        async def on_event(self, event):
            if isinstance(event, PostReasoningEvent) and event.reasoning_message.get_content_blocks("tool_use"):
                event.stop_agent = True
            return event

    model = FakeChatModel([tool_response("get_weather", {"city": "Paris"})])
    agent = _agent(model, hooks=[NeedsApproval()])

    reply = await agent(_user("weather?"))

    assert reply.get_content_blocks("tool_use")[0].name == "get_weather"
    assert weather_calls == []


async def test_errors_are_reported_to_hooks_and_reraised() -> None:
    errors: list[BaseException] = []

    class Failing(FakeChatModel):
        async def _call(self, messages, tools, tool_choice, options):
            raise ModelError("boom")

    class Catcher(Hook):
        async def on_event(self, event):
            if isinstance(event, ErrorEvent):
                errors.append(event.error)
            return event

    agent = _agent(Failing([]), hooks=[Catcher()])

    with pytest.raises(ModelError):
        await agent(_user("hello"))

    assert isinstance(errors[0], ModelError)
    assert not agent.is_running


# ── 中断与并发 ──

async def test_interrupt_fills_unanswered_tool_calls() -> None:
    class InterruptAfterReasoning(Hook):
        async def on_event(self, event):
            if isinstance(event, PostReasoningEvent):
                event.agent.interrupt()
            return event

    agent = _agent(
        FakeChatModel([tool_response("get_weather", {"city": "Paris"})]),
        hooks=[InterruptAfterReasoning()],
    )

    reply = await agent(_user("weather?"))

    assert reply.get_text_content() == INTERRUPT_REPLY
    assert reply.metadata == {"interrupted": True}
    assert weather_calls == []
    memory = await agent.memory.get_memory()
    filled = memory[-2].get_content_blocks("tool_result")[0]
    assert (filled.id, filled.get_text()) == ("call_1", TOOL_INTERRUPTED)
    assert memory[-1].id == reply.id


async def test_interrupt_during_summary_is_not_swallowed() -> None:
    class InterruptWhileSummarizing(Hook):
        def __init__(self):
            self.acted = False

        async def on_event(self, event):
            if isinstance(event, PostActingEvent):
                self.acted = True
            elif isinstance(event, ReasoningChunkEvent) and self.acted:
                event.agent.interrupt()
            return event

    model = FakeChatModel(
        [tool_response("get_weather", {"city": "A"}), text_response("Partial summary")],
        stream=True,
    )
    agent = _agent(model, max_iters=1, hooks=[InterruptWhileSummarizing()])

    reply = await agent(_user("weather?"))

    assert reply.metadata == {"interrupted": True}
    assert len(model.calls) == 2
    memory = await agent.memory.get_memory()
    texts = [m.get_text_content() for m in memory]
    assert "Maximum iterations (1) reached. Unable to generate summary." not in texts
    assert "Partial summary" not in texts
    assert memory[-1].id == reply.id


async def test_interrupt_outside_a_call_is_ignored() -> None:
    agent = _agent(FakeChatModel([text_response("hello")]))

    agent.interrupt()
    reply = await agent(_user("hi"))

    assert reply.get_text_content() == "hello"


async def test_concurrent_calls_are_rejected() -> None:
    class BlockingModel(FakeChatModel):
        def __init__(self, responses):
            super().__init__(responses)
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def _call(self, messages, tools, tool_choice, options):
            self.started.set()
            await self.release.wait()
            return await super()._call(messages, tools, tool_choice, options)

    model = BlockingModel([text_response("done")])
    agent = _agent(model)

    task = asyncio.create_task(agent(_user("first")))
    await model.started.wait()
    with pytest.raises(RuntimeError, match="Agent is still running"):
        await agent(_user("second"))
    model.release.set()

    assert (await task).get_text_content() == "done"


# ── 流式 ──

async def test_stream_yields_chunks_tool_results_and_final_reply() -> None:
    model = FakeChatModel(
        [tool_response("get_weather", {"city": "Paris"}, text="Checking"), text_response("Sunny")],
        stream=True,
    )
    agent = _agent(model)

    events = [event async for event in agent.stream(_user("weather?"))]

    finals = [e.type for e in events if e.is_last]
    assert finals == ["reasoning", "tool_result", "reasoning", "agent_result"]
    chunks = [e for e in events if not e.is_last]
    assert chunks[0].msg.get_text_content() == "C"
    assert all(c.type == "reasoning" for c in chunks)
    assert events[-1].msg.get_text_content() == "Sunny"
    assert agent._hooks == []


# ── 计划 / RAG / Skill 集成 ──

async def test_plan_notebook_tools_and_hint() -> None:
    notebook = PlanNotebook()
    model = FakeChatModel([
        tool_response("create_plan", {
            "name": "trip",
            "description": "plan a trip",
            "expected_outcome": "an itinerary",
            "subtasks": [{"name": "book", "description": "book hotel", "expected_outcome": "booked"}],
        }),
        text_response("Plan created."),
    ])
    agent = _agent(model, plan_notebook=notebook)

    await agent(_user("plan my trip"))

    assert notebook.current_plan.name == "trip"
    assert "create_plan" in _tool_names(model.calls[0])
    assert "'create_plan'" in str(model.calls[0]["messages"][-1])
    assert "The current plan:" in str(model.calls[1]["messages"][-1])
    assert not any(m.metadata.get("is_hint") for m in await agent.memory.get_memory())


async def _knowledge() -> SimpleKnowledge:
    knowledge = SimpleKnowledge(FakeEmbedding(["redis", "milvus"]), InMemoryStore())
    await knowledge.add_documents(await TextReader(chunk_size=40)(
        "Redis is an in-memory data store.\n\nMilvus is a vector database."
    ))
    return knowledge


async def test_generic_rag_injects_knowledge() -> None:
    model = FakeChatModel([text_response("Redis stores data in memory.")])
    agent = _agent(model, knowledge=await _knowledge())

    await agent(_user("what is redis?"))

    injected = model.calls[0]["messages"][1]
    assert injected["role"] == "system"
    assert "Redis is an in-memory data store." in str(injected["content"])


async def test_agentic_rag_registers_retrieval_tool() -> None:
    model = FakeChatModel([
        tool_response("retrieve_knowledge", {"query": "milvus"}),
        text_response("Milvus is a vector database."),
    ])
    agent = _agent(model, knowledge=await _knowledge(), rag_mode="agentic")

    await agent(_user("what is milvus?"))

    assert "retrieve_knowledge" in _tool_names(model.calls[0])
    tool_msg = (await agent.memory.get_memory())[2]
    assert "Milvus is a vector database." in tool_msg.get_content_blocks("tool_result")[0].get_text()


async def test_unknown_rag_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        _agent(FakeChatModel([]), knowledge=await _knowledge(), rag_mode="hybrid")


def test_skill_box_extends_system_prompt_and_tools() -> None:
    box = SkillBox()
    box.register_skill(AgentSkill(name="pdf", description="Work with PDF files", skill_content="..."))

    agent = _agent(FakeChatModel([]), skill_box=box)

    assert agent.build_sys_prompt().startswith("You are a helpful assistant.\n\n# Agent Skills")
    assert agent.toolkit.has_tool("load_skill_through_path")


# ── 状态 ──

async def test_agent_state_round_trip() -> None:
    agent = _agent(FakeChatModel([text_response("hi there")]))
    await agent(_user("hello"))
    agent.sys_prompt = "Updated prompt."

    restored = _agent(FakeChatModel([]))
    restored.load_state_dict(agent.state_dict())

    assert [m.get_text_content() for m in await restored.memory.get_memory()] == ["hello", "hi there"]
    assert restored.sys_prompt == "Updated prompt."
    assert restored.agent_id == agent.agent_id


async def test_observe_adds_to_memory() -> None:
    agent = _agent(FakeChatModel([]))

    await agent.observe(Msg("bob", "hello everyone", "assistant"))

    assert (await agent.memory.size()) == 1


# ── UserAgent ──

async def test_user_agent_reads_sync_and_async_input(capsys) -> None:
    prompts: list[str] = []

    def sync_input(prompt: str) -> str:
        prompts.append(prompt)
        return "  hello  "

    async def async_input(prompt: str) -> str:
        return "bye"

    user = UserAgent("alice", input_func=sync_input)
    first = await user(Msg("assistant", [TextBlock(text="How can I help?")], "assistant"))
    user.override_input_func(async_input)
    second = await user()

    assert (first.name, first.role, first.get_text_content()) == ("alice", "user", "hello")
    assert second.get_text_content() == "bye"
    assert prompts == ["alice: "]
    assert "assistant: How can I help?" in capsys.readouterr().out
