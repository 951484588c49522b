from __future__ import annotations

import asyncio
import threading
import time

import pytest

from agentscope_core.agent import ReActAgent
from agentscope_core.formatter import OpenAIChatFormatter
from agentscope_core.message import ToolUseBlock
from agentscope_core.tool import FunctionTool, SubAgentTool, Toolkit
from agentscope_core.tool.file_tools import insert_text_file, view_text_file, write_text_file
from agentscope_core.tool.function_tool import parse_docstring

from tests._fakes import FakeChatModel, text_response, tool_response


def get_weather(city: str, unit: str = "celsius") -> str:
    """Get the current weather of a city.

    Args:
        city (str): The name of the city.
        unit (str): The temperature unit,
            either celsius or fahrenheit.
    """
    return f"{city}: 20 {unit}"


async def slow_tool(seconds: float) -> str:
    """Sleep for a while.

    Args:
        seconds (float): How long to sleep.
    """
    await asyncio.sleep(seconds)
    return "done"


def failing_tool() -> str:
    """Always fails."""
    raise RuntimeError("disk full")


def streaming_tool(count: int):
    """Yield progress.

    Args:
        count (int): Number of chunks.
    """
    for i in range(count):
        yield f"chunk {i}"


def blocking_tool(seconds: float) -> str:
    """Block the calling thread for a while.

    Args:
        seconds (float): How long to block.
    """
    time.sleep(seconds)
    return "done"


def blocking_stream(count: int, seconds: float):
    """Yield chunks slowly.

    Args:
        count (int): Number of chunks.
        seconds (float): Delay before each chunk.
    """
    for i in range(count):
        time.sleep(seconds)
        yield f"chunk {i}"


def _use(name: str, **arguments) -> ToolUseBlock:
    return ToolUseBlock(id=f"call_{name}", name=name, input=arguments)


# ── docstring / schema ──

def test_parse_docstring_reads_args_with_continuation_lines() -> None:
    description, params = parse_docstring(get_weather.__doc__)

    assert description == "Get the current weather of a city."
    assert params == {
        "city": "The name of the city.",
        "unit": "The temperature unit, either celsius or fahrenheit.",
    }


def test_function_tool_schema_is_openai_function_format() -> None:
    schema = FunctionTool(get_weather).schema()

    assert schema["type"] == "function"
    function = schema["function"]
    assert function["name"] == "get_weather"
    assert function["description"] == "Get the current weather of a city."
    assert function["parameters"]["required"] == ["city"]
    assert function["parameters"]["properties"]["city"] == {
        "type": "string",
        "description": "The name of the city.",
    }
    assert function["parameters"]["properties"]["unit"]["default"] == "celsius"


def test_preset_kwargs_are_hidden_from_schema() -> None:
    tool = FunctionTool(get_weather, preset_kwargs={"unit": "kelvin"})

    assert "unit" not in tool.schema()["function"]["parameters"]["properties"]


# ── Toolkit 执行 ──

async def test_call_tool_function_returns_text_result() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(get_weather)

    response = await toolkit.call_tool_function(_use("get_weather", city="Paris"))

    assert response.get_text() == "Paris: 20 celsius"
    assert not response.is_error


async def test_preset_kwargs_are_injected() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(get_weather, preset_kwargs={"unit": "kelvin"})

    response = await toolkit.call_tool_function(_use("get_weather", city="Oslo"))

    assert response.get_text() == "Oslo: 20 kelvin"


async def test_unknown_tool_returns_function_not_found() -> None:
    response = await Toolkit().call_tool_function(_use("missing"))

    assert response.is_error
    assert response.get_text() == "Error: FunctionNotFoundError: Cannot find the function named missing"


async def test_invalid_arguments_become_error_result() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(get_weather)

    response = await toolkit.call_tool_function(_use("get_weather"))

    assert response.is_error
    assert "Invalid arguments for tool 'get_weather'" in response.get_text()


async def test_tool_exception_becomes_error_result() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(failing_tool)

    response = await toolkit.call_tool_function(_use("failing_tool"))

    assert response.get_text() == "Error: RuntimeError: disk full"


async def test_tool_timeout_becomes_error_result() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(slow_tool, timeout_ms=10)

    response = await toolkit.call_tool_function(_use("slow_tool", seconds=1))

    assert response.is_error
    assert "timed out after 10ms" in response.get_text()


async def test_generator_tool_returns_last_chunk() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(streaming_tool)

    response = await toolkit.call_tool_function(_use("streaming_tool", count=3))

    assert response.get_text() == "chunk 2"


async def test_sync_tool_timeout_becomes_error_result() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(blocking_tool, timeout_ms=100)

    start = time.monotonic()
    response = await toolkit.call_tool_function(_use("blocking_tool", seconds=0.5))

    assert response.is_error
    assert "timed out after 100ms" in response.get_text()
    assert time.monotonic() - start < 0.45


async def test_sync_generator_tool_timeout_becomes_error_result() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(blocking_stream, timeout_ms=100)

    response = await toolkit.call_tool_function(_use("blocking_stream", count=5, seconds=0.1))

    assert response.is_error
    assert "timed out after 100ms" in response.get_text()


async def test_sync_tools_run_off_the_event_loop_thread() -> None:
    seen: list[int] = []

    def whoami() -> str:
        """Report the executing thread."""
        seen.append(threading.get_ident())
        return "ok"

    toolkit = Toolkit()
    toolkit.register_tool_function(whoami)

    response = await toolkit.call_tool_function(_use("whoami"))

    assert response.get_text() == "ok"
    assert seen and seen[0] != threading.get_ident()


async def test_parallel_sync_tool_calls_overlap() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(blocking_tool)
    uses = [ToolUseBlock(id=str(i), name="blocking_tool", input={"seconds": 0.3}) for i in range(3)]

    start = time.monotonic()
    parallel = await toolkit.call_tools(uses)
    parallel_elapsed = time.monotonic() - start

    start = time.monotonic()
    sequential = await toolkit.call_tools(uses, parallel=False)
    sequential_elapsed = time.monotonic() - start

    assert [r.get_text() for r in parallel] == ["done"] * 3
    assert [r.get_text() for r in sequential] == ["done"] * 3
    assert parallel_elapsed < 0.8
    assert sequential_elapsed >= 0.9


async def test_call_tools_keeps_order() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(get_weather)
    uses = [
        ToolUseBlock(id="1", name="get_weather", input={"city": "A"}),
        ToolUseBlock(id="2", name="get_weather", input={"city": "B"}),
    ]

    parallel = await toolkit.call_tools(uses)
    sequential = await toolkit.call_tools(uses, parallel=False)

    assert [r.get_text() for r in parallel] == ["A: 20 celsius", "B: 20 celsius"]
    assert [r.get_text() for r in sequential] == ["A: 20 celsius", "B: 20 celsius"]


def test_duplicate_registration_is_rejected() -> None:
    toolkit = Toolkit()
    toolkit.register_tool_function(get_weather)

    with pytest.raises(ValueError, match="already registered"):
        toolkit.register_tool_function(get_weather)


# ── 工具分组 ──

async def test_inactive_group_tools_are_hidden_and_not_callable() -> None:
    toolkit = Toolkit()
    toolkit.create_tool_group("weather", "Weather tools", notes="Always report the unit.")
    toolkit.register_tool_function(get_weather, group_name="weather")

    assert toolkit.get_json_schemas() == []
    response = await toolkit.call_tool_function(_use("get_weather", city="Rome"))
    assert response.is_error

    toolkit.update_tool_groups(["weather"], active=True)

    assert [s["function"]["name"] for s in toolkit.get_json_schemas()] == ["get_weather"]
    assert toolkit.get_activated_notes() == "## About Tool Group 'weather'\nAlways report the unit."


def test_basic_group_cannot_be_removed() -> None:
    with pytest.raises(ValueError, match="basic"):
        Toolkit().remove_tool_groups(["basic"])


def test_removing_group_removes_its_tools() -> None:
    toolkit = Toolkit()
    toolkit.create_tool_group("weather", "Weather tools", active=True)
    toolkit.register_tool_function(get_weather, group_name="weather")

    toolkit.remove_tool_groups(["weather"])

    assert not toolkit.has_tool("get_weather")


async def test_meta_tool_activates_groups() -> None:
    toolkit = Toolkit()
    toolkit.create_tool_group("weather", "Weather tools", notes="Use metric units.")
    toolkit.register_tool_function(get_weather, group_name="weather")
    toolkit.register_meta_tool()

    schema = toolkit.get_tool("reset_equipped_tools").schema()
    assert "weather" in schema["function"]["parameters"]["properties"]

    response = await toolkit.call_tool_function(_use("reset_equipped_tools", weather=True))

    assert toolkit.get_active_groups() == ["basic", "weather"]
    assert "'weather'" in response.get_text()
    assert "Use metric units." in response.get_text()


def test_active_groups_round_trip_through_state() -> None:
    toolkit = Toolkit()
    toolkit.create_tool_group("weather", "Weather tools", active=True)
    state = toolkit.state_dict()

    restored = Toolkit()
    restored.create_tool_group("weather", "Weather tools")
    restored.load_state_dict(state)

    assert restored.get_active_groups() == ["basic", "weather"]


# ── 文件工具 ──

def test_file_tools_write_view_insert(tmp_path) -> None:
    path = str(tmp_path / "notes" / "a.txt")

    assert not write_text_file(path, "one\ntwo\nthree").is_error
    view = view_text_file(path, [2, 3])
    assert view.get_text().endswith("```\n2: two\n3: three\n```")

    insert_text_file(path, "one-and-half", 2)
    write_text_file(path, "TWO", [3, 3])

    assert (tmp_path / "notes" / "a.txt").read_text().splitlines() == ["one", "one-and-half", "TWO", "three"]


def test_file_tools_report_invalid_ranges(tmp_path) -> None:
    path = tmp_path / "a.txt"
    path.write_text("only\n")

    assert view_text_file(str(path), [2, 5]).is_error
    assert insert_text_file(str(path), "x", 5).is_error
    assert view_text_file(str(tmp_path / "missing.txt")).get_text().startswith("Error: ")


# ── 子智能体 ──

def _sub_agent_factory(responses):
    def factory():
        return ReActAgent(
            name="researcher",
            sys_prompt="You research things.",
            model=FakeChatModel(list(responses)),
            formatter=OpenAIChatFormatter(),
        )

    return factory


async def test_sub_agent_tool_returns_agent_reply() -> None:
    tool = SubAgentTool(_sub_agent_factory([text_response("Found 3 papers")]), "researcher", "Research")

    response = await tool.execute({"task": "find papers"})

    assert tool.name == "call_researcher"
    assert response.get_text() == "Found 3 papers"
    assert response.metadata["agent"] == "researcher"


async def test_sub_agent_tool_refuses_when_depth_exceeded() -> None:
    tool = SubAgentTool(_sub_agent_factory([text_response("x")]), "researcher", "Research", max_depth=0)

    response = await tool.execute({"task": "find papers"})

    assert response.is_error
    assert "depth limit" in response.get_text()


async def test_nested_sub_agents_stop_at_max_depth() -> None:
    inner = SubAgentTool(_sub_agent_factory([text_response("inner")]), "inner", "Inner", max_depth=1)

    def outer_factory():
        toolkit = Toolkit()
        toolkit.register_tool(inner)
        return ReActAgent(
            name="outer",
            sys_prompt="",
            model=FakeChatModel([tool_response("call_inner", {"task": "go"}), text_response("outer done")]),
            formatter=OpenAIChatFormatter(),
            toolkit=toolkit,
        )

    outer = SubAgentTool(outer_factory, "outer", "Outer", max_depth=1)
    toolkit = Toolkit()
    toolkit.register_tool(outer)

    response = await toolkit.call_tool_function(ToolUseBlock(id="1", name="call_outer", input={"task": "go"}))

    assert response.get_text() == "outer done"
