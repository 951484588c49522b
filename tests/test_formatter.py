from __future__ import annotations

import base64

from agentscope_core.formatter import (
    DashScopeChatFormatter,
    DashScopeMultiAgentFormatter,
    OllamaChatFormatter,
    OllamaMultiAgentFormatter,
    OpenAIChatFormatter,
    OpenAIMultiAgentFormatter,
)
from agentscope_core.message import (
    Base64Source,
    ImageBlock,
    Msg,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    URLSource,
)


def _tool_conversation() -> list[Msg]:
    return [
        Msg("system", "You are a helpful assistant.", "system"),
        Msg("user", "What's the weather?", "user"),
        Msg(
            "assistant",
            [
                ThinkingBlock(thinking="need the tool"),
                TextBlock(text="Let me check."),
                ToolUseBlock(id="call_1", name="get_weather", input={"city": "Paris"}),
            ],
            "assistant",
        ),
        Msg("system", [ToolResultBlock(id="call_1", name="get_weather", output="Sunny")], "tool"),
    ]


# ── OpenAI ──

def test_openai_formats_tool_conversation() -> None:
    formatted = OpenAIChatFormatter().format(_tool_conversation())

    assert formatted[0] == {"role": "system", "content": "You are a helpful assistant."}
    assert formatted[1] == {"role": "user", "name": "user", "content": "What's the weather?"}
    assistant = formatted[2]
    assert assistant["content"] == "Let me check."
    assert assistant["reasoning_content"] == "need the tool"
    assert assistant["tool_calls"] == [
        {
            "id": "call_1",
            "type": "function",
            "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
        }
    ]
    assert formatted[3] == {"role": "tool", "tool_call_id": "call_1", "content": "Sunny"}


def test_openai_replays_raw_tool_arguments() -> None:
    msg = Msg(
        "assistant",
        [ToolUseBlock(id="c", name="f", input={"a": 1}, raw_input='{"a":1}')],
        "assistant",
    )

    formatted = OpenAIChatFormatter().format([msg])

    assert formatted[0]["tool_calls"][0]["function"]["arguments"] == '{"a":1}'
    assert formatted[0]["content"] is None


def test_openai_thinking_only_assistant_sends_null_content() -> None:
    msg = Msg("assistant", [ThinkingBlock(thinking="pondering")], "assistant")

    formatted = OpenAIChatFormatter().format([msg])

    assert formatted == [
        {"role": "assistant", "name": "assistant", "content": None, "reasoning_content": "pondering"}
    ]


def test_openai_user_with_image_uses_content_parts() -> None:
    msg = Msg(
        "user",
        [
            TextBlock(text="describe"),
            ImageBlock(source=Base64Source(media_type="image/png", data="AAAA")),
        ],
        "user",
    )

    formatted = OpenAIChatFormatter().format([msg])

    assert formatted[0]["content"] == [
        {"type": "text", "text": "describe"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
    ]


def test_openai_multi_agent_merges_history() -> None:
    msgs = [
        Msg("system", "Game host", "system"),
        Msg("alice", "Hi", "assistant"),
        Msg("bob", "Hello", "assistant"),
    ]

    formatted = OpenAIMultiAgentFormatter().format(msgs)

    assert formatted[0] == {"role": "system", "content": "Game host"}
    assert len(formatted) == 2
    content = formatted[1]["content"]
    assert formatted[1]["role"] == "user"
    assert content.startswith("# Conversation History")
    assert "<history>\nalice: Hi\nbob: Hello\n</history>" in content


def test_multi_agent_keeps_tool_sequences_separate() -> None:
    msgs = [
        Msg("alice", "Let me search", "assistant"),
        Msg("bob", [ToolUseBlock(id="c1", name="search", input={})], "assistant"),
        Msg("system", [ToolResultBlock(id="c1", name="search", output="found")], "tool"),
        Msg("alice", "Great", "assistant"),
    ]

    formatted = OpenAIMultiAgentFormatter().format(msgs)

    assert [m["role"] for m in formatted] == ["user", "assistant", "tool", "user"]
    assert formatted[0]["content"].startswith("# Conversation History")
    # 只有第一段历史带有说明前缀
    assert formatted[3]["content"] == "<history>\nalice: Great\n</history>"


# ── DashScope ──

def test_dashscope_text_only_uses_string_content() -> None:
    formatted = DashScopeChatFormatter().format(_tool_conversation())

    assert formatted[1] == {"role": "user", "content": "What's the weather?"}
    assert formatted[2]["content"] == "Let me check."
    assert formatted[2]["tool_calls"][0]["function"]["name"] == "get_weather"
    assert formatted[3] == {
        "role": "tool",
        "tool_call_id": "call_1",
        "name": "get_weather",
        "content": "Sunny",
    }


def test_dashscope_switches_to_multimodal_when_any_media() -> None:
    msgs = [
        Msg("system", "sys", "system"),
        Msg("user", [TextBlock(text="what is it"), ImageBlock(source=URLSource(url="https://x/a.png"))], "user"),
    ]

    formatted = DashScopeChatFormatter().format(msgs)

    assert formatted[0]["content"] == [{"text": "sys"}]
    assert formatted[1]["content"] == [{"text": "what is it"}, {"image": "https://x/a.png"}]


def test_dashscope_multimodal_never_sends_empty_content() -> None:
    msgs = [
        Msg("assistant", [ToolUseBlock(id="c", name="f", input={})], "assistant"),
        Msg("user", [ImageBlock(source=URLSource(url="https://x/a.png"))], "user"),
    ]

    formatted = DashScopeChatFormatter().format(msgs)

    assert formatted[0]["content"] == [{"text": ""}]


def test_dashscope_multi_agent_history() -> None:
    formatted = DashScopeMultiAgentFormatter().format([Msg("alice", "Hi", "assistant")])

    assert formatted == [
        {
            "role": "user",
            "content": DashScopeMultiAgentFormatter.conversation_history_prompt
            + "<history>\nalice: Hi\n</history>",
        }
    ]


# ── Ollama ──

def test_ollama_tool_calls_use_object_arguments() -> None:
    formatted = OllamaChatFormatter().format(_tool_conversation())

    assert formatted[2]["tool_calls"] == [
        {"function": {"name": "get_weather", "arguments": {"city": "Paris"}}}
    ]
    assert formatted[3]["role"] == "tool"
    assert formatted[3]["name"] == "get_weather"


def test_ollama_reads_local_images_as_base64(tmp_path) -> None:
    image = tmp_path / "pic.png"
    image.write_bytes(b"\x89PNG")
    msg = Msg("user", [TextBlock(text="see"), ImageBlock(source=URLSource(url=str(image)))], "user")

    formatted = OllamaChatFormatter().format([msg])

    assert formatted[0]["images"] == [base64.b64encode(b"\x89PNG").decode("ascii")]


def test_ollama_skips_remote_images() -> None:
    msg = Msg("user", [TextBlock(text="see"), ImageBlock(source=URLSource(url="https://x/a.png"))], "user")

    formatted = OllamaChatFormatter().format([msg])

    assert "images" not in formatted[0]


def test_ollama_promotes_tool_result_images() -> None:
    block = ToolResultBlock(
        id="c1",
        name="screenshot",
        output=[ImageBlock(source=Base64Source(media_type="image/png", data="QUJD"))],
    )

    formatted = OllamaChatFormatter(promote_tool_result_images=True).format(
        [Msg("system", [block], "tool")]
    )

    assert formatted[0]["role"] == "tool"
    assert formatted[0]["content"] == "[image] (image/png, base64 data)"
    assert formatted[1]["role"] == "user"
    assert formatted[1]["images"] == ["QUJD"]
    assert "screenshot" in formatted[1]["content"]


def test_ollama_multi_agent_history() -> None:
    formatted = OllamaMultiAgentFormatter().format([Msg("alice", "Hi", "assistant")])

    assert formatted[0]["role"] == "user"
    assert formatted[0]["content"].endswith("<history>\nalice: Hi\n</history>")
