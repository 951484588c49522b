from __future__ import annotations

from agentscope_core.message import ImageBlock, Msg, TextBlock, ToolResultBlock, ToolUseBlock, URLSource


def test_string_content_is_viewed_as_text_block() -> None:
    msg = Msg("alice", "hello", "user")

    blocks = msg.get_content_blocks()
    assert len(blocks) == 1
    assert blocks[0].type == "text"
    assert msg.get_text_content() == "hello"
    assert msg.get_content_blocks("image") == []


def test_text_content_joins_text_blocks_only() -> None:
    msg = Msg(
        "bot",
        [
            TextBlock(text="first"),
            ToolUseBlock(id="c1", name="search", input={"q": "x"}),
            TextBlock(text="second"),
        ],
        "assistant",
    )

    assert msg.get_text_content() == "first\nsecond"
    assert msg.has_content_blocks("tool_use")
    assert msg.first_block("tool_use").name == "search"


def test_round_trip_through_dict_keeps_block_types() -> None:
    msg = Msg(
        "bot",
        [TextBlock(text="look"), ImageBlock(source=URLSource(url="https://x/cat.png"))],
        "assistant",
        metadata={"k": 1},
    )

    restored = Msg.from_dict(msg.to_dict())

    assert restored == msg
    assert isinstance(restored.content[1], ImageBlock)


def test_tool_result_wraps_plain_text_output() -> None:
    block = ToolResultBlock(id="c1", name="search", output="done")

    assert block.output == [TextBlock(text="done")]
    assert block.get_text() == "done"


def test_tool_result_error_is_prefixed_and_flagged() -> None:
    block = ToolResultBlock.error("boom", id="c1", name="search")

    assert block.get_text() == "Error: boom"
    assert block.metadata["success"] is False


def test_messages_get_unique_ids() -> None:
    assert Msg("a", "x", "user").id != Msg("a", "x", "user").id
