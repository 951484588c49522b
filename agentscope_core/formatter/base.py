"""
格式化器基类：把 Msg 列表转换为各模型供应商的请求消息格式

公共能力：
- 工具结果转文本（多模态输出降级为文字引用）
- 媒体数据源转 URL / data URI
- 多智能体对话分组：连续的普通对话归为 agent_message，
  工具调用及其结果归为 tool_sequence
"""

import time
from abc import ABC, abstractmethod

from agentscope_core.message import Msg, ToolResultBlock
from agentscope_core.message.blocks import MEDIA_BLOCK_TYPES, Base64Source, URLSource


def source_to_url(source: URLSource | Base64Source) -> str:
    """URL 原样返回，Base64 转为 data URI"""
    if isinstance(source, URLSource):
        return source.url
    return source.to_data_uri()


def tool_result_to_text(block: ToolResultBlock) -> str:
    """工具结果转纯文本：文本块换行拼接，多模态块降级为引用"""
    parts: list[str] = []
    for item in block.output:
        if item.type == "text":
            parts.append(item.text)
        elif isinstance(item.source, URLSource):
            parts.append(f"[{item.type}] {item.source.url}")
        else:
            parts.append(f"[{item.type}] ({item.source.media_type}, base64 data)")
    return "\n".join(parts)


def fallback_tool_call_id() -> str:
    """工具调用缺少 id 时的兜底 id"""
    return f"tool_call_{int(time.time() * 1000)}"


def is_tool_related(msg: Msg) -> bool:
    """工具调用 / 工具结果消息"""
    return (
        msg.role == "tool"
        or msg.has_content_blocks("tool_use")
        or msg.has_content_blocks("tool_result")
    )


def has_media(msg: Msg) -> bool:
    return any(b.type in MEDIA_BLOCK_TYPES for b in msg.get_content_blocks())


def group_messages(msgs: list[Msg]) -> list[tuple[str, list[Msg]]]:
    """按 agent_message / tool_sequence 对连续消息分组"""
    groups: list[tuple[str, list[Msg]]] = []
    for msg in msgs:
        kind = "tool_sequence" if is_tool_related(msg) else "agent_message"
        if groups and groups[-1][0] == kind:
            groups[-1][1].append(msg)
        else:
            groups.append((kind, [msg]))
    return groups


class FormatterBase(ABC):
    """格式化器抽象基类"""

    @abstractmethod
    def format(self, msgs: list[Msg]) -> list[dict]:
        """Msg 列表 → 供应商消息列表"""
        ...

    def format_tools(self, schemas: list[dict]) -> list[dict]:
        """工具 schema 转换，默认即 OpenAI function calling 格式"""
        return schemas


class MultiAgentFormatterBase(FormatterBase):
    """
    多智能体格式化器：

    多个具名智能体的发言会被合并为一条 user 消息，用 <history></history>
    包裹，每行格式为 "name: text"；工具调用序列交给对应的单聊格式化器处理。
    """

    conversation_history_prompt: str = (
        "# Conversation History\n"
        "The content between <history></history> tags contains your conversation history\n"
    )

    def __init__(self, chat_formatter: FormatterBase, conversation_history_prompt: str | None = None):
        self._chat = chat_formatter
        if conversation_history_prompt is not None:
            self.conversation_history_prompt = conversation_history_prompt

    def format(self, msgs: list[Msg]) -> list[dict]:
        formatted: list[dict] = []

        # 开头的 system 消息原样透传
        start = 0
        while start < len(msgs) and msgs[start].role == "system" and not is_tool_related(msgs[start]):
            formatted.extend(self._chat.format([msgs[start]]))
            start += 1

        is_first = True
        for kind, group in group_messages(msgs[start:]):
            if kind == "tool_sequence":
                formatted.extend(self._chat.format(group))
            else:
                formatted.extend(self._format_agent_message(group, is_first))
                is_first = False
        return formatted

    def format_tools(self, schemas: list[dict]) -> list[dict]:
        return self._chat.format_tools(schemas)

    def _history_text(self, group: list[Msg], is_first: bool) -> tuple[str, list]:
        """拼接历史文本，同时收集多模态块"""
        lines: list[str] = []
        media: list = []
        for msg in group:
            for block in msg.get_content_blocks():
                if block.type == "text":
                    lines.append(f"{msg.name}: {block.text}")
                elif block.type == "tool_result":
                    lines.append(
                        f"{msg.name} ({block.name}): "
                        f"{tool_result_to_text(block) or '[Empty tool result]'}"
                    )
                elif block.type in MEDIA_BLOCK_TYPES:
                    media.append(block)

        prefix = self.conversation_history_prompt if is_first else ""
        text = prefix + "<history>\n" + "\n".join(lines) + "\n</history>"
        return text, media

    @abstractmethod
    def _format_agent_message(self, group: list[Msg], is_first: bool) -> list[dict]:
        ...
