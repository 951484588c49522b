"""
DashScope 原生协议消息格式化器

- 纯文本会话：content 为字符串
- 只要任一消息包含图片/音频/视频，切换为多模态格式：
  所有 content 均为 [{"text"}, {"image"}, {"audio"}, {"video"}] 列表
"""

from agentscope_core.formatter.base import (
    FormatterBase,
    MultiAgentFormatterBase,
    fallback_tool_call_id,
    has_media,
    source_to_url,
    tool_result_to_text,
)
from agentscope_core.formatter.openai import tool_call_arguments
from agentscope_core.message import Msg


def _parts(blocks: list) -> list[dict]:
    parts: list[dict] = []
    for block in blocks:
        if block.type == "text":
            parts.append({"text": block.text})
        elif block.type in ("image", "audio", "video"):
            parts.append({block.type: source_to_url(block.source)})
    # DashScope 多模态接口不接受空 content
    return parts or [{"text": ""}]


class DashScopeChatFormatter(FormatterBase):
    """DashScope 单聊格式化器"""

    def format(self, msgs: list[Msg]) -> list[dict]:
        multimodal = any(has_media(m) for m in msgs)
        formatted: list[dict] = []

        for msg in msgs:
            tool_results = msg.get_content_blocks("tool_result")
            if tool_results:
                for block in tool_results:
                    text = tool_result_to_text(block)
                    formatted.append({
                        "role": "tool",
                        "tool_call_id": block.id or fallback_tool_call_id(),
                        "name": block.name,
                        "content": [{"text": text}] if multimodal else text,
                    })
                continue

            blocks = [b for b in msg.get_content_blocks() if b.type not in ("thinking", "tool_use")]
            if multimodal:
                content = _parts(blocks)
            else:
                content = "\n".join(b.text for b in blocks if b.type == "text")

            role = msg.role if msg.role in ("system", "assistant") else "user"
            message: dict = {"role": role, "content": content}

            tool_uses = msg.get_content_blocks("tool_use")
            if role == "assistant" and tool_uses:
                message["tool_calls"] = [
                    {
                        "id": block.id or fallback_tool_call_id(),
                        "type": "function",
                        "function": {
                            "name": block.name,
                            "arguments": tool_call_arguments(block),
                        },
                    }
                    for block in tool_uses
                ]
            formatted.append(message)
        return formatted


class DashScopeMultiAgentFormatter(MultiAgentFormatterBase):
    """DashScope 多智能体格式化器"""

    def __init__(self, conversation_history_prompt: str | None = None):
        super().__init__(DashScopeChatFormatter(), conversation_history_prompt)

    def _format_agent_message(self, group: list[Msg], is_first: bool) -> list[dict]:
        text, media = self._history_text(group, is_first)
        if not media:
            return [{"role": "user", "content": text}]
        return [{"role": "user", "content": [{"text": text}, *_parts(media)]}]
