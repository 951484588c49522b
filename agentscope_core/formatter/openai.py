"""
OpenAI Chat Completions 消息格式化器
"""

import json

import structlog

from agentscope_core.formatter.base import (
    FormatterBase,
    MultiAgentFormatterBase,
    fallback_tool_call_id,
    source_to_url,
    tool_result_to_text,
)
from agentscope_core.message import Msg
from agentscope_core.message.blocks import Base64Source

log = structlog.get_logger()


def tool_call_arguments(block) -> str:
    """优先使用模型原始参数字符串，保证回放时与模型输出一致"""
    if block.raw_input:
        return block.raw_input
    return json.dumps(block.input, ensure_ascii=False)


class OpenAIChatFormatter(FormatterBase):
    """单聊格式化：user / assistant / system / tool 四类消息"""

    def format(self, msgs: list[Msg]) -> list[dict]:
        formatted: list[dict] = []
        for msg in msgs:
            tool_results = msg.get_content_blocks("tool_result")
            if tool_results:
                for block in tool_results:
                    formatted.append({
                        "role": "tool",
                        "tool_call_id": block.id or fallback_tool_call_id(),
                        "content": tool_result_to_text(block),
                    })
                continue

            if msg.role == "system":
                formatted.append({"role": "system", "content": msg.get_text_content()})
            elif msg.role == "assistant":
                formatted.append(self._format_assistant(msg))
            else:
                formatted.append(self._format_user(msg))
        return formatted

    def _format_assistant(self, msg: Msg) -> dict:
        message: dict = {"role": "assistant", "name": msg.name}

        # 没有文本时显式传 null（只有工具调用或只有思考内容）
        text = "\n".join(b.text for b in msg.get_content_blocks("text"))
        message["content"] = text or None

        thinking = msg.first_block("thinking")
        if thinking is not None and thinking.thinking:
            message["reasoning_content"] = thinking.thinking

        tool_uses = msg.get_content_blocks("tool_use")
        if tool_uses:
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
        return message

    def _format_user(self, msg: Msg) -> dict:
        blocks = [b for b in msg.get_content_blocks() if b.type != "thinking"]
        if all(b.type == "text" for b in blocks):
            return {
                "role": "user",
                "name": msg.name,
                "content": "\n".join(b.text for b in blocks),
            }
        return {"role": "user", "name": msg.name, "content": self._content_parts(blocks)}

    @staticmethod
    def _content_parts(blocks: list) -> list[dict]:
        parts: list[dict] = []
        for block in blocks:
            if block.type == "text":
                parts.append({"type": "text", "text": block.text})
            elif block.type == "image":
                parts.append({"type": "image_url", "image_url": {"url": source_to_url(block.source)}})
            elif block.type == "audio":
                if isinstance(block.source, Base64Source):
                    parts.append({
                        "type": "input_audio",
                        "input_audio": {
                            "data": block.source.data,
                            "format": block.source.media_type.split("/")[-1],
                        },
                    })
                else:
                    # OpenAI 仅接受 base64 音频，URL 降级为文字引用
                    log.debug("音频 URL 无法直接传入 OpenAI，降级为文本", url=block.source.url)
                    parts.append({"type": "text", "text": f"[audio] {block.source.url}"})
            elif block.type == "video":
                parts.append({"type": "video_url", "video_url": {"url": source_to_url(block.source)}})
        return parts


class OpenAIMultiAgentFormatter(MultiAgentFormatterBase):
    """多智能体格式化：对话历史合并为单条 user 消息"""

    def __init__(self, conversation_history_prompt: str | None = None):
        super().__init__(OpenAIChatFormatter(), conversation_history_prompt)

    def _format_agent_message(self, group: list[Msg], is_first: bool) -> list[dict]:
        text, media = self._history_text(group, is_first)
        images = [b for b in media if b.type == "image"]
        if not images:
            return [{"role": "user", "content": text}]

        parts: list[dict] = [{"type": "text", "text": text}]
        for block in images:
            parts.append({"type": "image_url", "image_url": {"url": source_to_url(block.source)}})
        return [{"role": "user", "content": parts}]
