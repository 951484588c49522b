"""
Ollama /api/chat 消息格式化器

Ollama 只接受 base64 图片（images 字段），工具参数为 JSON 对象而非字符串。
"""

import base64
from pathlib import Path
from urllib.parse import urlparse

import structlog

from agentscope_core.formatter.base import (
    FormatterBase,
    MultiAgentFormatterBase,
    fallback_tool_call_id,
    tool_result_to_text,
)
from agentscope_core.message import Msg
from agentscope_core.message.blocks import Base64Source

log = structlog.get_logger()


def image_to_base64(block) -> str | None:
    """图片块 → base64 字符串；远程 URL 不下载，返回 None"""
    source = block.source
    if isinstance(source, Base64Source):
        return source.data

    parsed = urlparse(source.url)
    if parsed.scheme in ("", "file"):
        path = Path(parsed.path if parsed.scheme == "file" else source.url)
        if path.is_file():
            return base64.b64encode(path.read_bytes()).decode("ascii")
        log.warning("本地图片不存在，已跳过", path=str(path))
        return None

    log.warning("Ollama 不支持远程图片 URL，已跳过", url=source.url)
    return None


class OllamaChatFormatter(FormatterBase):
    """Ollama 单聊格式化器"""

    def __init__(self, promote_tool_result_images: bool = False):
        # 部分视觉模型读不到 tool 消息里的图片，开启后会额外追加一条 user 消息携带图片
        self.promote_tool_result_images = promote_tool_result_images

    def format(self, msgs: list[Msg]) -> list[dict]:
        formatted: list[dict] = []
        for msg in msgs:
            for block in msg.get_content_blocks("tool_result"):
                formatted.append({
                    "role": "tool",
                    "tool_call_id": block.id or fallback_tool_call_id(),
                    "name": block.name,
                    "content": tool_result_to_text(block),
                })
                if self.promote_tool_result_images:
                    formatted.extend(self._promoted_images(block))

            blocks = [b for b in msg.get_content_blocks() if b.type != "tool_result"]
            if not blocks and msg.has_content_blocks("tool_result"):
                continue

            role = msg.role if msg.role in ("system", "assistant") else "user"
            message: dict = {
                "role": role,
                "content": "\n".join(b.text for b in blocks if b.type == "text"),
            }

            images = [img for img in (image_to_base64(b) for b in blocks if b.type == "image") if img]
            if images:
                message["images"] = images

            tool_uses = [b for b in blocks if b.type == "tool_use"]
            if role == "assistant" and tool_uses:
                message["tool_calls"] = [
                    {"function": {"name": b.name, "arguments": b.input}} for b in tool_uses
                ]
            formatted.append(message)
        return formatted

    @staticmethod
    def _promoted_images(block) -> list[dict]:
        images = [
            img
            for img in (image_to_base64(item) for item in block.output if item.type == "image")
            if img
        ]
        if not images:
            return []
        return [{
            "role": "user",
            "content": (
                "<system-info>The following images are returned by the tool "
                f"'{block.name}'.</system-info>"
            ),
            "images": images,
        }]


class OllamaMultiAgentFormatter(MultiAgentFormatterBase):
    """Ollama 多智能体格式化器"""

    def __init__(
        self,
        conversation_history_prompt: str | None = None,
        promote_tool_result_images: bool = False,
    ):
        super().__init__(
            OllamaChatFormatter(promote_tool_result_images=promote_tool_result_images),
            conversation_history_prompt,
        )

    def _format_agent_message(self, group: list[Msg], is_first: bool) -> list[dict]:
        text, media = self._history_text(group, is_first)
        message: dict = {"role": "user", "content": text}
        images = [img for img in (image_to_base64(b) for b in media if b.type == "image") if img]
        if images:
            message["images"] = images
        return [message]
