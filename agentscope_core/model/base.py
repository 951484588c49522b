"""
模型抽象：统一 OpenAI / DashScope / Ollama 三类后端的调用方式

- 非流式：await model(messages) → ChatResponse
- 流式：await model(messages) → AsyncGenerator[ChatResponse]，每个 chunk 为累计结果
"""

import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, Field

from agentscope_core.message import TextBlock, ThinkingBlock, ToolUseBlock
from agentscope_core.model.json_repairer import parse_tool_arguments
from agentscope_core.observability.metrics import LLM_CALL_DURATION, LLM_CALL_TOTAL

log = structlog.get_logger()

TOOL_CHOICE_MODES = ("auto", "none", "required")


@dataclass
class ChatUsage:
    """token 用量"""

    input_tokens: int = 0
    output_tokens: int = 0
    time: float = 0.0  # 调用耗时（秒）


@dataclass
class ChatResponse:
    """模型返回：内容块列表（thinking / text / tool_use）"""

    content: list = field(default_factory=list)
    usage: ChatUsage | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    metadata: dict[str, Any] = field(default_factory=dict)

    def get_text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    def get_tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]


class GenerateOptions(BaseModel):
    """采样参数，None 表示使用服务端默认"""

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    extra: dict[str, Any] = Field(default_factory=dict)  # 透传给具体后端的额外参数


class ChatModelBase(ABC):
    """聊天模型抽象基类"""

    provider: str = "base"

    def __init__(self, model_name: str, stream: bool = False):
        self.model_name = model_name
        self.stream = stream

    async def __call__(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
        options: GenerateOptions | None = None,
    ) -> ChatResponse | AsyncGenerator[ChatResponse, None]:
        self._validate_tool_choice(tool_choice, tools)
        LLM_CALL_TOTAL.labels(model=self.model_name, provider=self.provider).inc()
        log.debug(
            "模型调用开始",
            provider=self.provider,
            model=self.model_name,
            msg_count=len(messages),
            tool_count=len(tools or []),
            stream=self.stream,
        )

        start = time.monotonic()
        if self.stream:
            return self._timed_stream(
                self._stream(messages, tools, tool_choice, options or GenerateOptions()),
                start,
            )

        response = await self._call(messages, tools, tool_choice, options or GenerateOptions())
        elapsed = time.monotonic() - start
        if response.usage is not None:
            response.usage.time = elapsed
        self._observe(elapsed, response)
        return response

    @abstractmethod
    async def _call(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
    ) -> ChatResponse:
        ...

    @abstractmethod
    def _stream(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
    ) -> AsyncGenerator[ChatResponse, None]:
        ...

    async def _timed_stream(
        self,
        chunks: AsyncGenerator[ChatResponse, None],
        start: float,
    ) -> AsyncGenerator[ChatResponse, None]:
        last: ChatResponse | None = None
        async for chunk in chunks:
            last = chunk
            yield chunk
        self._observe(time.monotonic() - start, last)

    def _observe(self, elapsed: float, response: ChatResponse | None) -> None:
        LLM_CALL_DURATION.labels(model=self.model_name, provider=self.provider).observe(elapsed * 1000)
        log.debug(
            "模型调用完成",
            provider=self.provider,
            model=self.model_name,
            duration_ms=int(elapsed * 1000),
            output_tokens=response.usage.output_tokens if response and response.usage else 0,
        )

    @staticmethod
    def _validate_tool_choice(tool_choice: str | None, tools: list[dict] | None) -> None:
        if tool_choice is None or tool_choice in TOOL_CHOICE_MODES:
            return
        names = {t.get("function", {}).get("name") for t in tools or []}
        if tool_choice not in names:
            raise ValueError(
                f"Invalid tool_choice '{tool_choice}'. Must be one of "
                f"{list(TOOL_CHOICE_MODES)} or an available tool name: {sorted(n for n in names if n)}"
            )


def build_content(
    thinking: str,
    text: str,
    tool_calls: list[dict],
) -> list:
    """按 thinking → text → tool_use 的顺序组装内容块

    tool_calls 元素格式：{"id", "name", "arguments"}，arguments 可为字符串或 dict。
    """
    content: list = []
    if thinking:
        content.append(ThinkingBlock(thinking=thinking))
    if text:
        content.append(TextBlock(text=text))
    for call in tool_calls:
        arguments = call.get("arguments")
        content.append(
            ToolUseBlock(
                id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                name=call.get("name", ""),
                input=parse_tool_arguments(arguments),
                raw_input=arguments if isinstance(arguments, str) else None,
            )
        )
    return content
