"""
OpenAI 协议模型：经 LiteLLM acompletion 调用，兼容所有 OpenAI 协议端点

外部服务随时可能挂，所有调用都有异常兜底，统一转为 ModelError。
"""

from collections.abc import AsyncGenerator

import structlog
from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    RateLimitError,
    Timeout,
)

from agentscope_core.config import get_settings
from agentscope_core.exceptions import ModelError
from agentscope_core.model.base import (
    ChatModelBase,
    ChatResponse,
    ChatUsage,
    GenerateOptions,
    build_content,
)

log = structlog.get_logger()
settings = get_settings()


class OpenAIChatModel(ChatModelBase):
    """OpenAI 协议兼容模型（DeepSeek、vLLM、DashScope 兼容模式等均可接入）"""

    provider = "openai"

    def __init__(
        self,
        model_name: str | None = None,
        api_key: str | None = None,
        api_base: str | None = None,
        stream: bool = False,
        timeout: int | None = None,
        generate_kwargs: dict | None = None,
    ):
        super().__init__(model_name or settings.LLM_DEFAULT_MODEL, stream)
        self.api_key = api_key or settings.LLM_API_KEY
        self.api_base = api_base or settings.LLM_API_BASE
        self.timeout = timeout or (settings.LLM_STREAM_TIMEOUT if stream else settings.LLM_TIMEOUT)
        self.generate_kwargs = generate_kwargs or {}

    def _build_kwargs(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
    ) -> dict:
        kwargs: dict = {
            "model": self.model_name,
            "messages": messages,
            "timeout": self.timeout,
            **self.generate_kwargs,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if tools:
            kwargs["tools"] = tools
            if tool_choice:
                kwargs["tool_choice"] = self._format_tool_choice(tool_choice)
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        kwargs.update(options.extra)
        return kwargs

    @staticmethod
    def _format_tool_choice(tool_choice: str) -> str | dict:
        if tool_choice in ("auto", "none", "required"):
            return tool_choice
        return {"type": "function", "function": {"name": tool_choice}}

    def _to_model_error(self, e: Exception) -> ModelError:
        """LiteLLM 异常统一映射为 ModelError"""
        if isinstance(e, ModelError):
            return e
        if isinstance(e, AuthenticationError):
            log.error("LLM 认证失败", model=self.model_name, error=str(e))
            return ModelError(f"LLM 认证失败，请检查 API Key 配置: {e}", cause=e)
        if isinstance(e, RateLimitError):
            log.warning("LLM 限流", model=self.model_name, error=str(e))
            return ModelError(f"LLM 请求限流，请稍后重试: {e}", cause=e)
        if isinstance(e, Timeout):
            log.warning("LLM 调用超时", model=self.model_name, timeout=self.timeout)
            return ModelError(f"LLM 调用超时（{self.timeout}s）: {e}", cause=e)
        if isinstance(e, APIConnectionError):
            log.error("LLM 连接失败", model=self.model_name, error=str(e))
            return ModelError(f"LLM 服务连接失败: {e}", cause=e)
        if isinstance(e, APIError):
            log.error("LLM API 错误", model=self.model_name, error=str(e))
            return ModelError(f"LLM API 返回错误: {e}", cause=e)
        log.error("LLM 未知异常", model=self.model_name, error=str(e), exc_info=True)
        return ModelError(f"LLM 调用异常: {e}", cause=e)

    async def _acompletion(self, kwargs: dict):
        try:
            return await acompletion(**kwargs)
        except Exception as e:
            raise self._to_model_error(e) from e

    async def _call(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
    ) -> ChatResponse:
        response = await self._acompletion(self._build_kwargs(messages, tools, tool_choice, options))

        message = response.choices[0].message
        tool_calls = [
            {
                "id": tc.id,
                "name": tc.function.name,
                "arguments": tc.function.arguments,
            }
            for tc in (getattr(message, "tool_calls", None) or [])
        ]
        usage = getattr(response, "usage", None)

        return ChatResponse(
            content=build_content(
                getattr(message, "reasoning_content", None) or "",
                message.content or "",
                tool_calls,
            ),
            usage=ChatUsage(
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
            ),
            id=getattr(response, "id", None) or ChatResponse().id,
            metadata={"finish_reason": response.choices[0].finish_reason or "stop"},
        )

    async def _stream(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
    ) -> AsyncGenerator[ChatResponse, None]:
        kwargs = self._build_kwargs(messages, tools, tool_choice, options)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}
        response = await self._acompletion(kwargs)

        text = ""
        thinking = ""
        usage = ChatUsage()
        # 工具调用片段按 index 缓冲
        tool_call_buffers: dict[int, dict] = {}

        try:
            async for chunk in response:
                chunk_usage = getattr(chunk, "usage", None)
                if chunk_usage:
                    usage = ChatUsage(
                        input_tokens=chunk_usage.prompt_tokens or 0,
                        output_tokens=chunk_usage.completion_tokens or 0,
                    )

                delta = chunk.choices[0].delta if chunk.choices else None
                if delta is None and not chunk_usage:
                    continue

                # include_usage 时最后一个 chunk 只有 usage，没有 choices
                if delta is not None:
                    if delta.content:
                        text += delta.content
                    reasoning = getattr(delta, "reasoning_content", None)
                    if reasoning:
                        thinking += reasoning

                    for tc in getattr(delta, "tool_calls", None) or []:
                        buf = tool_call_buffers.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                        if tc.id:
                            buf["id"] = tc.id
                        if tc.function:
                            if tc.function.name:
                                buf["name"] = tc.function.name
                            if tc.function.arguments:
                                buf["arguments"] += tc.function.arguments

                yield ChatResponse(
                    content=build_content(
                        thinking,
                        text,
                        [buf for _idx, buf in sorted(tool_call_buffers.items())],
                    ),
                    usage=usage,
                )
        except Exception as e:
            # 迭代中途断流同样转为 ModelError
            raise self._to_model_error(e) from e
