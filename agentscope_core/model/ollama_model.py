"""
Ollama 本地模型（httpx 直连 /api/chat）

流式响应为 NDJSON：每行一个 JSON 对象，最后一行 done=true 携带 token 统计。
"""

import json
from collections.abc import AsyncGenerator

import httpx
import structlog
from pydantic import BaseModel

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


class OllamaOptions(BaseModel):
    """Ollama 采样参数（对应请求体 options 字段）"""

    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    num_ctx: int | None = None
    num_predict: int | None = None
    repeat_penalty: float | None = None
    seed: int | None = None
    stop: list[str] | None = None

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)


class OllamaChatModel(ChatModelBase):
    """Ollama 聊天模型"""

    provider = "ollama"

    def __init__(
        self,
        model_name: str,
        host: str | None = None,
        stream: bool = False,
        options: OllamaOptions | None = None,
        keep_alive: str = "5m",
        enable_thinking: bool | None = None,
        timeout: int | None = None,
    ):
        super().__init__(model_name, stream)
        self.host = (host or settings.OLLAMA_BASE_URL).rstrip("/")
        self.options = options or OllamaOptions()
        self.keep_alive = keep_alive
        self.enable_thinking = enable_thinking
        self.timeout = timeout or (settings.LLM_STREAM_TIMEOUT if stream else settings.LLM_TIMEOUT)

    def _build_payload(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
        stream: bool,
    ) -> dict:
        merged = self.options.to_dict()
        if options.temperature is not None:
            merged["temperature"] = options.temperature
        if options.top_p is not None:
            merged["top_p"] = options.top_p
        if options.max_tokens is not None:
            merged["num_predict"] = options.max_tokens
        merged.update(options.extra)

        payload: dict = {
            "model": self.model_name,
            "messages": messages,
            "stream": stream,
            "keep_alive": self.keep_alive,
        }
        if merged:
            payload["options"] = merged
        if tools:
            payload["tools"] = tools
        if tool_choice and tool_choice != "auto":
            log.debug("Ollama 不支持 tool_choice，已忽略", tool_choice=tool_choice)
        if self.enable_thinking is not None:
            payload["think"] = self.enable_thinking
        return payload

    @staticmethod
    def _tool_calls(message: dict) -> list[dict]:
        return [
            {
                "id": tc.get("id"),
                "name": tc.get("function", {}).get("name", ""),
                "arguments": tc.get("function", {}).get("arguments") or {},
            }
            for tc in message.get("tool_calls") or []
        ]

    @staticmethod
    def _usage(data: dict) -> ChatUsage:
        return ChatUsage(
            input_tokens=data.get("prompt_eval_count", 0),
            output_tokens=data.get("eval_count", 0),
        )

    async def _call(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
    ) -> ChatResponse:
        payload = self._build_payload(messages, tools, tool_choice, options, stream=False)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{self.host}/api/chat", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            log.warning("Ollama 调用超时", model=self.model_name, timeout=self.timeout)
            raise ModelError(f"Ollama 调用超时（{self.timeout}s）: {e}", cause=e) from e
        except httpx.HTTPStatusError as e:
            log.error("Ollama API 错误", model=self.model_name, status=e.response.status_code)
            raise ModelError(f"Ollama 返回错误（HTTP {e.response.status_code}）: {e.response.text}", cause=e) from e
        except httpx.HTTPError as e:
            log.error("Ollama 连接失败", model=self.model_name, host=self.host, error=str(e))
            raise ModelError(f"Ollama 服务连接失败: {e}", cause=e) from e

        message = data.get("message") or {}
        return ChatResponse(
            content=build_content(
                message.get("thinking") or "",
                message.get("content") or "",
                self._tool_calls(message),
            ),
            usage=self._usage(data),
            metadata={"done_reason": data.get("done_reason", "stop")},
        )

    async def _stream(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
    ) -> AsyncGenerator[ChatResponse, None]:
        payload = self._build_payload(messages, tools, tool_choice, options, stream=True)

        text = ""
        thinking = ""
        tool_calls: list[dict] = []
        usage = ChatUsage()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream("POST", f"{self.host}/api/chat", json=payload) as resp:
                    if resp.status_code != 200:
                        body = (await resp.aread()).decode("utf-8", errors="replace")
                        log.error("Ollama 流式 API 错误", model=self.model_name, status=resp.status_code)
                        raise ModelError(f"Ollama 返回错误（HTTP {resp.status_code}）: {body}")

                    async for line in resp.aiter_lines():
                        if not line.strip():
                            continue
                        data = json.loads(line)
                        if data.get("error"):
                            raise ModelError(f"Ollama 流式输出错误: {data['error']}")

                        message = data.get("message") or {}
                        text += message.get("content") or ""
                        thinking += message.get("thinking") or ""
                        tool_calls.extend(self._tool_calls(message))
                        if data.get("done"):
                            usage = self._usage(data)

                        yield ChatResponse(
                            content=build_content(thinking, text, tool_calls),
                            usage=usage,
                        )
        except httpx.TimeoutException as e:
            log.warning("Ollama 流式调用超时", model=self.model_name, timeout=self.timeout)
            raise ModelError(f"Ollama 流式调用超时（{self.timeout}s）: {e}", cause=e) from e
        except httpx.HTTPError as e:
            log.error("Ollama 流式连接失败", model=self.model_name, host=self.host, error=str(e))
            raise ModelError(f"Ollama 流式连接失败: {e}", cause=e) from e
