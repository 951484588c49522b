"""
DashScope 原生协议模型（httpx 直连）

- 文本生成：POST {base}/api/v1/services/aigc/text-generation/generation
- 多模态生成：POST {base}/api/v1/services/aigc/multimodal-generation/generation
- 流式：请求头 X-DashScope-SSE: enable，增量输出（incremental_output）
"""

import json
from collections.abc import AsyncGenerator

import httpx
import structlog

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

TEXT_GENERATION_PATH = "/api/v1/services/aigc/text-generation/generation"
MULTIMODAL_GENERATION_PATH = "/api/v1/services/aigc/multimodal-generation/generation"


def is_multimodal_model(model_name: str) -> bool:
    name = model_name.lower()
    return "-vl" in name or name.startswith("qvq") or "omni" in name


def _message_text(content) -> str:
    """DashScope 多模态返回的 content 为 [{"text": ...}] 列表"""
    if isinstance(content, list):
        return "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content or ""


class DashScopeChatModel(ChatModelBase):
    """DashScope（通义千问）原生协议模型"""

    provider = "dashscope"

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        base_url: str | None = None,
        stream: bool = True,
        enable_thinking: bool | None = None,
        timeout: int | None = None,
        generate_kwargs: dict | None = None,
    ):
        super().__init__(model_name, stream)
        self.api_key = api_key or settings.DASHSCOPE_API_KEY
        self.base_url = (base_url or settings.DASHSCOPE_BASE_URL).rstrip("/")
        self.enable_thinking = enable_thinking
        self.timeout = timeout or (settings.LLM_STREAM_TIMEOUT if stream else settings.LLM_TIMEOUT)
        self.generate_kwargs = generate_kwargs or {}

    @property
    def endpoint(self) -> str:
        path = MULTIMODAL_GENERATION_PATH if is_multimodal_model(self.model_name) else TEXT_GENERATION_PATH
        return f"{self.base_url}{path}"

    def _headers(self, stream: bool) -> dict:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["X-DashScope-SSE"] = "enable"
            headers["Accept"] = "text/event-stream"
        return headers

    def _build_payload(
        self,
        messages: list[dict],
        tools: list[dict] | None,
        tool_choice: str | None,
        options: GenerateOptions,
        stream: bool,
    ) -> dict:
        if is_multimodal_model(self.model_name):
            # 多模态接口要求所有 content 都是列表
            messages = [
                {**m, "content": [{"text": m["content"]}]} if isinstance(m.get("content"), str) else m
                for m in messages
            ]

        parameters: dict = {"result_format": "message", **self.generate_kwargs}
        if stream:
            parameters["incremental_output"] = True
        if tools:
            parameters["tools"] = tools
            if tool_choice:
                parameters["tool_choice"] = self._format_tool_choice(tool_choice)
        if self.enable_thinking is not None:
            parameters["enable_thinking"] = self.enable_thinking
        if options.temperature is not None:
            parameters["temperature"] = options.temperature
        if options.max_tokens is not None:
            parameters["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            parameters["top_p"] = options.top_p
        parameters.update(options.extra)

        return {
            "model": self.model_name,
            "input": {"messages": messages},
            "parameters": parameters,
        }

    def _format_tool_choice(self, tool_choice: str) -> str | dict:
        if tool_choice in ("auto", "none"):
            return tool_choice
        if tool_choice == "required":
            log.warning("DashScope 不支持 tool_choice=required，降级为 auto", model=self.model_name)
            return "auto"
        return {"type": "function", "function": {"name": tool_choice}}

    @staticmethod
    def _raise_for_body(status_code: int, body: str) -> None:
        try:
            data = json.loads(body)
            detail = f"{data.get('code', '')}: {data.get('message', body)}"
        except json.JSONDecodeError:
            detail = body
        raise ModelError(f"DashScope 返回错误（HTTP {status_code}）{detail}")

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
                resp = await client.post(self.endpoint, json=payload, headers=self._headers(False))
        except httpx.TimeoutException as e:
            log.warning("DashScope 调用超时", model=self.model_name, timeout=self.timeout)
            raise ModelError(f"DashScope 调用超时（{self.timeout}s）: {e}", cause=e) from e
        except httpx.HTTPError as e:
            log.error("DashScope 连接失败", model=self.model_name, error=str(e))
            raise ModelError(f"DashScope 服务连接失败: {e}", cause=e) from e

        if resp.status_code != 200:
            log.error("DashScope API 错误", model=self.model_name, status=resp.status_code)
            self._raise_for_body(resp.status_code, resp.text)

        data = resp.json()
        choice = data["output"]["choices"][0]
        message = choice.get("message", {})
        tool_calls = [
            {
                "id": tc.get("id"),
                "name": tc.get("function", {}).get("name", ""),
                "arguments": tc.get("function", {}).get("arguments", ""),
            }
            for tc in message.get("tool_calls") or []
        ]
        usage = data.get("usage") or {}

        return ChatResponse(
            content=build_content(
                message.get("reasoning_content") or "",
                _message_text(message.get("content")),
                tool_calls,
            ),
            usage=ChatUsage(
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
            ),
            id=data.get("request_id") or ChatResponse().id,
            metadata={"finish_reason": choice.get("finish_reason") or "stop"},
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
        usage = ChatUsage()
        tool_call_buffers: dict[int, dict] = {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    "POST", self.endpoint, json=payload, headers=self._headers(True)
                ) as resp:
                    if resp.status_code != 200:
                        body = (await resp.aread()).decode("utf-8", errors="replace")
                        log.error("DashScope 流式 API 错误", model=self.model_name, status=resp.status_code)
                        self._raise_for_body(resp.status_code, body)

                    async for line in resp.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        raw = line[len("data:"):].strip()
                        try:
                            data = json.loads(raw)
                        except json.JSONDecodeError as e:
                            log.error("DashScope 流式数据解析失败", model=self.model_name, data=raw[:200])
                            raise ModelError(f"DashScope 流式数据解析失败: {e}", cause=e) from e
                        if "output" not in data:
                            # 流内错误事件：HTTP 200，data 只带 code / message
                            if data.get("code") or data.get("message"):
                                log.error("DashScope 流式返回错误", model=self.model_name, code=data.get("code"))
                                raise ModelError(
                                    f"DashScope 流式返回错误 {data.get('code', '')}: {data.get('message', '')}"
                                )
                            continue

                        if data.get("usage"):
                            usage = ChatUsage(
                                input_tokens=data["usage"].get("input_tokens", 0),
                                output_tokens=data["usage"].get("output_tokens", 0),
                            )

                        choice = (data["output"].get("choices") or [{}])[0]
                        message = choice.get("message") or {}
                        text += _message_text(message.get("content"))
                        thinking += message.get("reasoning_content") or ""

                        for i, tc in enumerate(message.get("tool_calls") or []):
                            idx = tc.get("index", i)
                            buf = tool_call_buffers.setdefault(idx, {"id": "", "name": "", "arguments": ""})
                            if tc.get("id"):
                                buf["id"] = tc["id"]
                            function = tc.get("function") or {}
                            if function.get("name"):
                                buf["name"] = function["name"]
                            if function.get("arguments"):
                                buf["arguments"] += function["arguments"]

                        yield ChatResponse(
                            content=build_content(
                                thinking,
                                text,
                                [buf for _idx, buf in sorted(tool_call_buffers.items())],
                            ),
                            usage=usage,
                            id=data.get("request_id") or "",
                        )
        except httpx.TimeoutException as e:
            log.warning("DashScope 流式调用超时", model=self.model_name, timeout=self.timeout)
            raise ModelError(f"DashScope 流式调用超时（{self.timeout}s）: {e}", cause=e) from e
        except httpx.HTTPError as e:
            log.error("DashScope 流式连接失败", model=self.model_name, error=str(e))
            raise ModelError(f"DashScope 流式连接失败: {e}", cause=e) from e
