from __future__ import annotations

from collections.abc import AsyncGenerator

from agentscope_core.message import TextBlock, ToolUseBlock
from agentscope_core.model.base import ChatModelBase, ChatResponse, ChatUsage, GenerateOptions
from agentscope_core.rag.embedding import EmbeddingModelBase


def text_response(text: str) -> ChatResponse:
    return ChatResponse(content=[TextBlock(text=text)], usage=ChatUsage(input_tokens=1, output_tokens=1))


def tool_response(name: str, arguments: dict, call_id: str = "call_1", text: str = "") -> ChatResponse:
    content: list = [TextBlock(text=text)] if text else []
    content.append(ToolUseBlock(id=call_id, name=name, input=arguments))
    return ChatResponse(content=content)


class FakeChatModel(ChatModelBase):
    """按顺序返回预置回复的假模型，记录每次调用的参数"""

    provider = "fake"

    def __init__(self, responses: list[ChatResponse], stream: bool = False):
        super().__init__("fake-model", stream)
        self.responses = list(responses)
        self.calls: list[dict] = []

    def _next(self, messages, tools, tool_choice) -> ChatResponse:
        self.calls.append({"messages": messages, "tools": tools, "tool_choice": tool_choice})
        if not self.responses:
            raise AssertionError("FakeChatModel has no more scripted responses")
        return self.responses.pop(0)

    async def _call(self, messages, tools, tool_choice, options: GenerateOptions) -> ChatResponse:
        return self._next(messages, tools, tool_choice)

    async def _stream(
        self, messages, tools, tool_choice, options: GenerateOptions
    ) -> AsyncGenerator[ChatResponse, None]:
        response = self._next(messages, tools, tool_choice)
        text = response.get_text()
        # 文本按字符累计产出，最后一个分片为完整内容（含工具调用）
        for i in range(1, len(text)):
            yield ChatResponse(content=[TextBlock(text=text[:i])], id=response.id)
        yield ChatResponse(content=list(response.content), id=response.id)


class FakeEmbedding(EmbeddingModelBase):
    """按关键词生成确定性向量：每个维度对应一个关键词是否出现"""

    def __init__(self, keywords: list[str]):
        self.model_name = "fake-embedding"
        self.keywords = keywords
        self.dimensions = len(keywords)

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        return [
            [1.0 if kw in text.lower() else 0.0 for kw in self.keywords]
            for text in texts
        ]
