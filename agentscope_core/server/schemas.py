"""
HTTP 请求/响应模型
"""

from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    session_id: str | None = None  # 首次对话不传，服务端生成


class ChatResponse(BaseModel):
    session_id: str
    reply: str
    metadata: dict[str, Any] = Field(default_factory=dict)  # 结构化输出、中断标记等
