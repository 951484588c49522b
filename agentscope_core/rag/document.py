"""
RAG 文档与检索配置
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field

from agentscope_core.message import ImageBlock, TextBlock


class Document(BaseModel):
    """知识库中的一个文档分块"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content: TextBlock | ImageBlock
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None
    score: float | None = None  # 检索时的相似度得分

    def get_text(self) -> str:
        if isinstance(self.content, TextBlock):
            return self.content.text
        return ""


class RetrieveConfig(BaseModel):
    """检索参数"""

    limit: int = Field(default=5, ge=1)
    score_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
