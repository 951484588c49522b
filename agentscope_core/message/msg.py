"""
Msg：智能体之间、智能体与模型之间传递的统一消息结构
"""

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from agentscope_core.message.blocks import ContentBlock, TextBlock

Role = Literal["user", "assistant", "system", "tool"]


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


class Msg(BaseModel):
    """
    一条消息。

    content 可以是纯字符串，也可以是内容块列表；读取时统一通过
    get_content_blocks() 视为块列表处理。
    """

    name: str
    content: str | list[ContentBlock]
    role: Role
    metadata: dict[str, Any] = Field(default_factory=dict)
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = Field(default_factory=_now)

    def __init__(self, name: str, content: Any, role: Role, **data: Any) -> None:
        super().__init__(name=name, content=content, role=role, **data)

    def get_content_blocks(self, block_type: str | None = None) -> list:
        """获取内容块，字符串内容视为单个 TextBlock"""
        if isinstance(self.content, str):
            blocks: list = [TextBlock(text=self.content)] if self.content else []
        else:
            blocks = list(self.content)
        if block_type is None:
            return blocks
        return [b for b in blocks if b.type == block_type]

    def has_content_blocks(self, block_type: str) -> bool:
        return bool(self.get_content_blocks(block_type))

    def first_block(self, block_type: str):
        blocks = self.get_content_blocks(block_type)
        return blocks[0] if blocks else None

    def get_text_content(self) -> str:
        """拼接所有文本块（换行分隔）"""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(b.text for b in self.content if b.type == "text")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Msg":
        return cls.model_validate(data)

    def __repr__(self) -> str:
        return f"Msg(name={self.name!r}, role={self.role!r}, content={self.content!r})"
