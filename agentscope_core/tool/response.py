"""
ToolResponse：工具执行标准化结果

- content：返回给模型的内容块（文本 / 多模态）
- metadata：不发给模型的结构化信息（success 标记、结构化输出等）
- is_last / is_interrupted：流式工具的分片标记
"""

import json
from dataclasses import dataclass, field
from typing import Any

from agentscope_core.message import TextBlock


@dataclass
class ToolResponse:
    """工具执行结果"""

    content: list = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    is_last: bool = True
    is_interrupted: bool = False

    @classmethod
    def text(cls, text: str, **metadata: Any) -> "ToolResponse":
        """快捷构造文本结果"""
        return cls(content=[TextBlock(text=text)], metadata={"success": True, **metadata})

    @classmethod
    def fail(cls, error: str) -> "ToolResponse":
        """快捷构造失败结果，文本统一以 "Error: " 开头"""
        return cls(content=[TextBlock(text=f"Error: {error}")], metadata={"success": False})

    @classmethod
    def from_value(cls, value: Any) -> "ToolResponse":
        """把普通函数返回值包装为 ToolResponse"""
        if isinstance(value, ToolResponse):
            return value
        if value is None:
            return cls.text("")
        if isinstance(value, str):
            return cls.text(value)
        return cls.text(json.dumps(value, ensure_ascii=False, default=str))

    @property
    def is_error(self) -> bool:
        return self.metadata.get("success") is False

    def get_text(self) -> str:
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))
