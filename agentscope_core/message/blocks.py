"""
消息内容块：按 type 字段区分的 Pydantic 判别联合

- TextBlock / ThinkingBlock：文本与推理过程
- ToolUseBlock / ToolResultBlock：工具调用与工具结果
- ImageBlock / AudioBlock / VideoBlock：多模态内容，source 为 URL 或 Base64
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator


# ── 多模态数据源 ──

class URLSource(BaseModel):
    """URL 数据源（http(s):// 或本地文件路径）"""

    type: Literal["url"] = "url"
    url: str


class Base64Source(BaseModel):
    """Base64 内联数据源"""

    type: Literal["base64"] = "base64"
    media_type: str  # 如 image/png、audio/wav
    data: str

    def to_data_uri(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


Source = Annotated[Union[URLSource, Base64Source], Field(discriminator="type")]


# ── 内容块 ──

class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ThinkingBlock(BaseModel):
    type: Literal["thinking"] = "thinking"
    thinking: str = ""


class ImageBlock(BaseModel):
    type: Literal["image"] = "image"
    source: Source


class AudioBlock(BaseModel):
    type: Literal["audio"] = "audio"
    source: Source


class VideoBlock(BaseModel):
    type: Literal["video"] = "video"
    source: Source


class ToolUseBlock(BaseModel):
    """模型发起的一次工具调用"""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)
    raw_input: str | None = None  # 模型原始输出的参数字符串


ToolOutputBlock = Annotated[
    Union[TextBlock, ImageBlock, AudioBlock, VideoBlock],
    Field(discriminator="type"),
]


class ToolResultBlock(BaseModel):
    """工具执行结果，output 可为纯文本（自动包装为 TextBlock）或多模态块列表"""

    type: Literal["tool_result"] = "tool_result"
    id: str = ""
    name: str = ""
    output: list[ToolOutputBlock] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("output", mode="before")
    @classmethod
    def _wrap_plain_text(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [TextBlock(text=value)]
        return value

    @classmethod
    def text(cls, text: str, id: str = "", name: str = "") -> "ToolResultBlock":
        """快捷构造文本结果"""
        return cls(id=id, name=name, output=[TextBlock(text=text)])

    @classmethod
    def error(cls, message: str, id: str = "", name: str = "") -> "ToolResultBlock":
        """快捷构造错误结果，文本统一以 "Error: " 开头"""
        return cls(
            id=id,
            name=name,
            output=[TextBlock(text=f"Error: {message}")],
            metadata={"success": False},
        )

    def get_text(self) -> str:
        return "\n".join(b.text for b in self.output if isinstance(b, TextBlock))


ContentBlock = Annotated[
    Union[
        TextBlock,
        ThinkingBlock,
        ToolUseBlock,
        ToolResultBlock,
        ImageBlock,
        AudioBlock,
        VideoBlock,
    ],
    Field(discriminator="type"),
]

MEDIA_BLOCK_TYPES = ("image", "audio", "video")
