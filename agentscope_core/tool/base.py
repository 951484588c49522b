"""
工具抽象基类

BaseTool 强制约束：
1. name / description / params_model：定义工具 Schema（Pydantic 生成，杜绝手写 dict 出错）
2. execute：返回 ToolResponse，异常由 Toolkit 统一兜底
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from agentscope_core.config import get_settings
from agentscope_core.tool.response import ToolResponse


def build_function_schema(name: str, description: str, params_model: type[BaseModel]) -> dict:
    """由 Pydantic Model 生成 OpenAI function calling 格式的 schema"""
    json_schema = params_model.model_json_schema()

    # 移除 Pydantic 附加的 title 字段
    properties = {}
    for key, prop in json_schema.get("properties", {}).items():
        properties[key] = {k: v for k, v in prop.items() if k != "title"}

    parameters: dict = {
        "type": "object",
        "properties": properties,
        "required": json_schema.get("required", []),
    }
    # 嵌套模型（如 list[SubTask]）通过 $defs 引用
    if "$defs" in json_schema:
        parameters["$defs"] = json_schema["$defs"]

    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": parameters,
        },
    }


class BaseTool(ABC):
    """工具抽象基类，所有工具必须继承"""

    @property
    @abstractmethod
    def name(self) -> str:
        """工具唯一名称"""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """工具描述（给 LLM 看）"""
        ...

    @property
    @abstractmethod
    def params_model(self) -> type[BaseModel]:
        """参数 Pydantic Model，用于自动生成 JSON Schema 和参数校验"""
        ...

    @abstractmethod
    async def execute(self, args: dict) -> ToolResponse:
        """执行工具，返回标准化结果"""
        ...

    @property
    def timeout_ms(self) -> int:
        """单次执行超时（毫秒），默认取全局配置"""
        return get_settings().DEFAULT_TOOL_TIMEOUT_MS

    def schema(self) -> dict:
        """生成 OpenAI function calling 格式的 tool schema"""
        return build_function_schema(self.name, self.description, self.params_model)
