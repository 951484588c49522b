"""
Toolkit：工具注册、分组管理、Schema 获取与执行分发

- 工具分组：basic 组始终激活；其余组可由开发者或智能体（reset_equipped_tools）按需激活
- 执行：参数校验 + asyncio.wait_for 超时保护，工具失败一律转为错误 ToolResponse，
  只有 asyncio.CancelledError 向上传播
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError, create_model

from agentscope_core.message import ToolUseBlock
from agentscope_core.observability.metrics import TOOL_CALL_TOTAL
from agentscope_core.session.state import StateModule
from agentscope_core.tool.base import BaseTool
from agentscope_core.tool.function_tool import FunctionTool
from agentscope_core.tool.response import ToolResponse

log = structlog.get_logger()

BASIC_GROUP = "basic"


@dataclass
class ToolGroup:
    """工具分组"""

    name: str
    description: str
    active: bool = False
    notes: str | None = None  # 分组激活后追加到系统提示词的使用说明


class Toolkit(StateModule):
    """工具集"""

    def __init__(self) -> None:
        super().__init__()
        self._tools: dict[str, BaseTool] = {}
        self._tool_group: dict[str, str] = {}
        self.groups: dict[str, ToolGroup] = {
            BASIC_GROUP: ToolGroup(BASIC_GROUP, "The basic tool group, always active.", active=True),
        }
        self.register_state("active_groups")

    # ── 注册 ──

    def register_tool(self, tool: BaseTool, group_name: str = BASIC_GROUP) -> None:
        """注册一个工具实例"""
        if group_name not in self.groups:
            raise ValueError(f"Tool group '{group_name}' does not exist, create it first")
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        self._tool_group[tool.name] = group_name
        log.debug("工具已注册", tool=tool.name, group=group_name, timeout_ms=tool.timeout_ms)

    def register_tool_function(
        self,
        func: Callable,
        group_name: str = BASIC_GROUP,
        preset_kwargs: dict[str, Any] | None = None,
        func_description: str | None = None,
        name: str | None = None,
        timeout_ms: int | None = None,
    ) -> FunctionTool:
        """把普通函数注册为工具，返回生成的 FunctionTool"""
        tool = FunctionTool(
            func,
            name=name,
            description=func_description,
            preset_kwargs=preset_kwargs,
            timeout_ms=timeout_ms,
        )
        self.register_tool(tool, group_name)
        return tool

    def remove_tool_function(self, name: str) -> None:
        if self._tools.pop(name, None) is None:
            log.warning("移除的工具不存在", tool=name)
            return
        self._tool_group.pop(name, None)

    def get_tool(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    # ── 分组 ──

    def create_tool_group(
        self,
        group_name: str,
        description: str,
        active: bool = False,
        notes: str | None = None,
    ) -> None:
        if group_name in self.groups:
            raise ValueError(f"Tool group '{group_name}' already exists")
        self.groups[group_name] = ToolGroup(group_name, description, active, notes)

    def update_tool_groups(self, group_names: list[str], active: bool) -> None:
        for group_name in group_names:
            if group_name == BASIC_GROUP:
                continue
            group = self.groups.get(group_name)
            if group is None:
                log.warning("工具分组不存在，忽略", group=group_name)
                continue
            group.active = active

    def remove_tool_groups(self, group_names: list[str]) -> None:
        if BASIC_GROUP in group_names:
            raise ValueError("The basic tool group cannot be removed")
        for group_name in group_names:
            if self.groups.pop(group_name, None) is None:
                continue
            for tool_name in [n for n, g in self._tool_group.items() if g == group_name]:
                self.remove_tool_function(tool_name)

    def get_active_groups(self) -> list[str]:
        return [name for name, group in self.groups.items() if group.active]

    def set_active_groups(self, group_names: list[str]) -> None:
        """只激活给定分组（basic 组始终激活）"""
        for name, group in self.groups.items():
            group.active = name == BASIC_GROUP or name in group_names

    @property
    def active_groups(self) -> list[str]:
        return self.get_active_groups()

    @active_groups.setter
    def active_groups(self, group_names: list[str]) -> None:
        self.set_active_groups(group_names)

    def get_activated_notes(self) -> str:
        """已激活分组的使用说明，拼接到系统提示词"""
        notes = [
            f"## About Tool Group '{group.name}'\n{group.notes}"
            for group in self.groups.values()
            if group.active and group.notes
        ]
        return "\n\n".join(notes)

    def _is_active(self, tool_name: str) -> bool:
        group = self.groups.get(self._tool_group.get(tool_name, ""))
        return group is not None and group.active

    def register_meta_tool(self) -> None:
        """注册 reset_equipped_tools，让智能体自行激活所需的工具分组"""
        self.register_tool(_ResetEquippedTools(self))

    # ── Schema ──

    def get_json_schemas(self) -> list[dict]:
        """已激活分组内所有工具的 OpenAI function calling schema"""
        return [tool.schema() for name, tool in self._tools.items() if self._is_active(name)]

    # ── 执行 ──

    async def call_tool_function(self, tool_use: ToolUseBlock) -> ToolResponse:
        """
        执行一次工具调用，始终返回 ToolResponse。

        未知工具、参数校验失败、超时、工具内部异常都会转为错误结果返回给模型。
        """
        name = tool_use.name
        tool = self._tools.get(name)
        if tool is None or not self._is_active(name):
            TOOL_CALL_TOTAL.labels(tool_name=name, status="error").inc()
            return ToolResponse.fail(f"FunctionNotFoundError: Cannot find the function named {name}")

        try:
            response = await asyncio.wait_for(
                tool.execute(dict(tool_use.input)),
                timeout=tool.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            log.warning("工具执行超时", tool=name, timeout_ms=tool.timeout_ms)
            response = ToolResponse.fail(f"Tool '{name}' timed out after {tool.timeout_ms}ms")
        except asyncio.CancelledError:
            # 系统级中断信号，必须向上传播，不可吞掉
            log.warning("工具执行被取消", tool=name)
            raise
        except ValidationError as e:
            log.warning("工具参数校验失败", tool=name, errors=e.error_count())
            response = ToolResponse.fail(f"Invalid arguments for tool '{name}': {e}")
        except Exception as e:
            log.error("工具执行异常", tool=name, error=str(e), exc_info=True)
            response = ToolResponse.fail(f"{type(e).__name__}: {e}")

        TOOL_CALL_TOTAL.labels(tool_name=name, status="error" if response.is_error else "success").inc()
        return response

    async def call_tools(self, tool_uses: list[ToolUseBlock], parallel: bool = True) -> list[ToolResponse]:
        """批量执行工具调用，返回结果与调用顺序一致"""
        if parallel:
            return list(await asyncio.gather(*(self.call_tool_function(t) for t in tool_uses)))
        return [await self.call_tool_function(t) for t in tool_uses]


class _ResetEquippedTools(BaseTool):
    """元工具：每个非 basic 分组对应一个布尔参数"""

    def __init__(self, toolkit: Toolkit):
        self._toolkit = toolkit

    @property
    def name(self) -> str:
        return "reset_equipped_tools"

    @property
    def description(self) -> str:
        return (
            "Choose the tool groups to equip. Set the groups you need for the current task to "
            "true and the others to false. Tools in the basic group are always available."
        )

    @property
    def params_model(self) -> type[BaseModel]:
        fields: dict[str, Any] = {
            name: (bool, Field(False, description=group.description))
            for name, group in self._toolkit.groups.items()
            if name != BASIC_GROUP
        }
        return create_model("reset_equipped_tools_params", **fields)

    async def execute(self, args: dict) -> ToolResponse:
        params = self.params_model.model_validate(args)
        selected = [name for name, value in params.model_dump().items() if value]
        self._toolkit.set_active_groups(selected)

        if not selected:
            return ToolResponse.text("All tool groups except the basic group are deactivated.")
        text = f"Now tool groups {', '.join(repr(g) for g in selected)} are activated."
        notes = self._toolkit.get_activated_notes()
        if notes:
            text += f"\n\n{notes}"
        return ToolResponse.text(text)
