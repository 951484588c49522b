"""
FunctionTool：把普通 Python 函数包装为工具

- 参数 schema：由函数签名 + 类型注解经 pydantic.create_model 生成
- 参数描述：解析 Google 风格 docstring 的 Args 段
- preset_kwargs：预置参数，不暴露给模型，调用时自动注入
- 支持同步函数、协程函数，以及（异步）生成器函数：生成器的最后一个分片作为最终结果
- 同步函数经 asyncio.to_thread 执行，超时保护与并行调用对其同样生效
"""

import asyncio
import inspect
import re
import typing
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, create_model

from agentscope_core.tool.base import BaseTool
from agentscope_core.tool.response import ToolResponse

_ARGS_SECTIONS = {"args", "arguments", "parameters", "params"}
_OTHER_SECTIONS = {
    "returns", "return", "yields", "raises", "examples", "example", "notes", "note",
}
_ARG_LINE_RE = re.compile(r"^\*{0,2}(\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$")


def parse_docstring(doc: str | None) -> tuple[str, dict[str, str]]:
    """
    解析 Google 风格 docstring。

    Returns:
        (函数描述, {参数名: 参数描述})
    """
    if not doc:
        return "", {}

    description: list[str] = []
    params: dict[str, str] = {}
    section: str | None = None
    current: str | None = None
    base_indent: int | None = None

    for line in inspect.cleandoc(doc).splitlines():
        stripped = line.strip()
        header = stripped[:-1].strip().lower() if stripped.endswith(":") else ""
        if header in _ARGS_SECTIONS or header in _OTHER_SECTIONS:
            section, current, base_indent = header, None, None
            continue

        if section is None:
            description.append(line)
            continue
        if section not in _ARGS_SECTIONS or not stripped:
            continue

        indent = len(line) - len(line.lstrip())
        if base_indent is None:
            base_indent = indent
        match = _ARG_LINE_RE.match(stripped)
        if match and indent <= base_indent:
            current = match.group(1)
            params[current] = match.group(2).strip()
        elif current is not None:
            # 续行
            params[current] = f"{params[current]} {stripped}".strip()

    return "\n".join(description).strip(), params


def build_params_model(
    func: Callable,
    model_name: str,
    exclude: typing.Iterable[str] = (),
) -> type[BaseModel]:
    """由函数签名生成参数 Pydantic Model"""
    excluded = set(exclude)
    signature = inspect.signature(func)
    _, arg_docs = parse_docstring(inspect.getdoc(func))

    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError):
        hints = {}

    fields: dict[str, Any] = {}
    for name, param in signature.parameters.items():
        if name in excluded or name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = hints.get(name, Any if param.annotation is inspect.Parameter.empty else param.annotation)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[name] = (annotation, Field(default, description=arg_docs.get(name)))

    return create_model(model_name, **fields)


class FunctionTool(BaseTool):
    """普通函数工具"""

    def __init__(
        self,
        func: Callable,
        name: str | None = None,
        description: str | None = None,
        preset_kwargs: dict[str, Any] | None = None,
        timeout_ms: int | None = None,
    ):
        tool_name = name or getattr(func, "__name__", None)
        if not tool_name:
            raise ValueError("Tool name is required for callables without __name__")

        self.func = func
        self.preset_kwargs = dict(preset_kwargs or {})
        self._name = tool_name
        doc_description, _ = parse_docstring(inspect.getdoc(func))
        self._description = description or doc_description or tool_name
        self._params_model = build_params_model(func, f"{tool_name}_params", exclude=self.preset_kwargs)
        self._timeout_ms = timeout_ms

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def params_model(self) -> type[BaseModel]:
        return self._params_model

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms or super().timeout_ms

    async def execute(self, args: dict) -> ToolResponse:
        params = self._params_model.model_validate(args)
        kwargs = {field: getattr(params, field) for field in self._params_model.model_fields}
        kwargs.update(self.preset_kwargs)

        if inspect.iscoroutinefunction(self.func) or inspect.isasyncgenfunction(self.func):
            result = self.func(**kwargs)
        else:
            # 同步函数与同步生成器在工作线程中执行，事件循环只等待结果
            result = await asyncio.to_thread(_call_sync, self.func, kwargs)

        if inspect.isawaitable(result):
            result = await result

        if inspect.isasyncgen(result):
            last = None
            async for chunk in result:
                last = chunk
            result = last

        return ToolResponse.from_value(result)


def _call_sync(func: Callable, kwargs: dict[str, Any]) -> Any:
    """在工作线程内调用同步函数，生成器在线程内取完，返回最后一个分片"""
    result = func(**kwargs)
    if inspect.isgenerator(result):
        last = None
        for chunk in result:
            last = chunk
        result = last
    return result
