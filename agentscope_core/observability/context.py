"""
运行上下文：trace_id / session_id / 当前智能体

三者都保存在 contextvars 中，并同步绑定到 structlog 上下文：
- 协程、asyncio.to_thread 执行的同步工具都能读到
- 智能体嵌套调用（子智能体工具）时 agent 字段随调用栈切换，退出后恢复
"""

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")
session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("session_id", default="")
agent_var: contextvars.ContextVar[str] = contextvars.ContextVar("agent", default="")


def new_trace_id() -> str:
    return uuid.uuid4().hex


def bind_trace(trace_id: str | None = None) -> str:
    """开始一条新链路：清空旧的日志上下文，返回生效的 trace_id"""
    trace_id = trace_id or new_trace_id()
    trace_id_var.set(trace_id)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(trace_id=trace_id)
    return trace_id


def bind_session(session_id: str) -> None:
    session_id_var.set(session_id)
    structlog.contextvars.bind_contextvars(session_id=session_id)


@contextmanager
def agent_scope(agent_name: str) -> Iterator[None]:
    """在智能体一次调用期间，日志自动带上 agent 字段"""
    token = agent_var.set(agent_name)
    try:
        with structlog.contextvars.bound_contextvars(agent=agent_name):
            yield
    finally:
        agent_var.reset(token)


def current_context() -> dict[str, str]:
    """当前上下文中已设置的字段"""
    fields = {
        "trace_id": trace_id_var.get(),
        "session_id": session_id_var.get(),
        "agent": agent_var.get(),
    }
    return {k: v for k, v in fields.items() if v}
