"""
会话存储抽象：按 session_id 保存 / 恢复一组 StateModule 的状态
"""

import copy
from abc import ABC, abstractmethod
from typing import Any

import structlog

from agentscope_core.exceptions import SessionError
from agentscope_core.session.state import StateModule

log = structlog.get_logger()


class SessionBase(ABC):
    """会话存储基类，子类只需实现原始 dict 的读写"""

    async def save_session_state(self, session_id: str, **state_modules: StateModule) -> None:
        """
        保存会话状态。

        Args:
            session_id: 会话 ID
            **state_modules: 以关键字命名的状态模块，如 agent=agent, notebook=notebook
        """
        state = {name: module.state_dict() for name, module in state_modules.items()}
        await self._save(session_id, state)
        log.debug("会话状态已保存", session_id=session_id, modules=list(state_modules))

    async def load_session_state(
        self,
        session_id: str,
        allow_not_exist: bool = True,
        **state_modules: StateModule,
    ) -> bool:
        """
        恢复会话状态，返回是否真正加载到数据。

        Raises:
            SessionError: 会话不存在且 allow_not_exist=False
        """
        state = await self._load(session_id)
        if state is None:
            if allow_not_exist:
                log.debug("会话不存在，跳过加载", session_id=session_id)
                return False
            raise SessionError(f"Session '{session_id}' does not exist")

        for name, module in state_modules.items():
            if name in state:
                module.load_state_dict(state[name])
            else:
                log.warning("会话中缺少模块状态", session_id=session_id, module=name)
        log.debug("会话状态已加载", session_id=session_id, modules=list(state_modules))
        return True

    @abstractmethod
    async def _save(self, session_id: str, state: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def _load(self, session_id: str) -> dict[str, Any] | None:
        """读取原始状态，不存在时返回 None"""
        ...

    @abstractmethod
    async def exists(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """删除会话，返回是否真的删除了数据"""
        ...

    @abstractmethod
    async def list_sessions(self) -> list[str]:
        ...


class InMemorySession(SessionBase):
    """进程内会话存储（测试 / 单机调试用）"""

    def __init__(self) -> None:
        self._store: dict[str, dict[str, Any]] = {}

    async def _save(self, session_id: str, state: dict[str, Any]) -> None:
        self._store[session_id] = copy.deepcopy(state)

    async def _load(self, session_id: str) -> dict[str, Any] | None:
        state = self._store.get(session_id)
        return copy.deepcopy(state) if state is not None else None

    async def exists(self, session_id: str) -> bool:
        return session_id in self._store

    async def delete(self, session_id: str) -> bool:
        return self._store.pop(session_id, None) is not None

    async def list_sessions(self) -> list[str]:
        return sorted(self._store)
