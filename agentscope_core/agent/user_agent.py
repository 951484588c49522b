"""
UserAgent：把人类输入包装成智能体，便于在 MsgHub / pipeline 中与其他智能体协作
"""

import inspect
from collections.abc import Callable
from typing import Any

import structlog
from prompt_toolkit import PromptSession

from agentscope_core.agent.base import AgentBase
from agentscope_core.message import Msg

log = structlog.get_logger()

InputFunc = Callable[[str], Any]  # 同步或异步函数：prompt → 用户输入文本


class UserAgent(AgentBase):
    """用户智能体"""

    def __init__(self, name: str = "user", input_func: InputFunc | None = None):
        super().__init__(name, description="A human user interacting with the agents.")
        self._input_func = input_func
        self._prompt_session: PromptSession | None = None

    def override_input_func(self, input_func: InputFunc) -> None:
        """替换输入方式（测试、Web 前端等场景）"""
        self._input_func = input_func

    async def _read_input(self, prompt: str) -> str:
        if self._input_func is not None:
            result = self._input_func(prompt)
            if inspect.isawaitable(result):
                result = await result
            return str(result)

        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        return await self._prompt_session.prompt_async(prompt)

    async def reply(self, msgs: list[Msg], **kwargs: Any) -> Msg:
        for msg in msgs:
            if msg.role == "assistant":
                print(f"{msg.name}: {msg.get_text_content()}")

        text = (await self._read_input(f"{self.name}: ")).strip()
        log.debug("用户输入", agent=self.name, length=len(text))
        return Msg(self.name, text, "user")
