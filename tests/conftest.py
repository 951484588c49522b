from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _test_settings(tmp_path) -> None:
    os.environ["ENV"] = "development"
    os.environ["SESSION_BACKEND"] = "memory"
    os.environ["SESSION_DIR"] = str(tmp_path / "sessions")
    # Settings 通过 lru_cache 缓存，清掉以便每个用例读取自己的环境变量
    from agentscope_core.config import get_settings

    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_system_hooks():
    from agentscope_core.agent.base import AgentBase

    AgentBase.clear_system_hooks()
    yield
    AgentBase.clear_system_hooks()
