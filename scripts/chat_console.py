"""
控制台交互脚本：直接驱动 ReActAgent，会话状态按 SESSION_BACKEND 持久化

运行方式：
    python scripts/chat_console.py

支持命令：
    /new     — 开启新会话
    /debug   — 切换调试信息显示（推理分片、工具结果）
    /quit    — 退出
"""

import asyncio
import sys
import time
import uuid
from pathlib import Path

from prompt_toolkit import PromptSession

# 确保项目根目录在 sys.path 中
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from agentscope_core.agent import AgentBase
from agentscope_core.config import get_settings
from agentscope_core.message import Msg
from agentscope_core.observability.context import bind_session, bind_trace
from agentscope_core.observability.logging_config import setup_logging
from agentscope_core.server.deps import build_agent_factory, build_session
from agentscope_core.session import RedisSession, SessionBase

settings = get_settings()


async def chat_once(
    message: str,
    session_id: str,
    session: SessionBase,
    agent: AgentBase,
    show_debug: bool = True,
) -> str:
    """执行一轮对话：加载会话 → 流式运行智能体 → 保存会话，返回回复文本"""
    start = time.time()
    bind_trace()
    bind_session(session_id)
    await session.load_session_state(session_id, agent=agent)

    reply: Msg | None = None
    tool_count = 0
    async for event in agent.stream(Msg("user", message, "user")):
        if event.type == "tool_result":
            tool_count += 1
            if show_debug:
                for block in event.msg.get_content_blocks("tool_result"):
                    preview = block.get_text()[:120].replace("\n", " ")
                    print(f"\033[90m  ── tool={block.name} | {preview}\033[0m")
        elif event.type == "reasoning" and event.is_last and show_debug:
            for tool_use in event.msg.get_content_blocks("tool_use"):
                print(f"\033[90m  ── call {tool_use.name}({tool_use.input})\033[0m")
        elif event.type == "agent_result":
            reply = event.msg

    await session.save_session_state(session_id, agent=agent)

    if show_debug:
        duration = int((time.time() - start) * 1000)
        print(f"\033[90m  ── tools={tool_count} | {duration}ms ──\033[0m")
        if reply is not None and reply.metadata.get("interrupted"):
            print("\033[93m  ⚠ 本轮被中断\033[0m")

    return reply.get_text_content() if reply is not None else ""


async def main():
    """交互式对话主循环"""
    setup_logging(env=settings.ENV, level=settings.LOG_LEVEL)

    print("=" * 60)
    print("  AgentScope 控制台")
    print(f"  模型: {settings.LLM_DEFAULT_MODEL} | 会话存储: {settings.SESSION_BACKEND}")
    print("  命令: /new (新会话) | /debug (切换调试) | /quit (退出)")
    print("=" * 60)

    session = build_session(settings)
    agent_factory = build_agent_factory(settings)
    session_id = uuid.uuid4().hex
    show_debug = True
    pt_session = PromptSession()
    print(f"\033[90m  session: {session_id[:8]}...\033[0m\n")

    try:
        while True:
            try:
                user_input = (await pt_session.prompt_async("你: ")).strip()
            except (EOFError, KeyboardInterrupt):
                print("\n再见！")
                break

            if not user_input:
                continue

            # 控制台命令
            if user_input == "/quit":
                print("再见！")
                break
            elif user_input == "/new":
                session_id = uuid.uuid4().hex
                print(f"\033[90m  新会话: {session_id[:8]}...\033[0m\n")
                continue
            elif user_input == "/debug":
                show_debug = not show_debug
                print(f"\033[90m  调试信息: {'开启' if show_debug else '关闭'}\033[0m\n")
                continue

            # 每轮新建智能体，状态从会话存储恢复
            try:
                reply = await chat_once(user_input, session_id, session, agent_factory(), show_debug)
                print(f"\n\033[36mAssistant: \033[0m{reply}\n")
            except Exception as e:
                print(f"\n\033[31m错误: {e}\033[0m\n")
                import traceback
                traceback.print_exc()
    finally:
        if isinstance(session, RedisSession):
            await session.redis.aclose()


if __name__ == "__main__":
    asyncio.run(main())
