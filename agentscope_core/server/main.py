"""
FastAPI 应用主入口

端点：
- GET  /health: 探活 + 会话存储状态
- POST /chat: 非流式 JSON 响应
- POST /chat/stream: SSE 流式响应（reasoning / tool_result / agent_result 事件）
- GET  /metrics: Prometheus 指标
"""

import json
import uuid
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Response
from fastapi.responses import StreamingResponse
from prometheus_client import make_asgi_app

from agentscope_core.config import get_settings
from agentscope_core.message import Msg
from agentscope_core.observability.context import bind_session, current_context
from agentscope_core.observability.logging_config import setup_logging
from agentscope_core.server.deps import (
    AgentFactory,
    SessionLocks,
    build_agent_factory,
    build_session,
    get_agent_factory,
    get_session,
    get_session_locks,
)
from agentscope_core.server.middleware import SESSION_HEADER, MetricsMiddleware, RequestLoggerMiddleware
from agentscope_core.server.schemas import ChatRequest, ChatResponse
from agentscope_core.session import RedisSession, SessionBase

log = structlog.get_logger()
router = APIRouter()


@asynccontextmanager
async def lifespan(application: FastAPI):
    """启动时创建会话存储与智能体工厂，关闭时释放 Redis 连接池"""
    settings = get_settings()
    log.info("应用启动", env=settings.ENV, app=settings.APP_NAME, session_backend=settings.SESSION_BACKEND)

    application.state.session = build_session(settings)
    application.state.agent_factory = build_agent_factory(settings)

    yield

    session = application.state.session
    if isinstance(session, RedisSession):
        await session.redis.aclose()
    log.info("应用关闭，资源已释放")


# ── GET /health ──

@router.get("/health", tags=["健康检查"])
async def health_check(session: SessionBase = Depends(get_session)):
    status = {"status": "ok", "session": type(session).__name__}
    if isinstance(session, RedisSession):
        try:
            await session.redis.ping()
        except Exception as e:
            status["status"] = "degraded"
            status["redis"] = f"error: {e}"
            log.error("Redis 健康检查失败", error=str(e))
    return status


# ── POST /chat ──

@router.post("/chat", response_model=ChatResponse, tags=["对话"])
async def chat(
    body: ChatRequest,
    response: Response,
    session: SessionBase = Depends(get_session),
    agent_factory: AgentFactory = Depends(get_agent_factory),
    locks: SessionLocks = Depends(get_session_locks),
):
    session_id = body.session_id or uuid.uuid4().hex
    bind_session(session_id)
    response.headers[SESSION_HEADER] = session_id

    async with locks.hold(session_id):
        agent = agent_factory()
        await session.load_session_state(session_id, agent=agent)
        reply = await agent(Msg("user", body.message, "user"))
        await session.save_session_state(session_id, agent=agent)

    log.info("对话完成", agent=agent.name, reply_length=len(reply.get_text_content()))
    return ChatResponse(session_id=session_id, reply=reply.get_text_content(), metadata=reply.metadata)


# ── POST /chat/stream ──

def _sse_event(event: str, data: dict) -> str:
    """格式化一条 SSE 事件"""
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


@router.post("/chat/stream", tags=["对话"])
async def chat_stream(
    body: ChatRequest,
    session: SessionBase = Depends(get_session),
    agent_factory: AgentFactory = Depends(get_agent_factory),
    locks: SessionLocks = Depends(get_session_locks),
):
    session_id = body.session_id or uuid.uuid4().hex
    bind_session(session_id)

    async def event_generator():
        try:
            async with locks.hold(session_id):
                agent = agent_factory()
                await session.load_session_state(session_id, agent=agent)

                async for event in agent.stream(Msg("user", body.message, "user")):
                    yield _sse_event(event.type, {
                        "session_id": session_id,
                        "is_last": event.is_last,
                        "msg": event.msg.to_dict(),
                    })

                await session.save_session_state(session_id, agent=agent)
        except Exception as e:
            log.error("SSE 流式处理异常", error=str(e), exc_info=True)
            yield _sse_event("error", {**current_context(), "session_id": session_id, "message": str(e)})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            SESSION_HEADER: session_id,
        },
    )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(env=settings.ENV, level=settings.LOG_LEVEL)

    application = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
    application.state.session_locks = SessionLocks()

    # ── 中间件（执行顺序：从下往上注册，从上往下执行） ──
    application.add_middleware(MetricsMiddleware)
    application.add_middleware(RequestLoggerMiddleware)

    # ── Prometheus 指标端点 ──
    application.mount("/metrics", make_asgi_app())

    application.include_router(router)
    return application


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.APP_PORT)


if __name__ == "__main__":
    run()
