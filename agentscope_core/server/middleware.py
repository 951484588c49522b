"""
HTTP 中间件

- RequestLoggerMiddleware：每个请求开启一条链路（X-Trace-ID），结束日志带上对话路由回写的 session_id
- MetricsMiddleware：按路由模板统计请求数与耗时，/metrics 与 /health 不计入
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from agentscope_core.observability.context import bind_trace
from agentscope_core.observability.metrics import REQUEST_DURATION, REQUEST_TOTAL

log = structlog.get_logger()

TRACE_HEADER = "X-Trace-ID"
SESSION_HEADER = "X-Session-ID"

_SKIP_METRICS_PATHS = ("/metrics", "/health")


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """请求开始/结束日志，trace_id 回写到响应头"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = bind_trace(request.headers.get(TRACE_HEADER))
        start = time.monotonic()
        log.debug("请求开始", method=request.method, path=request.url.path)

        response = await call_next(request)

        duration_ms = int((time.monotonic() - start) * 1000)
        # 路由在另一个上下文中执行，session_id 经响应头带回
        session_id = response.headers.get(SESSION_HEADER)
        log.info(
            "请求结束",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            **({"session_id": session_id} if session_id else {}),
        )
        response.headers[TRACE_HEADER] = trace_id
        response.headers["X-Duration-Ms"] = str(duration_ms)
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path.startswith(_SKIP_METRICS_PATHS):
            return await call_next(request)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        # 未匹配到路由（404）时 scope 中没有 route，退回原始路径
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        REQUEST_TOTAL.labels(method=request.method, endpoint=endpoint, status_code=str(response.status_code)).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration_ms)
        return response
