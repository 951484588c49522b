"""
Prometheus 指标定义

所有指标统一在此文件定义，中间件和业务代码按需引用。
"""

from prometheus_client import Counter, Histogram

# ── 请求级指标 ──

REQUEST_TOTAL = Counter(
    "agentscope_request_total",
    "HTTP 请求总数",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "agentscope_request_duration_ms",
    "HTTP 请求耗时（毫秒）",
    ["method", "endpoint"],
    buckets=[50, 100, 200, 500, 1000, 2000, 5000, 10000],
)

# ── 模型调用指标 ──

LLM_CALL_TOTAL = Counter(
    "agentscope_llm_call_total",
    "模型调用总数",
    ["model", "provider"],  # provider: openai/dashscope/ollama
)

LLM_CALL_DURATION = Histogram(
    "agentscope_llm_call_duration_ms",
    "模型调用耗时（毫秒）",
    ["model", "provider"],
    buckets=[200, 500, 1000, 2000, 5000, 10000, 30000],
)

# ── 执行层指标 ──

TOOL_CALL_TOTAL = Counter(
    "agentscope_tool_call_total",
    "工具调用总数",
    ["tool_name", "status"],  # status: success/error
)

AGENT_REPLY_TOTAL = Counter(
    "agentscope_agent_reply_total",
    "智能体回复总数",
    ["agent", "outcome"],  # outcome: success/interrupted/error
)
