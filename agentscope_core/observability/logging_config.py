"""
结构化日志配置

- structlog 日志：合并 contextvars（trace_id / session_id / agent），开发环境彩色输出，生产环境 JSON
- 标准库日志（uvicorn、httpx、LiteLLM、pymilvus）经 ProcessorFormatter 使用同一渲染器输出
"""

import logging
import sys

import structlog

_HANDLER_NAME = "agentscope"

# 第三方库的逐请求 INFO 日志压到 WARNING
_NOISY_LOGGERS = ("httpx", "httpcore", "LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "pymilvus")


def _renderer(env: str):
    if env == "production":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(env: str = "development", level: str = "INFO") -> None:
    """初始化结构化日志，可重复调用"""
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    timestamper = structlog.processors.TimeStamper(fmt="iso")
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
    ]
    if env == "production":
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(env))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_logger_name,
                structlog.processors.add_log_level,
                timestamper,
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(env),
            ],
        )
    )
    handler.set_name(_HANDLER_NAME)
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
