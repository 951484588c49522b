"""
全局配置模块：通过 pydantic-settings 读取 .env 环境变量
"""

from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用全局配置，从 .env 文件加载"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 应用 ──
    ENV: str = "development"  # development | production
    APP_NAME: str = "agentscope-core"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── LLM（OpenAI 协议兼容，走 LiteLLM） ──
    LLM_DEFAULT_MODEL: str = "openai/gpt-4o-mini"  # LiteLLM 格式：openai/{model}
    LLM_API_KEY: str = ""
    LLM_API_BASE: str | None = None
    LLM_TIMEOUT: int = 60  # 非流式调用超时（秒）
    LLM_STREAM_TIMEOUT: int = 120  # 流式调用超时（秒）

    # ── DashScope 原生协议 ──
    DASHSCOPE_API_KEY: str = ""
    DASHSCOPE_BASE_URL: str = "https://dashscope.aliyuncs.com"

    # ── Ollama ──
    OLLAMA_BASE_URL: str = "http://localhost:11434"

    # ── Embedding 模型 ──
    EMBEDDING_API_BASE: str = "https://api.openai.com"
    EMBEDDING_API_KEY: str = ""
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIM: int = 1536
    EMBEDDING_TIMEOUT: int = 30

    # ── 智能体 ──
    REACT_MAX_ITERS: int = 10  # ReAct 最大推理轮次
    DEFAULT_TOOL_TIMEOUT_MS: int = 60_000  # 工具兜底超时（毫秒）
    SUBAGENT_MAX_DEPTH: int = 2  # 子智能体最大嵌套深度

    # ── 会话持久化 ──
    SESSION_BACKEND: str = "json"  # json | redis | memory
    SESSION_DIR: str = "~/.agentscope/sessions"
    SESSION_TTL: int = 0  # Redis 会话 TTL（秒），0 表示不过期

    # ── Redis ──
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10

    # ── Milvus 向量数据库 ──
    MILVUS_URI: str = "http://127.0.0.1:19530"
    MILVUS_DB: str = "default"
    MILVUS_USER: str = "root"
    MILVUS_PASSWORD: str = ""

    @model_validator(mode="after")
    def _check_production_llm(self) -> "Settings":
        """生产环境必须配置 LLM 凭证或自定义端点"""
        if self.ENV == "production" and not self.LLM_API_KEY and not self.LLM_API_BASE:
            raise ValueError(
                "生产环境必须配置 LLM_API_KEY 或 LLM_API_BASE，请在 .env 中补充。"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """单例获取配置（带缓存）"""
    return Settings()
