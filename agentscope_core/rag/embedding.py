"""
Embedding 客户端：OpenAI / DashScope / Ollama 三种协议，均经 httpx 调用

- OpenAI：POST {base}/v1/embeddings
- DashScope：POST {base}/api/v1/services/embeddings/text-embedding/text-embedding
- Ollama：POST {base}/api/embed
"""

from abc import ABC, abstractmethod

import httpx
import structlog

from agentscope_core.config import get_settings

log = structlog.get_logger()
settings = get_settings()


class EmbeddingModelBase(ABC):
    """Embedding 模型基类"""

    model_name: str
    dimensions: int | None = None

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        批量生成 embedding 向量。

        Args:
            texts: 待向量化的文本列表

        Returns:
            与 texts 等长的向量列表
        """
        if not texts:
            return []

        log.debug("Embedding 请求", count=len(texts), model=self.model_name)
        try:
            embeddings = await self._embed(texts)
        except Exception as e:
            log.error("Embedding 调用失败", model=self.model_name, error=str(e), exc_info=True)
            raise

        if len(embeddings) != len(texts):
            raise ValueError(f"Embedding 返回数量不匹配：期望 {len(texts)}，实际 {len(embeddings)}")
        log.debug("Embedding 完成", count=len(embeddings), dim=len(embeddings[0]))
        return embeddings

    async def embed_single(self, text: str) -> list[float]:
        """单条文本向量化"""
        results = await self.embed([text])
        return results[0]

    @abstractmethod
    async def _embed(self, texts: list[str]) -> list[list[float]]:
        ...


class OpenAITextEmbedding(EmbeddingModelBase):
    """OpenAI /v1/embeddings 协议（兼容 bge-m3 等私有部署）"""

    def __init__(
        self,
        model_name: str | None = None,
        api_base: str | None = None,
        api_key: str | None = None,
        dimensions: int | None = None,
        timeout: int | None = None,
    ):
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.api_base = (api_base or settings.EMBEDDING_API_BASE).rstrip("/")
        self.api_key = api_key or settings.EMBEDDING_API_KEY
        self.dimensions = dimensions
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        payload: dict = {"model": self.model_name, "input": texts}
        if self.dimensions:
            payload["dimensions"] = self.dimensions

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.api_base}/v1/embeddings",
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            )
            resp.raise_for_status()
            data = resp.json()

        # OpenAI 协议：data.data[i].embedding，按 index 排序
        items = sorted(data["data"], key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]


class DashScopeTextEmbedding(EmbeddingModelBase):
    """DashScope 文本向量（text-embedding-v3 等）"""

    def __init__(
        self,
        model_name: str = "text-embedding-v3",
        api_key: str | None = None,
        base_url: str | None = None,
        dimensions: int | None = None,
        timeout: int | None = None,
    ):
        self.model_name = model_name
        self.api_key = api_key or settings.DASHSCOPE_API_KEY
        self.base_url = (base_url or settings.DASHSCOPE_BASE_URL).rstrip("/")
        self.dimensions = dimensions
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        payload: dict = {"model": self.model_name, "input": {"texts": texts}}
        if self.dimensions:
            payload["parameters"] = {"dimension": self.dimensions}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.base_url}/api/v1/services/embeddings/text-embedding/text-embedding",
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            )
            resp.raise_for_status()
            data = resp.json()

        items = sorted(data["output"]["embeddings"], key=lambda item: item.get("text_index", 0))
        return [item["embedding"] for item in items]


class OllamaTextEmbedding(EmbeddingModelBase):
    """Ollama /api/embed"""

    def __init__(
        self,
        model_name: str = "nomic-embed-text",
        host: str | None = None,
        dimensions: int | None = None,
        timeout: int | None = None,
    ):
        self.model_name = model_name
        self.host = (host or settings.OLLAMA_BASE_URL).rstrip("/")
        self.dimensions = dimensions
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        payload: dict = {"model": self.model_name, "input": texts}
        if self.dimensions:
            payload["dimensions"] = self.dimensions

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(f"{self.host}/api/embed", json=payload)
            resp.raise_for_status()
            data = resp.json()
        return data["embeddings"]
