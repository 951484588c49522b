"""
知识库：embedding 模型 + 向量存储
"""

from abc import ABC, abstractmethod

import structlog

from agentscope_core.rag.document import Document, RetrieveConfig
from agentscope_core.rag.embedding import EmbeddingModelBase
from agentscope_core.rag.store import VDBStoreBase

log = structlog.get_logger()


class KnowledgeBase(ABC):
    """知识库基类"""

    @abstractmethod
    async def add_documents(self, documents: list[Document]) -> None:
        ...

    @abstractmethod
    async def retrieve(self, query: str, config: RetrieveConfig | None = None) -> list[Document]:
        ...


class SimpleKnowledge(KnowledgeBase):
    """
    简单知识库：写入时批量向量化，检索时按相似度过滤、降序返回。
    """

    def __init__(self, embedding_model: EmbeddingModelBase, store: VDBStoreBase):
        self.embedding_model = embedding_model
        self.store = store

    async def add_documents(self, documents: list[Document]) -> None:
        if not documents:
            return

        texts = [doc.get_text() for doc in documents]
        embeddings = await self.embedding_model.embed(texts)
        for doc, embedding in zip(documents, embeddings):
            doc.embedding = embedding

        await self.store.add(documents)
        log.info("知识库文档已写入", count=len(documents))

    async def retrieve(self, query: str, config: RetrieveConfig | None = None) -> list[Document]:
        if not query or not query.strip():
            return []

        config = config or RetrieveConfig()
        query_embedding = await self.embedding_model.embed_single(query)
        documents = await self.store.search(query_embedding, config.limit, config.score_threshold)

        results = [d for d in documents if (d.score or 0.0) >= config.score_threshold]
        results.sort(key=lambda d: d.score or 0.0, reverse=True)
        log.debug("知识库检索完成", query_preview=query[:50], hits=len(results))
        return results[: config.limit]
