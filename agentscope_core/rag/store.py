"""
向量存储抽象 + 进程内实现（余弦相似度）
"""

import math
from abc import ABC, abstractmethod

import structlog

from agentscope_core.rag.document import Document

log = structlog.get_logger()


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class VDBStoreBase(ABC):
    """向量库基类：文档需已携带 embedding"""

    @abstractmethod
    async def add(self, documents: list[Document]) -> None:
        ...

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        limit: int,
        score_threshold: float | None = None,
    ) -> list[Document]:
        """按相似度降序返回，score 字段为相似度"""
        ...

    @abstractmethod
    async def delete(self, ids: list[str]) -> None:
        ...


class InMemoryStore(VDBStoreBase):
    """进程内向量存储，适合小数据量和测试"""

    def __init__(self, dimensions: int | None = None):
        self.dimensions = dimensions
        self._docs: dict[str, Document] = {}

    def _check_dimensions(self, embedding: list[float]) -> None:
        if self.dimensions is None:
            self.dimensions = len(embedding)
        elif len(embedding) != self.dimensions:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {len(embedding)}"
            )

    async def add(self, documents: list[Document]) -> None:
        for doc in documents:
            if doc.embedding is None:
                raise ValueError(f"Document {doc.id} has no embedding")
            self._check_dimensions(doc.embedding)
            self._docs[doc.id] = doc
        log.debug("文档已写入内存向量库", count=len(documents), total=len(self._docs))

    async def search(
        self,
        query_embedding: list[float],
        limit: int,
        score_threshold: float | None = None,
    ) -> list[Document]:
        self._check_dimensions(query_embedding)
        scored: list[Document] = []
        for doc in self._docs.values():
            score = cosine_similarity(query_embedding, doc.embedding or [])
            if score_threshold is not None and score < score_threshold:
                continue
            scored.append(doc.model_copy(update={"score": score}))
        scored.sort(key=lambda d: d.score or 0.0, reverse=True)
        return scored[:limit]

    async def delete(self, ids: list[str]) -> None:
        for doc_id in ids:
            self._docs.pop(doc_id, None)

    def __len__(self) -> int:
        return len(self._docs)
