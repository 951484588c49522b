"""
Milvus 向量存储：pymilvus Collection，HNSW + COSINE 索引

pymilvus 为同步客户端，所有调用经 asyncio.to_thread 放到线程池执行。
"""

import asyncio
import json

import structlog
from pymilvus import (
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    connections,
    utility,
)

from agentscope_core.config import get_settings
from agentscope_core.message import TextBlock
from agentscope_core.rag.document import Document
from agentscope_core.rag.store import VDBStoreBase

log = structlog.get_logger()
settings = get_settings()


def get_milvus_connection(alias: str = "default") -> str:
    """获取 Milvus 连接（使用 alias 管理）"""
    if connections.has_connection(alias):
        return alias

    connections.connect(
        alias=alias,
        uri=settings.MILVUS_URI,
        user=settings.MILVUS_USER,
        password=settings.MILVUS_PASSWORD,
        db_name=settings.MILVUS_DB,
    )
    log.info("Milvus 已连接", uri=settings.MILVUS_URI, db=settings.MILVUS_DB)
    return alias


class MilvusStore(VDBStoreBase):
    """Milvus 向量存储，仅支持文本文档"""

    def __init__(self, collection_name: str, dimensions: int | None = None, alias: str = "default"):
        self.collection_name = collection_name
        self.dimensions = dimensions or settings.EMBEDDING_DIM
        self.alias = alias
        self._collection: Collection | None = None

    def _schema(self) -> CollectionSchema:
        fields = [
            FieldSchema(name="doc_id", dtype=DataType.VARCHAR, max_length=64, is_primary=True),
            FieldSchema(name="content", dtype=DataType.VARCHAR, max_length=8000, description="文档分块文本"),
            FieldSchema(name="metadata", dtype=DataType.VARCHAR, max_length=4000, description="元数据 JSON"),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.dimensions),
        ]
        return CollectionSchema(fields=fields, description="知识库文档分块向量集合")

    def _ensure_collection(self) -> Collection:
        """确保集合存在并创建索引"""
        if self._collection is not None:
            return self._collection

        alias = get_milvus_connection(self.alias)
        if utility.has_collection(self.collection_name, using=alias):
            collection = Collection(name=self.collection_name, using=alias)
        else:
            collection = Collection(name=self.collection_name, schema=self._schema(), using=alias)
            collection.create_index(
                field_name="embedding",
                index_params={
                    "metric_type": "COSINE",
                    "index_type": "HNSW",
                    "params": {"M": 16, "efConstruction": 256},
                },
            )
            log.info("Milvus 集合已创建", collection=self.collection_name, dim=self.dimensions)

        collection.load()
        self._collection = collection
        return collection

    def _insert(self, documents: list[Document]) -> None:
        collection = self._ensure_collection()
        collection.insert([
            [doc.id for doc in documents],
            [doc.get_text() for doc in documents],
            [json.dumps(doc.metadata, ensure_ascii=False) for doc in documents],
            [doc.embedding for doc in documents],
        ])
        collection.flush()

    def _search(self, query_embedding: list[float], limit: int) -> list[Document]:
        collection = self._ensure_collection()
        results = collection.search(
            data=[query_embedding],
            anns_field="embedding",
            param={"metric_type": "COSINE", "params": {"ef": 128}},
            limit=limit,
            output_fields=["doc_id", "content", "metadata"],
        )
        return [
            Document(
                id=hit.entity.get("doc_id"),
                content=TextBlock(text=hit.entity.get("content")),
                metadata=json.loads(hit.entity.get("metadata") or "{}"),
                score=hit.score,
            )
            for hit in results[0]
        ]

    def _delete(self, ids: list[str]) -> None:
        self._ensure_collection().delete(f"doc_id in {json.dumps(ids)}")

    async def add(self, documents: list[Document]) -> None:
        if not documents:
            return
        for doc in documents:
            if doc.embedding is None:
                raise ValueError(f"Document {doc.id} has no embedding")
        await asyncio.to_thread(self._insert, documents)
        log.debug("文档已写入 Milvus", collection=self.collection_name, count=len(documents))

    async def search(
        self,
        query_embedding: list[float],
        limit: int,
        score_threshold: float | None = None,
    ) -> list[Document]:
        docs = await asyncio.to_thread(self._search, query_embedding, limit)
        if score_threshold is not None:
            docs = [d for d in docs if (d.score or 0.0) >= score_threshold]
        return docs

    async def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        await asyncio.to_thread(self._delete, ids)
