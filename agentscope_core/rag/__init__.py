from agentscope_core.rag.document import Document, RetrieveConfig
from agentscope_core.rag.embedding import (
    DashScopeTextEmbedding,
    EmbeddingModelBase,
    OllamaTextEmbedding,
    OpenAITextEmbedding,
)
from agentscope_core.rag.hooks import GenericRAGHook
from agentscope_core.rag.knowledge import KnowledgeBase, SimpleKnowledge
from agentscope_core.rag.milvus_store import MilvusStore
from agentscope_core.rag.reader import TextReader
from agentscope_core.rag.store import InMemoryStore, VDBStoreBase
from agentscope_core.rag.tools import KnowledgeRetrievalTools

__all__ = [
    "DashScopeTextEmbedding",
    "Document",
    "EmbeddingModelBase",
    "GenericRAGHook",
    "InMemoryStore",
    "KnowledgeBase",
    "KnowledgeRetrievalTools",
    "MilvusStore",
    "OllamaTextEmbedding",
    "OpenAITextEmbedding",
    "RetrieveConfig",
    "SimpleKnowledge",
    "TextReader",
    "VDBStoreBase",
]
