"""
Agentic RAG：以工具形式把检索能力交给智能体自行决定何时检索
"""

from agentscope_core.rag.document import RetrieveConfig
from agentscope_core.rag.hooks import format_documents
from agentscope_core.rag.knowledge import KnowledgeBase
from agentscope_core.tool.response import ToolResponse


class KnowledgeRetrievalTools:
    def __init__(self, knowledge: KnowledgeBase, config: RetrieveConfig | None = None):
        self.knowledge = knowledge
        self.config = config or RetrieveConfig()

    async def retrieve_knowledge(self, query: str, limit: int | None = None) -> ToolResponse:
        """Retrieve relevant documents from the knowledge base.

        Args:
            query (str): The query to search the knowledge base with. Rewrite the user's
                question into a self-contained query when necessary.
            limit (int | None): The maximum number of documents to return.
        """
        config = self.config
        if limit is not None:
            config = config.model_copy(update={"limit": max(1, limit)})

        documents = await self.knowledge.retrieve(query, config)
        if not documents:
            return ToolResponse.text("No relevant documents found in the knowledge base.")
        return ToolResponse.text(format_documents(documents), hits=len(documents))
