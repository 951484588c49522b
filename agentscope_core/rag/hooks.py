"""
GenericRAGHook：推理前自动检索知识库并注入上下文

- 在 PreReasoningEvent 上工作：以最近一条用户消息为查询
- enable_only_for_user_queries=True 时，只在最近一条非系统消息来自用户时检索，
  工具调用之后的推理轮次不重复检索
- 检索结果作为一条 system 消息插入在第一条消息（系统提示词）之后
"""

import structlog

from agentscope_core.hooks import Hook, HookEvent, PreReasoningEvent
from agentscope_core.message import Msg
from agentscope_core.rag.document import Document, RetrieveConfig
from agentscope_core.rag.knowledge import KnowledgeBase

log = structlog.get_logger()


def format_documents(documents: list[Document]) -> str:
    lines = [
        f"[{i}] (score: {doc.score:.2f}) {doc.get_text()}"
        for i, doc in enumerate(documents, start=1)
    ]
    return (
        "<retrieved_knowledge>\n"
        "The following content is retrieved from the knowledge base, use it if it is relevant "
        "to the user's query:\n"
        + "\n".join(lines)
        + "\n</retrieved_knowledge>"
    )


class GenericRAGHook(Hook):
    """通用 RAG 钩子"""

    priority = 50

    def __init__(
        self,
        knowledge: KnowledgeBase,
        config: RetrieveConfig | None = None,
        enable_only_for_user_queries: bool = True,
    ):
        self.knowledge = knowledge
        self.config = config or RetrieveConfig()
        self.enable_only_for_user_queries = enable_only_for_user_queries

    @staticmethod
    def _latest_query(messages: list[Msg], only_user: bool) -> str:
        for msg in reversed(messages):
            if msg.role == "system":
                continue
            if msg.role == "user" and not msg.has_content_blocks("tool_result"):
                return msg.get_text_content()
            if only_user:
                return ""
        return ""

    async def on_event(self, event: HookEvent) -> HookEvent:
        if not isinstance(event, PreReasoningEvent):
            return event

        # 计划提示等以 user 身份追加的系统提示不作为查询
        messages = [m for m in event.input_messages if not m.metadata.get("is_hint")]
        query = self._latest_query(messages, self.enable_only_for_user_queries)
        if not query.strip():
            return event

        documents = await self.knowledge.retrieve(query, self.config)
        if not documents:
            log.debug("知识库无命中", query_preview=query[:50])
            return event

        knowledge_msg = Msg("system", format_documents(documents), "system")
        insert_at = 1 if len(event.input_messages) > 1 else 0
        event.input_messages.insert(insert_at, knowledge_msg)
        log.info("知识已注入上下文", hits=len(documents))
        return event
