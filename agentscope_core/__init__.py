"""
agentscope-core：ReAct 智能体、多后端消息格式化、计划笔记本、RAG 与会话状态持久化
"""

__version__ = "0.1.0"
