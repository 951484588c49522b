from agentscope_core.model.base import ChatModelBase, ChatResponse, ChatUsage, GenerateOptions
from agentscope_core.model.dashscope_model import DashScopeChatModel
from agentscope_core.model.ollama_model import OllamaChatModel, OllamaOptions
from agentscope_core.model.openai_model import OpenAIChatModel

__all__ = [
    "ChatModelBase",
    "ChatResponse",
    "ChatUsage",
    "DashScopeChatModel",
    "GenerateOptions",
    "OllamaChatModel",
    "OllamaOptions",
    "OpenAIChatModel",
]
