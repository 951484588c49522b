from agentscope_core.formatter.base import FormatterBase, MultiAgentFormatterBase
from agentscope_core.formatter.dashscope import DashScopeChatFormatter, DashScopeMultiAgentFormatter
from agentscope_core.formatter.ollama import OllamaChatFormatter, OllamaMultiAgentFormatter
from agentscope_core.formatter.openai import OpenAIChatFormatter, OpenAIMultiAgentFormatter

__all__ = [
    "DashScopeChatFormatter",
    "DashScopeMultiAgentFormatter",
    "FormatterBase",
    "MultiAgentFormatterBase",
    "OllamaChatFormatter",
    "OllamaMultiAgentFormatter",
    "OpenAIChatFormatter",
    "OpenAIMultiAgentFormatter",
]
