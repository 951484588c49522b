from agentscope_core.tool.base import BaseTool
from agentscope_core.tool.file_tools import insert_text_file, view_text_file, write_text_file
from agentscope_core.tool.function_tool import FunctionTool
from agentscope_core.tool.response import ToolResponse
from agentscope_core.tool.subagent import SubAgentTool
from agentscope_core.tool.toolkit import Toolkit, ToolGroup

__all__ = [
    "BaseTool",
    "FunctionTool",
    "SubAgentTool",
    "ToolGroup",
    "ToolResponse",
    "Toolkit",
    "insert_text_file",
    "view_text_file",
    "write_text_file",
]
