"""
应用级异常层次：所有异常都派生自 AgentScopeError
"""


class AgentScopeError(Exception):
    """框架内所有异常的基类"""


class ModelError(AgentScopeError):
    """模型调用失败（认证、限流、超时、连接、协议错误）"""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ToolError(AgentScopeError):
    """工具注册或调用相关错误"""


class AgentInterruptedError(AgentScopeError):
    """智能体在推理/行动过程中被中断"""


class PlanNotebookError(AgentScopeError):
    """计划笔记本状态不满足操作前提"""


class SessionError(AgentScopeError):
    """会话存储读写失败"""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause
