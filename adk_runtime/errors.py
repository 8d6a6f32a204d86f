"""错误分类 - 运行时抛出的所有异常类型

传播策略：
- 可恢复的工具失败（ToolExecutionError）转换为 function_response 错误载荷，回送给模型
- 其他错误直接传播给 run_async 的调用方，Runner 记录日志后重新抛出
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class AdkError(Exception):
    """所有运行时错误的基类"""


class SessionNotFoundError(AdkError):
    """请求的 Session 不存在（对当前 Runner 调用是致命错误）"""

    def __init__(self, app_name: str, user_id: str, session_id: str):
        self.app_name = app_name
        self.user_id = user_id
        self.session_id = session_id
        super().__init__(
            f"Session not found: app={app_name} user={user_id} session={session_id}"
        )


class ToolNotFoundError(AdkError):
    """模型调用了 Agent 未声明的工具（对当前轮次是致命错误）"""

    def __init__(self, tool_name: str, agent_name: str, available: Optional[list[str]] = None):
        self.tool_name = tool_name
        self.agent_name = agent_name
        self.available = available or []
        super().__init__(
            f"Tool '{tool_name}' not found in agent '{agent_name}'. "
            f"Available tools: {self.available}"
        )


class ToolExecutionError(AdkError):
    """
    工具执行失败

    在 Flow 中按调用捕获，转换为 function_response 的错误载荷，循环继续。
    """

    def __init__(self, tool_name: str, call_id: str, cause: BaseException):
        self.tool_name = tool_name
        self.call_id = call_id
        self.cause = cause
        super().__init__(f"Tool '{tool_name}' failed: {cause}")

    def to_response(self) -> dict[str, Any]:
        """转换为回送给模型的错误载荷"""
        return {
            'error': str(self.cause),
            'error_type': type(self.cause).__name__,
        }


class ModelTransportError(AdkError):
    """模型提供方的网络/传输失败，传播出 Agent 生成器"""

    def __init__(self, message: str, model: str = "", cause: Optional[BaseException] = None):
        self.model = model
        self.cause = cause
        super().__init__(message)


class InvalidAgentConfigurationError(AdkError):
    """构建时配置错误（缺少模型、子 Agent、图节点等），同步抛出"""


class AgentNotFoundError(AdkError):
    """跳转目标 Agent 在 Agent 树中不存在，或注册表中没有该 Agent"""

    def __init__(self, agent_name: str, root_name: Optional[str] = None):
        self.agent_name = agent_name
        if root_name is None:
            super().__init__(f"Agent '{agent_name}' is not registered")
        else:
            super().__init__(f"Agent '{agent_name}' not found in the tree rooted at '{root_name}'")


class GraphExecutionError(AdkError):
    """LangGraphAgent 执行超过安全步数上限（通常意味着环路）"""


class LlmCallsLimitExceededError(AdkError):
    """单次调用中 LLM 调用次数超过 RunConfig.max_llm_calls"""


# ==================== MCP 协议错误 ====================

class McpErrorType(str, Enum):
    """MCP 错误类型（type 判别字段）"""
    CONNECTION_ERROR = 'connection_error'
    TOOL_EXECUTION_ERROR = 'tool_execution_error'
    RESOURCE_CLOSED_ERROR = 'resource_closed_error'
    TIMEOUT_ERROR = 'timeout_error'
    INVALID_SCHEMA_ERROR = 'invalid_schema_error'
    SAMPLING_ERROR = 'sampling_error'
    INVALID_REQUEST_ERROR = 'invalid_request_error'


class McpError(AdkError):
    """
    工具传输层错误

    带有 type 判别字段，向调用方暴露，从不被静默吞掉。
    """

    def __init__(
        self,
        message: str,
        type: McpErrorType,
        original_error: Optional[BaseException] = None,
    ):
        self.type = McpErrorType(type)
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            'type': self.type.value,
            'message': str(self),
            'original_error': str(self.original_error) if self.original_error else None,
        }
