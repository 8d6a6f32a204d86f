"""
adk_runtime - Agent 执行与会话运行时

核心组件:
- BaseAgent / LlmAgent: Agent 定义（Pydantic BaseModel）
- SequentialAgent / ParallelAgent / LoopAgent / LangGraphAgent: 编排 Agent
- Runner: 无状态执行引擎（绑定 Agent）
- AgentBuilder: 链式构建 Agent + Session + Runner
- Session / State / SessionService: 会话与状态持久化
- Event / EventActions: 事件系统
- Tool / BaseTool / ToolContext: 工具
- Config: 配置管理

架构:
- Runner: 执行编排（绑定 Agent）
- Flow: Reason-Act 循环 + 工具执行
- Model: LLM 抽象 + 请求/响应格式化
"""

from .errors import (
    AdkError,
    AgentNotFoundError,
    GraphExecutionError,
    InvalidAgentConfigurationError,
    LlmCallsLimitExceededError,
    McpError,
    McpErrorType,
    ModelTransportError,
    SessionNotFoundError,
    ToolExecutionError,
    ToolNotFoundError,
)
from .models import BaseLlm, Content, FunctionCall, FunctionResponse, LlmRequest, LlmResponse, OpenAILlm, Part
from .events import Event, EventActions
from .sessions import BaseSessionService, InMemorySessionService, Session, SqliteSessionService, State
from .memory import BaseMemoryService, InMemoryMemoryService
from .artifacts import BaseArtifactService, InMemoryArtifactService

# agents 必须先于 tools 导入（tools 依赖 agents.callback_context）
from .agents import (
    Agent,
    AgentBuilder,
    BaseAgent,
    BuiltAgent,
    CallbackContext,
    EnhancedRunner,
    InvocationContext,
    LangGraphAgent,
    LangGraphNode,
    LlmAgent,
    LoopAgent,
    ParallelAgent,
    RunConfig,
    SequentialAgent,
    StreamingMode,
)
from .tools import AgentTool, BaseTool, FunctionTool, Tool, ToolContext, exit_loop, load_memory, tool
from .flows import BaseFlow, SimpleFlow
from .config import Config, LLMConfig, RunnerConfig, SessionConfig, get_config, set_config, setup_logging
from .runner import InMemoryRunner, Runner
from .registry import AgentRegistry, BuilderSource, FactorySource, InstanceSource

__all__ = [
    # Agent
    'Agent',
    'AgentBuilder',
    'BaseAgent',
    'BuiltAgent',
    'EnhancedRunner',
    'LangGraphAgent',
    'LangGraphNode',
    'LlmAgent',
    'LoopAgent',
    'ParallelAgent',
    'SequentialAgent',
    # 执行
    'CallbackContext',
    'InMemoryRunner',
    'InvocationContext',
    'RunConfig',
    'Runner',
    'StreamingMode',
    # 宿主层
    'AgentRegistry',
    'BuilderSource',
    'FactorySource',
    'InstanceSource',
    # 会话
    'BaseSessionService',
    'InMemorySessionService',
    'Session',
    'SqliteSessionService',
    'State',
    'Event',
    'EventActions',
    # 服务
    'BaseArtifactService',
    'BaseMemoryService',
    'InMemoryArtifactService',
    'InMemoryMemoryService',
    # 工具
    'AgentTool',
    'BaseTool',
    'FunctionTool',
    'Tool',
    'ToolContext',
    'exit_loop',
    'load_memory',
    'tool',
    # Flow 层
    'BaseFlow',
    'SimpleFlow',
    # Model 层
    'BaseLlm',
    'Content',
    'FunctionCall',
    'FunctionResponse',
    'LlmRequest',
    'LlmResponse',
    'OpenAILlm',
    'Part',
    # 配置
    'Config',
    'LLMConfig',
    'RunnerConfig',
    'SessionConfig',
    'get_config',
    'set_config',
    'setup_logging',
    # 错误
    'AdkError',
    'AgentNotFoundError',
    'GraphExecutionError',
    'InvalidAgentConfigurationError',
    'LlmCallsLimitExceededError',
    'McpError',
    'McpErrorType',
    'ModelTransportError',
    'SessionNotFoundError',
    'ToolExecutionError',
    'ToolNotFoundError',
]

__version__ = '0.5.0'
