"""agents 模块 - Agent 定义与执行上下文"""

from .invocation_context import InvocationContext, RunConfig, StreamingMode
from .callback_context import CallbackContext
from .base_agent import BaseAgent, BeforeAgentCallback, AfterAgentCallback
from .llm_agent import LlmAgent, Agent
from .sequential_agent import SequentialAgent
from .loop_agent import LoopAgent
from .parallel_agent import ParallelAgent
from .langgraph_agent import LangGraphAgent, LangGraphNode
from .agent_builder import AgentBuilder, AgentBuilderConfig, BuiltAgent, EnhancedRunner

__all__ = [
    # 基类
    'BaseAgent',
    # LLM Agent
    'LlmAgent',
    'Agent',  # LlmAgent 的别名
    # 编排 Agent
    'SequentialAgent',
    'LoopAgent',
    'ParallelAgent',
    'LangGraphAgent',
    'LangGraphNode',
    # 构建器
    'AgentBuilder',
    'AgentBuilderConfig',
    'BuiltAgent',
    'EnhancedRunner',
    # 上下文
    'CallbackContext',
    'InvocationContext',
    'RunConfig',
    'StreamingMode',
    # 回调类型
    'BeforeAgentCallback',
    'AfterAgentCallback',
]
