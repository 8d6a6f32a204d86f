"""
tools 模块 - 工具定义

- BaseTool: 工具基类
- FunctionTool / @tool: 把普通函数包装为工具
- ToolContext: 工具执行时的上下文（state、actions、artifact、memory）
- 内置工具: transfer_to_agent、exit_loop、load_memory、preload_memory、AgentTool
"""

from .base_tool import BaseTool
from .function_tool import FunctionTool, Tool, as_tool, tool
from .tool_context import ToolContext
from .transfer_to_agent_tool import ExitLoopTool, TransferToAgentTool, create_transfer_tool, exit_loop
from .memory_tools import LoadMemoryTool, PreloadMemoryTool, load_memory, preload_memory
from .agent_tool import AgentTool

__all__ = [
    'AgentTool',
    'BaseTool',
    'ExitLoopTool',
    'FunctionTool',
    'LoadMemoryTool',
    'PreloadMemoryTool',
    'Tool',
    'ToolContext',
    'TransferToAgentTool',
    'as_tool',
    'create_transfer_tool',
    'exit_loop',
    'load_memory',
    'preload_memory',
    'tool',
]
