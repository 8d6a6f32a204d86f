"""
Flow 层 - 流程控制层

这一层负责编排 LLM 调用和工具执行的循环，提供：
- BaseFlow: 流程控制的抽象基类
- SimpleFlow: Reason-Act 循环实现
- RequestProcessor: 请求处理器协议

设计理念:
- Flow 管理 "思考-行动" 循环
- Flow 负责工具调用的执行与 Agent 跳转
- Flow 不关心具体使用哪个 LLM（由 Model 层提供）
- Flow 不关心会话持久化（由 Runner 负责）
"""

from .base_flow import BaseFlow, RequestProcessor
from .contents import get_contents
from .instructions import inject_session_state
from .simple_flow import SimpleFlow

__all__ = [
    'BaseFlow',
    'RequestProcessor',
    'SimpleFlow',
    'get_contents',
    'inject_session_state',
]
