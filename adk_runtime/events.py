"""事件系统 - 会话历史中的每一条记录都是一个 Event"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from .models.content import Content, FunctionCall, FunctionResponse


@dataclass
class EventActions:
    """
    事件动作 - 描述事件触发的后续动作

    - state_delta: 状态变更（由 SessionService.append_event 应用）
    - artifact_delta: 本事件保存的 artifact 文件名 -> 版本号
    - transfer_to_agent: 跳转到指定 Agent
    - escalate: 向上级报告/退出 LoopAgent
    - skip_summarization: 工具结果直接作为最终响应，不再回送给模型
    """
    state_delta: dict[str, Any] = field(default_factory=dict)
    artifact_delta: dict[str, int] = field(default_factory=dict)
    transfer_to_agent: Optional[str] = None
    escalate: bool = False
    skip_summarization: bool = False

    def merge(self, other: 'EventActions') -> None:
        """把另一个 EventActions 合并进来（后者覆盖前者）"""
        self.state_delta.update(other.state_delta)
        self.artifact_delta.update(other.artifact_delta)
        if other.transfer_to_agent:
            self.transfer_to_agent = other.transfer_to_agent
        self.escalate = self.escalate or other.escalate
        self.skip_summarization = self.skip_summarization or other.skip_summarization

    def to_dict(self) -> dict[str, Any]:
        return {
            'state_delta': self.state_delta,
            'artifact_delta': self.artifact_delta,
            'transfer_to_agent': self.transfer_to_agent,
            'escalate': self.escalate,
            'skip_summarization': self.skip_summarization,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'EventActions':
        return cls(
            state_delta=data.get('state_delta') or {},
            artifact_delta=data.get('artifact_delta') or {},
            transfer_to_agent=data.get('transfer_to_agent'),
            escalate=data.get('escalate', False),
            skip_summarization=data.get('skip_summarization', False),
        )


@dataclass
class Event:
    """
    事件 - 记录 agent 执行过程中的每一步

    核心设计理念: 所有操作都是事件，事件组成会话历史。
    文本、函数调用、函数响应都放在 content.parts 中，
    调用与响应通过 call id 关联。

    partial=True 的事件携带到目前为止累积的文本，不会被持久化，
    之后总会跟随一个携带完整内容的非 partial 事件。
    """
    author: str = 'user'
    """产生此事件的 Agent 名称，或 'user'"""

    content: Optional[Content] = None
    actions: EventActions = field(default_factory=EventActions)
    invocation_id: str = ''
    branch: Optional[str] = None
    """Agent 分支路径，形如 parent.child，用于 ParallelAgent 隔离历史"""

    partial: bool = False
    long_running_tool_ids: set[str] = field(default_factory=set)

    # 模型侧错误
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    id: str = field(default_factory=lambda: Event.new_id())
    timestamp: float = field(default_factory=time.time)

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex[:8]

    # ==================== 便捷方法 ====================

    @property
    def text(self) -> str:
        """事件中所有文本片段"""
        return self.content.text if self.content else ''

    def get_function_calls(self) -> list[FunctionCall]:
        if not self.content:
            return []
        return [p.function_call for p in self.content.parts if p.function_call]

    def get_function_responses(self) -> list[FunctionResponse]:
        if not self.content:
            return []
        return [p.function_response for p in self.content.parts if p.function_response]

    def is_final_response(self) -> bool:
        """
        是否是最终响应

        skip_summarization 的工具结果也视为最终响应；
        否则要求不含函数调用/响应且不是流式增量
        """
        if self.actions.skip_summarization or self.long_running_tool_ids:
            return True
        return (
            not self.get_function_calls()
            and not self.get_function_responses()
            and not self.partial
        )

    # ==================== 序列化 ====================

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'invocation_id': self.invocation_id,
            'author': self.author,
            'timestamp': self.timestamp,
            'content': self.content.to_dict() if self.content else None,
            'actions': self.actions.to_dict(),
            'branch': self.branch,
            'partial': self.partial,
            'long_running_tool_ids': sorted(self.long_running_tool_ids),
            'error_code': self.error_code,
            'error_message': self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        content = data.get('content')
        return cls(
            id=data['id'],
            invocation_id=data.get('invocation_id', ''),
            author=data.get('author', 'user'),
            timestamp=data.get('timestamp', time.time()),
            content=Content.from_dict(content) if content else None,
            actions=EventActions.from_dict(data.get('actions') or {}),
            branch=data.get('branch'),
            partial=data.get('partial', False),
            long_running_tool_ids=set(data.get('long_running_tool_ids') or []),
            error_code=data.get('error_code'),
            error_message=data.get('error_message'),
        )
