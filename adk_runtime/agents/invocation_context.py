"""InvocationContext - 单次调用的临时上下文"""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from ..errors import LlmCallsLimitExceededError

if TYPE_CHECKING:
    from ..artifacts import BaseArtifactService
    from ..memory import BaseMemoryService
    from ..models import Content
    from ..sessions import BaseSessionService, Session
    from .base_agent import BaseAgent


class StreamingMode(Enum):
    """流式模式"""
    NONE = 'none'
    SSE = 'sse'


@dataclass
class RunConfig:
    """
    单次运行的配置

    Attributes:
        streaming_mode: SSE 时模型以增量方式返回，产生 partial 事件
        max_llm_calls: 单次调用中允许的 LLM 调用总数，<= 0 表示不限制
    """
    streaming_mode: StreamingMode = StreamingMode.NONE
    max_llm_calls: int = 500

    @property
    def stream(self) -> bool:
        return self.streaming_mode == StreamingMode.SSE


@dataclass
class _LlmCallCounter:
    """同一次调用内所有分支共享的计数器"""
    count: int = 0


@dataclass
class InvocationContext:
    """
    单次调用的临时上下文

    核心设计理念:
    - InvocationContext 是短暂的，只存在于一次 Runner.run_async 期间
    - 它持有执行需要的所有引用：Session、服务、当前 Agent、运行配置
    - 进入子 Agent 时通过 model_copy 派生，计数器在派生副本之间共享
    """

    session_service: 'BaseSessionService'
    session: 'Session'
    agent: 'BaseAgent'

    invocation_id: str = field(default_factory=lambda: InvocationContext.new_invocation_id())
    branch: Optional[str] = None
    """Agent 分支路径，形如 agent_1.agent_2，ParallelAgent 用它隔离各子 Agent 的历史"""

    user_content: Optional['Content'] = None
    run_config: RunConfig = field(default_factory=RunConfig)

    memory_service: Optional['BaseMemoryService'] = None
    artifact_service: Optional['BaseArtifactService'] = None

    end_invocation: bool = False
    """置为 True 时，当前调用在下一个检查点结束"""

    start_time: float = field(default_factory=time.time)
    _llm_calls: _LlmCallCounter = field(default_factory=_LlmCallCounter, repr=False)

    @staticmethod
    def new_invocation_id() -> str:
        return 'e-' + str(uuid.uuid4())

    @property
    def app_name(self) -> str:
        return self.session.app_name

    @property
    def user_id(self) -> str:
        return self.session.user_id

    @property
    def elapsed_time(self) -> float:
        """获取已用时间（秒）"""
        return time.time() - self.start_time

    def model_copy(self, **updates: Any) -> 'InvocationContext':
        """派生新的上下文（浅拷贝，共享 Session 与计数器）"""
        return dataclasses.replace(self, **updates)

    def increment_llm_call_count(self) -> None:
        """记录一次 LLM 调用，超过上限时抛出 LlmCallsLimitExceededError"""
        self._llm_calls.count += 1
        limit = self.run_config.max_llm_calls
        if limit > 0 and self._llm_calls.count > limit:
            raise LlmCallsLimitExceededError(
                f"Max number of llm calls limit of {limit} exceeded"
            )
