"""ToolContext - 工具调用时的能力对象"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..agents.callback_context import CallbackContext
from ..events import EventActions

if TYPE_CHECKING:
    from ..agents.invocation_context import InvocationContext
    from ..memory import SearchResult


class ToolContext(CallbackContext):
    """
    工具上下文

    把一次工具调用限定在当前会话的 state / artifact / memory 上：
    - function_call_id: 触发本次执行的调用 id
    - state: 写入进入本次 function_response 事件的 state_delta
    - actions: 设置 transfer_to_agent / escalate / skip_summarization
    - save_artifact / load_artifact / list_artifacts / search_memory
    """

    def __init__(
        self,
        invocation_context: 'InvocationContext',
        *,
        function_call_id: Optional[str] = None,
        event_actions: Optional[EventActions] = None,
    ):
        super().__init__(invocation_context, event_actions=event_actions)
        self.function_call_id = function_call_id

    async def list_artifacts(self) -> list[str]:
        """列出当前会话可见的 artifact 文件名"""
        ctx = self._invocation_context
        if ctx.artifact_service is None:
            raise ValueError("Artifact service is not initialized.")
        return await ctx.artifact_service.list_artifact_keys(
            app_name=ctx.app_name,
            user_id=ctx.user_id,
            session_id=ctx.session.id,
        )

    async def search_memory(self, query: str) -> 'SearchResult':
        """
        搜索记忆（跨会话）

        Raises:
            ValueError: 未配置 memory service
        """
        ctx = self._invocation_context
        if ctx.memory_service is None:
            raise ValueError("Memory service is not available.")
        return await ctx.memory_service.search_memory(
            app_name=ctx.app_name,
            user_id=ctx.user_id,
            query=query,
        )
