"""CallbackContext - 回调与工具可见的受限上下文"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..events import EventActions
from ..sessions.state import State

if TYPE_CHECKING:
    from ..models import Content, Part
    from .invocation_context import InvocationContext


async def invoke_callback(callback: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """调用回调，兼容同步函数与协程函数"""
    result = callback(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class CallbackContext:
    """
    Agent/模型回调的上下文

    state 的写入只记录到 event_actions.state_delta，
    随事件经 append_event 提交，从不直接修改 Session。
    """

    def __init__(
        self,
        invocation_context: 'InvocationContext',
        event_actions: Optional[EventActions] = None,
    ):
        self._invocation_context = invocation_context
        self._event_actions = event_actions or EventActions()
        self._state = State(
            value=invocation_context.session.state,
            delta=self._event_actions.state_delta,
        )

    @property
    def invocation_id(self) -> str:
        return self._invocation_context.invocation_id

    @property
    def agent_name(self) -> str:
        return self._invocation_context.agent.name

    @property
    def user_content(self) -> Optional['Content']:
        return self._invocation_context.user_content

    @property
    def state(self) -> State:
        return self._state

    @property
    def actions(self) -> EventActions:
        return self._event_actions

    # ==================== Artifact ====================

    async def load_artifact(self, filename: str, version: Optional[int] = None) -> Optional['Part']:
        """加载当前会话的 artifact"""
        ctx = self._invocation_context
        if ctx.artifact_service is None:
            raise ValueError("Artifact service is not initialized.")
        return await ctx.artifact_service.load_artifact(
            app_name=ctx.app_name,
            user_id=ctx.user_id,
            session_id=ctx.session.id,
            filename=filename,
            version=version,
        )

    async def save_artifact(self, filename: str, artifact: 'Part') -> int:
        """保存 artifact，版本号记录到 actions.artifact_delta"""
        ctx = self._invocation_context
        if ctx.artifact_service is None:
            raise ValueError("Artifact service is not initialized.")
        version = await ctx.artifact_service.save_artifact(
            app_name=ctx.app_name,
            user_id=ctx.user_id,
            session_id=ctx.session.id,
            filename=filename,
            artifact=artifact,
        )
        self._event_actions.artifact_delta[filename] = version
        return version
