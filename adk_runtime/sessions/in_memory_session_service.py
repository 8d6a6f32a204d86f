"""InMemorySessionService - 内存存储的 Session 服务"""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional
from uuid import uuid4

from typing_extensions import override

from ..events import Event
from .base_session_service import BaseSessionService, GetSessionConfig, ListSessionsResponse
from .session import Session
from .state import merge_scoped_state, split_state_delta

logger = logging.getLogger(__name__)


class InMemorySessionService(BaseSessionService):
    """
    内存存储的 Session 服务，仅用于开发和测试

    数据结构：
    - _sessions: {app_name: {user_id: {session_id: Session}}}，只存会话级状态
    - _app_state: {app_name: {key: value}}
    - _user_state: {app_name: {user_id: {key: value}}}

    读取时返回深拷贝并合并 app:/user: 层，调用方无法绕过 append_event 修改存储。
    """

    def __init__(self) -> None:
        super().__init__()
        self._sessions: dict[str, dict[str, dict[str, Session]]] = {}
        self._app_state: dict[str, dict[str, Any]] = {}
        self._user_state: dict[str, dict[str, dict[str, Any]]] = {}

    # ==================== 创建 ====================

    @override
    async def create_session(
        self,
        *,
        app_name: str,
        user_id: str,
        state: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        session_id = session_id.strip() if session_id and session_id.strip() else str(uuid4())
        user_sessions = self._sessions.setdefault(app_name, {}).setdefault(user_id, {})

        if session_id in user_sessions:
            logger.warning(
                f"[InMemorySessionService] Replacing existing session "
                f"app={app_name} user={user_id} session={session_id}"
            )

        app_delta, user_delta, session_state = split_state_delta(state or {})
        self._app_state.setdefault(app_name, {}).update(app_delta)
        self._user_state.setdefault(app_name, {}).setdefault(user_id, {}).update(user_delta)

        session = Session(
            app_name=app_name,
            user_id=user_id,
            id=session_id,
            state=session_state,
        )
        previous = user_sessions.get(session_id)
        if previous is not None:
            session.last_update_time = max(session.last_update_time, previous.last_update_time + 1e-6)
        user_sessions[session_id] = session

        logger.info(f"[InMemorySessionService] Created session app={app_name} user={user_id} session={session_id}")
        return self._merge_state(copy.deepcopy(session))

    # ==================== 获取 ====================

    @override
    async def get_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        config: Optional[GetSessionConfig] = None,
    ) -> Optional[Session]:
        stored = self._lookup(app_name, user_id, session_id)
        if stored is None:
            return None

        session = copy.deepcopy(stored)
        self._filter_events(session, config)
        return self._merge_state(session)

    @override
    async def list_sessions(
        self,
        *,
        app_name: str,
        user_id: str,
    ) -> ListSessionsResponse:
        sessions = []
        for stored in self._sessions.get(app_name, {}).get(user_id, {}).values():
            summary = Session(
                app_name=stored.app_name,
                user_id=stored.user_id,
                id=stored.id,
                state=copy.deepcopy(stored.state),
                last_update_time=stored.last_update_time,
            )
            sessions.append(self._merge_state(summary))
        sessions.sort(key=lambda s: s.last_update_time, reverse=True)
        return ListSessionsResponse(sessions=sessions)

    # ==================== 删除 ====================

    @override
    async def delete_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
    ) -> None:
        user_sessions = self._sessions.get(app_name, {}).get(user_id, {})
        if user_sessions.pop(session_id, None) is not None:
            logger.info(f"[InMemorySessionService] Deleted session={session_id}")
        self._drop_lock(app_name, user_id, session_id)

    # ==================== 追加事件 ====================

    @override
    async def _store_event(self, session: Session, event: Event) -> None:
        stored = self._lookup(session.app_name, session.user_id, session.id)
        if stored is None:
            logger.warning(
                f"[InMemorySessionService] Session {session.id} no longer exists, "
                "event kept only on the in-flight session"
            )
            return

        stored_event = copy.deepcopy(event)
        stored_event.actions.state_delta = self._persistable_delta(event)

        app_delta, user_delta, session_delta = split_state_delta(stored_event.actions.state_delta)
        if app_delta:
            self._app_state.setdefault(session.app_name, {}).update(app_delta)
        if user_delta:
            self._user_state.setdefault(session.app_name, {}).setdefault(session.user_id, {}).update(user_delta)
        stored.state.update(session_delta)

        stored.events.append(stored_event)
        stored.last_update_time = max(session.last_update_time, stored.last_update_time + 1e-6)

    # ==================== 辅助方法 ====================

    def _lookup(self, app_name: str, user_id: str, session_id: str) -> Optional[Session]:
        return self._sessions.get(app_name, {}).get(user_id, {}).get(session_id)

    def _merge_state(self, session: Session) -> Session:
        session.state = merge_scoped_state(
            session.state,
            app_state=self._app_state.get(session.app_name),
            user_state=self._user_state.get(session.app_name, {}).get(session.user_id),
        )
        return session
