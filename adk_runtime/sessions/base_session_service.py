"""BaseSessionService - Session 持久化服务抽象基类"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..events import Event
from .session import Session
from .state import State

logger = logging.getLogger(__name__)


@dataclass
class GetSessionConfig:
    """get_session 的事件过滤选项"""
    num_recent_events: Optional[int] = None
    after_timestamp: Optional[float] = None


@dataclass
class ListSessionsResponse:
    """list_sessions 的返回值，sessions 按 last_update_time 降序，不含事件"""
    sessions: list[Session] = field(default_factory=list)


class BaseSessionService(ABC):
    """
    Session 持久化服务（参考 ADK 设计）

    设计原则:
    - get_session: 只获取，不存在返回 None
    - create_session: 显式创建；id 已存在时替换旧会话
    - append_event: 同一会话上串行执行（每个会话一把 asyncio.Lock）

    子类实现存储相关的抽象方法，append_event 的并发控制和
    对进行中 Session 对象的状态更新由基类统一完成。
    """

    def __init__(self) -> None:
        self._session_locks: dict[tuple[str, str, str], asyncio.Lock] = {}

    # ==================== 抽象接口 ====================

    @abstractmethod
    async def create_session(
        self,
        *,
        app_name: str,
        user_id: str,
        state: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        """
        创建新 Session

        Args:
            app_name: 应用名称
            user_id: 用户 ID
            state: 初始状态（可含 app:/user: 前缀的键）
            session_id: 会话 ID（可选，不提供则自动生成；已存在时替换）
        """

    @abstractmethod
    async def get_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        config: Optional[GetSessionConfig] = None,
    ) -> Optional[Session]:
        """获取 Session，不存在返回 None"""

    @abstractmethod
    async def list_sessions(
        self,
        *,
        app_name: str,
        user_id: str,
    ) -> ListSessionsResponse:
        """列出用户的所有 Session（不含事件）"""

    @abstractmethod
    async def delete_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
    ) -> None:
        """删除 Session"""

    @abstractmethod
    async def _store_event(self, session: Session, event: Event) -> None:
        """把事件写入存储（已持有会话锁）"""

    # ==================== 追加事件（原子操作）====================

    async def append_event(self, session: Session, event: Event) -> Event:
        """
        追加单个事件到 Session

        - partial 事件直接返回，不持久化
        - 应用 state_delta（temp: 键只对当前 Session 对象可见，不进入存储）
        - 追加事件，更新 last_update_time

        Args:
            session: 当前调用持有的 Session 实例
            event: 要追加的事件

        Returns:
            传入的事件
        """
        if event.partial:
            return event

        async with self._lock_for(session.app_name, session.user_id, session.id):
            for key, value in event.actions.state_delta.items():
                session.state[key] = value
            session.events.append(event)
            session.touch(event.timestamp)
            await self._store_event(session, event)

        logger.debug(
            f"[SessionService] Appended event={event.id} author={event.author} "
            f"session={session.id} total={len(session.events)}"
        )
        return event

    # ==================== 辅助方法 ====================

    def _lock_for(self, app_name: str, user_id: str, session_id: str) -> asyncio.Lock:
        key = (app_name, user_id, session_id)
        lock = self._session_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[key] = lock
        return lock

    def _drop_lock(self, app_name: str, user_id: str, session_id: str) -> None:
        self._session_locks.pop((app_name, user_id, session_id), None)

    @staticmethod
    def _persistable_delta(event: Event) -> dict[str, Any]:
        """去掉 temp: 键后的状态增量"""
        return {
            key: value
            for key, value in event.actions.state_delta.items()
            if not key.startswith(State.TEMP_PREFIX)
        }

    @staticmethod
    def _filter_events(session: Session, config: Optional[GetSessionConfig]) -> None:
        """按 GetSessionConfig 原地裁剪事件"""
        if config is None:
            return
        if config.after_timestamp is not None:
            session.events = [e for e in session.events if e.timestamp >= config.after_timestamp]
        if config.num_recent_events is not None:
            if config.num_recent_events <= 0:
                session.events = []
            else:
                session.events = session.events[-config.num_recent_events:]
