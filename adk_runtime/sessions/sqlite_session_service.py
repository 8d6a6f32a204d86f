"""
SqliteSessionService - SQLite 持久化的 Session 服务

设计理念：
- 每个操作一个连接 + 一个事务，append_event 的状态更新与事件写入在同一事务内
- 阻塞的 sqlite3 调用通过 asyncio.to_thread 执行
- 同一会话的追加由基类的会话锁串行化，threading.Lock 保护跨线程写入
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional
from uuid import uuid4

from typing_extensions import override

from ..events import Event
from .base_session_service import BaseSessionService, GetSessionConfig, ListSessionsResponse
from .session import Session
from .state import merge_scoped_state, split_state_delta

logger = logging.getLogger(__name__)


class SqliteSessionService(BaseSessionService):
    """
    SQLite 存储的 Session 服务

    表结构：
    - sessions(app_name, user_id, id, state, last_update_time)
    - events(seq, app_name, user_id, session_id, id, data, timestamp)
    - app_states(app_name, state)
    - user_states(app_name, user_id, state)
    """

    def __init__(self, db_path: str | Path):
        super().__init__()
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    app_name TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    state TEXT NOT NULL,
                    last_update_time REAL NOT NULL,
                    PRIMARY KEY (app_name, user_id, id)
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    app_name TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    timestamp REAL NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_events_session
                ON events(app_name, user_id, session_id)
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS app_states (
                    app_name TEXT PRIMARY KEY,
                    state TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS user_states (
                    app_name TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    state TEXT NOT NULL,
                    PRIMARY KEY (app_name, user_id)
                )
            """)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """打开连接，退出时提交并关闭"""
        conn = sqlite3.connect(self._db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    # ==================== 异步接口 ====================

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
        return await asyncio.to_thread(self._create_session_sync, app_name, user_id, state or {}, session_id)

    @override
    async def get_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        config: Optional[GetSessionConfig] = None,
    ) -> Optional[Session]:
        session = await asyncio.to_thread(self._get_session_sync, app_name, user_id, session_id)
        if session is not None:
            self._filter_events(session, config)
        return session

    @override
    async def list_sessions(self, *, app_name: str, user_id: str) -> ListSessionsResponse:
        sessions = await asyncio.to_thread(self._list_sessions_sync, app_name, user_id)
        return ListSessionsResponse(sessions=sessions)

    @override
    async def delete_session(self, *, app_name: str, user_id: str, session_id: str) -> None:
        await asyncio.to_thread(self._delete_session_sync, app_name, user_id, session_id)
        self._drop_lock(app_name, user_id, session_id)

    @override
    async def _store_event(self, session: Session, event: Event) -> None:
        await asyncio.to_thread(self._store_event_sync, session, event)

    # ==================== 同步实现 ====================

    def _create_session_sync(
        self,
        app_name: str,
        user_id: str,
        state: dict[str, Any],
        session_id: str,
    ) -> Session:
        app_delta, user_delta, session_state = split_state_delta(state)
        now = time.time()

        with self._lock, self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT last_update_time FROM sessions WHERE app_name = ? AND user_id = ? AND id = ?",
                (app_name, user_id, session_id),
            )
            row = cursor.fetchone()
            if row is not None:
                logger.warning(
                    f"[SqliteSessionService] Replacing existing session "
                    f"app={app_name} user={user_id} session={session_id}"
                )
                now = max(now, row[0] + 1e-6)
                cursor.execute(
                    "DELETE FROM events WHERE app_name = ? AND user_id = ? AND session_id = ?",
                    (app_name, user_id, session_id),
                )

            cursor.execute(
                "INSERT OR REPLACE INTO sessions (app_name, user_id, id, state, last_update_time) "
                "VALUES (?, ?, ?, ?, ?)",
                (app_name, user_id, session_id, json.dumps(session_state, ensure_ascii=False), now),
            )
            app_state = self._update_scoped_state(cursor, app_name, None, app_delta)
            user_state = self._update_scoped_state(cursor, app_name, user_id, user_delta)

        logger.info(f"[SqliteSessionService] Created session app={app_name} user={user_id} session={session_id}")
        return Session(
            app_name=app_name,
            user_id=user_id,
            id=session_id,
            state=merge_scoped_state(session_state, app_state, user_state),
            last_update_time=now,
        )

    def _get_session_sync(self, app_name: str, user_id: str, session_id: str) -> Optional[Session]:
        with self._lock, self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT state, last_update_time FROM sessions WHERE app_name = ? AND user_id = ? AND id = ?",
                (app_name, user_id, session_id),
            )
            row = cursor.fetchone()
            if row is None:
                return None

            cursor.execute(
                "SELECT data FROM events WHERE app_name = ? AND user_id = ? AND session_id = ? ORDER BY seq",
                (app_name, user_id, session_id),
            )
            events = [Event.from_dict(json.loads(data)) for (data,) in cursor.fetchall()]
            app_state = self._read_scoped_state(cursor, app_name, None)
            user_state = self._read_scoped_state(cursor, app_name, user_id)

        return Session(
            app_name=app_name,
            user_id=user_id,
            id=session_id,
            state=merge_scoped_state(json.loads(row[0]), app_state, user_state),
            events=events,
            last_update_time=row[1],
        )

    def _list_sessions_sync(self, app_name: str, user_id: str) -> list[Session]:
        with self._lock, self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, state, last_update_time FROM sessions WHERE app_name = ? AND user_id = ? "
                "ORDER BY last_update_time DESC",
                (app_name, user_id),
            )
            rows = cursor.fetchall()
            app_state = self._read_scoped_state(cursor, app_name, None)
            user_state = self._read_scoped_state(cursor, app_name, user_id)

        return [
            Session(
                app_name=app_name,
                user_id=user_id,
                id=session_id,
                state=merge_scoped_state(json.loads(state), app_state, user_state),
                last_update_time=last_update_time,
            )
            for session_id, state, last_update_time in rows
        ]

    def _delete_session_sync(self, app_name: str, user_id: str, session_id: str) -> None:
        with self._lock, self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM events WHERE app_name = ? AND user_id = ? AND session_id = ?",
                (app_name, user_id, session_id),
            )
            cursor.execute(
                "DELETE FROM sessions WHERE app_name = ? AND user_id = ? AND id = ?",
                (app_name, user_id, session_id),
            )

    def _store_event_sync(self, session: Session, event: Event) -> None:
        stored_event = Event.from_dict(event.to_dict())
        stored_event.actions.state_delta = self._persistable_delta(event)
        app_delta, user_delta, session_delta = split_state_delta(stored_event.actions.state_delta)

        with self._lock, self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT state, last_update_time FROM sessions WHERE app_name = ? AND user_id = ? AND id = ?",
                (session.app_name, session.user_id, session.id),
            )
            row = cursor.fetchone()
            if row is None:
                logger.warning(
                    f"[SqliteSessionService] Session {session.id} no longer exists, "
                    "event kept only on the in-flight session"
                )
                return

            state = json.loads(row[0])
            state.update(session_delta)
            last_update_time = max(session.last_update_time, row[1] + 1e-6)
            cursor.execute(
                "UPDATE sessions SET state = ?, last_update_time = ? WHERE app_name = ? AND user_id = ? AND id = ?",
                (
                    json.dumps(state, ensure_ascii=False),
                    last_update_time,
                    session.app_name,
                    session.user_id,
                    session.id,
                ),
            )
            cursor.execute(
                "INSERT INTO events (app_name, user_id, session_id, id, data, timestamp) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    session.app_name,
                    session.user_id,
                    session.id,
                    stored_event.id,
                    json.dumps(stored_event.to_dict(), ensure_ascii=False, default=str),
                    stored_event.timestamp,
                ),
            )
            self._update_scoped_state(cursor, session.app_name, None, app_delta)
            self._update_scoped_state(cursor, session.app_name, session.user_id, user_delta)

        session.last_update_time = last_update_time

    # ==================== app/user 层状态 ====================

    @staticmethod
    def _read_scoped_state(cursor: sqlite3.Cursor, app_name: str, user_id: Optional[str]) -> dict[str, Any]:
        if user_id is None:
            cursor.execute("SELECT state FROM app_states WHERE app_name = ?", (app_name,))
        else:
            cursor.execute(
                "SELECT state FROM user_states WHERE app_name = ? AND user_id = ?",
                (app_name, user_id),
            )
        row = cursor.fetchone()
        return json.loads(row[0]) if row else {}

    def _update_scoped_state(
        self,
        cursor: sqlite3.Cursor,
        app_name: str,
        user_id: Optional[str],
        delta: dict[str, Any],
    ) -> dict[str, Any]:
        state = self._read_scoped_state(cursor, app_name, user_id)
        if not delta:
            return state
        state.update(delta)
        payload = json.dumps(state, ensure_ascii=False)
        if user_id is None:
            cursor.execute(
                "INSERT OR REPLACE INTO app_states (app_name, state) VALUES (?, ?)",
                (app_name, payload),
            )
        else:
            cursor.execute(
                "INSERT OR REPLACE INTO user_states (app_name, user_id, state) VALUES (?, ?, ?)",
                (app_name, user_id, payload),
            )
        return state
