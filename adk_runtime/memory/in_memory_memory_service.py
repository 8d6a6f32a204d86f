"""
InMemoryMemoryService - 内存存储实现

- 仅用于开发和测试
- 使用关键词匹配（非语义搜索）
- 线程安全
"""

from __future__ import annotations

import re
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

from typing_extensions import override

from .base_memory_service import BaseMemoryService, SearchResult
from .memory_entry import MemoryEntry

if TYPE_CHECKING:
    from ..sessions import Session


def _user_key(app_name: str, user_id: str) -> str:
    return f"{app_name}/{user_id}"


def _extract_words(text: str) -> set[str]:
    """提取文本中的单词（小写，中英文）"""
    return set(re.findall(r'[\u4e00-\u9fff]+|[a-zA-Z0-9]+', text.lower()))


class InMemoryMemoryService(BaseMemoryService):
    """
    内存存储的记忆服务

    数据结构：
    - _memories: {user_key: {session_id: [MemoryEntry]}}

    同一会话重复加入时覆盖旧条目，避免重复记忆。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._memories: dict[str, dict[str, list[MemoryEntry]]] = {}

    @override
    async def add_session_to_memory(self, session: 'Session') -> list[str]:
        entries = []
        for event in session.events:
            if event.partial or not event.text:
                continue
            entry = MemoryEntry.from_event(
                event,
                app_name=session.app_name,
                user_id=session.user_id,
                session_id=session.id,
            )
            entry.id = str(uuid4())
            entries.append(entry)

        user_key = _user_key(session.app_name, session.user_id)
        with self._lock:
            self._memories.setdefault(user_key, {})[session.id] = entries

        return [entry.id for entry in entries]

    @override
    async def search_memory(
        self,
        *,
        app_name: str,
        user_id: str,
        query: str,
        limit: int = 10,
    ) -> SearchResult:
        """查询词中任一词出现在记忆内容中即匹配，按匹配比例和时间排序"""
        query_words = _extract_words(query)
        if not query_words:
            return SearchResult()

        with self._lock:
            sessions = dict(self._memories.get(_user_key(app_name, user_id), {}))

        matched = []
        for entries in sessions.values():
            for entry in entries:
                matches = query_words & _extract_words(entry.content)
                if matches:
                    matched.append((len(matches) / len(query_words), entry))

        matched.sort(key=lambda x: (-x[0], -x[1].timestamp.timestamp()))
        return SearchResult(
            entries=[entry for _, entry in matched[:limit]],
            total_count=len(matched),
        )
